"""Tests for duration formatting."""

import pytest

from focusledger.core.formatting import format_total_duration, ms_to_clock


@pytest.mark.parametrize(
    ("ms", "expected"),
    [
        (0, "0:00"),
        (5_000, "0:05"),
        (454_000, "7:34"),
        (720_000, "12:00"),
        (1_500_999, "25:00"),
        (-1_000, "0:00"),
    ],
)
def test_ms_to_clock(ms: int, expected: str) -> None:
    assert ms_to_clock(ms) == expected


@pytest.mark.parametrize(
    ("ms", "expected"),
    [
        (0, "0m"),
        (59_999, "0m"),
        (45 * 60_000, "45m"),
        (90 * 60_000, "1h 30m"),
        (120 * 60_000, "2h"),
    ],
)
def test_format_total_duration(ms: int, expected: str) -> None:
    assert format_total_duration(ms) == expected
