"""TimerEngine — a countdown (or unbounded) state machine driven by a Clock."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from focusledger.core.clock import Clock
from focusledger.core.errors import InvalidStateError, ValidationError

logger = logging.getLogger(__name__)

# Sentinel duration for open-ended sessions.
UNBOUNDED_MS = 2**53 - 1


class TimerState(Enum):
    """Possible states of the timer."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    EXPIRED = "expired"


_VALID_START_STATES = frozenset({TimerState.IDLE, TimerState.EXPIRED})


def validate_duration(duration_ms: int) -> int:
    """Return *duration_ms* if it is a usable duration, else raise ``ValidationError``."""
    if isinstance(duration_ms, bool) or not isinstance(duration_ms, int):
        raise ValidationError(
            f"duration_ms must be an integer, got {type(duration_ms).__name__}"
        )
    if duration_ms <= 0:
        raise ValidationError(f"duration_ms must be greater than 0, got {duration_ms}")
    return duration_ms


class TimerEngine:
    """Count down from a duration on top of a :class:`Clock`.

    Each clock tick subtracts one interval from the remaining time and calls
    ``on_tick(remaining_ms)`` (``None`` for unbounded runs).  A finite run that
    reaches zero calls ``on_expire()`` exactly once and stops ticking.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        on_tick: Callable[[int | None], None] | None = None,
        on_expire: Callable[[], None] | None = None,
    ) -> None:
        self._clock: Clock = clock if clock is not None else Clock()
        self.on_tick = on_tick
        self.on_expire = on_expire
        self._state: TimerState = TimerState.IDLE
        self._duration_ms: int = 0
        self._remaining_ms: int = 0
        self._elapsed_ms: int = 0

    # -- public interface ----------------------------------------------------

    def start(self, duration_ms: int) -> None:
        """Start counting down *duration_ms*, or pass ``UNBOUNDED_MS``.

        The duration is validated before the clock is engaged.  Valid only
        from IDLE or EXPIRED states.
        """
        validate_duration(duration_ms)
        self._require_state("start", _VALID_START_STATES)

        self._clock.start(self._handle_tick)
        self._duration_ms = duration_ms
        self._remaining_ms = duration_ms
        self._elapsed_ms = 0
        self._state = TimerState.RUNNING

    def pause(self) -> None:
        """Freeze the countdown.  No-op unless RUNNING."""
        if self._state != TimerState.RUNNING:
            return
        self._clock.pause()
        self._state = TimerState.PAUSED

    def resume(self) -> None:
        """Continue a paused countdown.  No-op unless PAUSED."""
        if self._state != TimerState.PAUSED:
            return
        self._state = TimerState.RUNNING
        self._clock.resume()

    def stop(self) -> None:
        """Cancel the clock and suppress any further tick or expiry callbacks."""
        self._clock.cancel()
        if self._state != TimerState.EXPIRED:
            self._state = TimerState.IDLE

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def is_unbounded(self) -> bool:
        return self._duration_ms == UNBOUNDED_MS

    @property
    def duration_ms(self) -> int:
        return self._duration_ms

    @property
    def remaining_ms(self) -> int | None:
        """Remaining countdown time, or ``None`` for an unbounded run."""
        if self.is_unbounded:
            return None
        return self._remaining_ms

    @property
    def elapsed_ms(self) -> int:
        """Ticked (unpaused) time since ``start()``."""
        return self._elapsed_ms

    # -- private helpers -----------------------------------------------------

    def _require_state(self, method: str, valid: frozenset[TimerState]) -> None:
        """Raise ``InvalidStateError`` if the current state is not in *valid*."""
        if self._state not in valid:
            raise InvalidStateError(f"{method}() is not valid from {self._state.value} state")

    def _handle_tick(self) -> None:
        # A tick queued before stop() or expiry must not leak through.
        if self._state != TimerState.RUNNING:
            return

        interval = self._clock.interval_ms
        self._elapsed_ms += interval
        if self.is_unbounded:
            self._emit_tick(None)
            return

        self._remaining_ms = max(self._remaining_ms - interval, 0)
        if self._remaining_ms > 0:
            self._emit_tick(self._remaining_ms)
            return

        self._state = TimerState.EXPIRED
        self._clock.cancel()
        logger.debug("Timer expired after %d ms", self._duration_ms)
        if self.on_expire is not None:
            self.on_expire()

    def _emit_tick(self, remaining_ms: int | None) -> None:
        if self.on_tick is not None:
            self.on_tick(remaining_ms)
