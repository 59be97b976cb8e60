"""Clock — a repeating tick source with pause/resume/cancel semantics.

The clock schedules itself on an asyncio event loop with ``call_at`` against
absolute deadlines, so ticks arrive in order without drift.  It knows nothing
about sessions or countdowns.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)

TICK_INTERVAL_MS = 1000


class ClockState(Enum):
    """Possible states of the clock."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class Clock:
    """Emit ``on_tick()`` once per interval while running.

    ``pause()`` freezes emission and remembers how much of the current
    interval was left; ``resume()`` schedules exactly that remainder, so a
    pause/resume pair neither skips nor double-fires a tick.
    """

    def __init__(
        self,
        interval_ms: int = TICK_INTERVAL_MS,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        self._interval: float = interval_ms / 1000.0
        self._loop = loop
        self._state: ClockState = ClockState.IDLE
        self._on_tick: Callable[[], None] | None = None
        self._handle: asyncio.TimerHandle | None = None
        self._deadline: float = 0.0
        self._remaining_at_pause: float = 0.0

    # -- public interface ----------------------------------------------------

    @property
    def state(self) -> ClockState:
        return self._state

    @property
    def interval_ms(self) -> int:
        return int(self._interval * 1000)

    def start(self, on_tick: Callable[[], None]) -> None:
        """Begin emitting ticks.  No-op unless the clock is IDLE."""
        if self._state != ClockState.IDLE:
            logger.debug("Clock.start() ignored in %s state", self._state.value)
            return
        loop = self._get_loop()
        self._on_tick = on_tick
        self._state = ClockState.RUNNING
        self._schedule(loop.time() + self._interval)

    def pause(self) -> None:
        """Freeze tick emission.  Idempotent."""
        if self._state != ClockState.RUNNING:
            return
        loop = self._get_loop()
        self._remaining_at_pause = max(self._deadline - loop.time(), 0.0)
        self._cancel_handle()
        self._state = ClockState.PAUSED

    def resume(self) -> None:
        """Continue after ``pause()`` with the unexpired part of the interval."""
        if self._state != ClockState.PAUSED:
            return
        self._state = ClockState.RUNNING
        self._schedule(self._get_loop().time() + self._remaining_at_pause)

    def cancel(self) -> None:
        """Stop permanently; ``start()`` may be called again afterwards."""
        self._cancel_handle()
        self._on_tick = None
        self._remaining_at_pause = 0.0
        self._state = ClockState.IDLE

    # -- private helpers -----------------------------------------------------

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _schedule(self, deadline: float) -> None:
        self._deadline = deadline
        self._handle = self._get_loop().call_at(deadline, self._fire)

    def _cancel_handle(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        if self._state != ClockState.RUNNING or self._on_tick is None:
            return
        # Rescheduled first: the callback may pause or cancel the clock.
        self._schedule(self._deadline + self._interval)
        try:
            self._on_tick()
        except Exception:
            logger.exception("Error in clock tick callback")
