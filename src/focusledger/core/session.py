"""SessionController — the focus-session state machine.

Drives a :class:`TimerEngine`, counts distractions, derives the focus streak
and, at every session boundary, writes to the :class:`HistoryLedger`.
Duplicate or out-of-order requests (double start, stop while idle, a
distraction while paused) are ignored rather than raised: they are the
normal noise of an interactive front end.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional

from focusledger.core.clock import Clock
from focusledger.core.errors import NotFound, ValidationError
from focusledger.core.ledger import HistoryLedger
from focusledger.core.observers import SessionObserver
from focusledger.core.records import BreakRecord, Difficulty, SessionRecord
from focusledger.core.store import JsonStore
from focusledger.core.timer import UNBOUNDED_MS, TimerEngine

logger = logging.getLogger(__name__)

DEFAULT_GOAL = "YOLO-MODE"
UNBOUNDED = "unbounded"

PostureProvider = Callable[[], Optional[int]]


class SessionState(Enum):
    """Possible states of the session controller."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    ENDING = "ending"


def _now_ms() -> int:
    return int(time.time() * 1000)


def resolve_goal(goal: str | None) -> str:
    """Return the trimmed goal, or :data:`DEFAULT_GOAL` when blank."""
    trimmed = (goal or "").strip()
    return trimmed or DEFAULT_GOAL


def session_duration_ms(minutes: int | float | str | None, unbounded: bool = False) -> int:
    """Translate a minutes input into a timer duration in milliseconds.

    ``unbounded=True`` or the string ``"unbounded"`` yields ``UNBOUNDED_MS``.
    Anything else must be a positive number of minutes.
    """
    if unbounded or (isinstance(minutes, str) and minutes.strip().lower() == UNBOUNDED):
        return UNBOUNDED_MS

    value: int | float
    if isinstance(minutes, str):
        try:
            value = float(minutes.strip())
        except ValueError:
            raise ValidationError(f"Please enter a number of minutes, got {minutes!r}") from None
    elif isinstance(minutes, (int, float)) and not isinstance(minutes, bool):
        value = minutes
    else:
        raise ValidationError(f"Please enter a number of minutes, got {minutes!r}")

    if not math.isfinite(value) or value <= 0:
        raise ValidationError("Please enter a duration greater than 0.")
    if not math.isfinite(value * 60_000) or value * 60_000 >= UNBOUNDED_MS:
        raise ValidationError(f"Duration of {minutes!r} minutes is too long.")
    duration_ms = int(value * 60_000)
    if duration_ms <= 0:
        raise ValidationError("Please enter a duration greater than 0.")
    return duration_ms


def _parse_difficulty(difficulty: Difficulty | str | None) -> Difficulty | None:
    if difficulty is None or isinstance(difficulty, Difficulty):
        return difficulty
    try:
        return Difficulty(str(difficulty).strip().lower())
    except ValueError:
        choices = ", ".join(d.value for d in Difficulty)
        raise ValidationError(f"difficulty must be one of {choices}, got {difficulty!r}") from None


class SessionController:
    """Owns the session lifecycle: IDLE -> RUNNING <-> PAUSED -> IDLE.

    Expiry and an explicit ``stop()`` both end up in :meth:`end_session`,
    which runs at most once per session.
    """

    def __init__(
        self,
        ledger: HistoryLedger,
        timer: TimerEngine | None = None,
        posture: PostureProvider | None = None,
        observers: Iterable[SessionObserver] = (),
    ) -> None:
        self.ledger = ledger
        self._timer: TimerEngine = timer if timer is not None else TimerEngine()
        self._timer.on_tick = self._handle_tick
        self._timer.on_expire = self._handle_expire
        self._posture = posture
        self._observers: list[SessionObserver] = list(observers)

        self._state: SessionState = SessionState.IDLE
        self._active: bool = False
        self._goal: str = ""
        self._difficulty: Difficulty | None = None
        self._distractions: int = 0
        self._start_timestamp: int = 0
        self._remaining_ms: int | None = None
        self.last_session: SessionRecord | None = None

    @classmethod
    def from_data_dir(
        cls,
        data_dir: Path | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        strict: bool = False,
        posture: PostureProvider | None = None,
        observers: Iterable[SessionObserver] = (),
    ) -> SessionController:
        """Build a controller with its ledger, streak and timer over *data_dir*."""
        ledger = HistoryLedger(JsonStore(data_dir), strict=strict)
        timer = TimerEngine(Clock(loop=loop))
        return cls(ledger, timer=timer, posture=posture, observers=observers)

    # -- observers -----------------------------------------------------------

    def add_observer(self, observer: SessionObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: SessionObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    # -- state ---------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def current_goal(self) -> str:
        return self._goal

    @property
    def difficulty(self) -> Difficulty | None:
        return self._difficulty

    @property
    def distraction_count(self) -> int:
        return self._distractions

    @property
    def remaining_ms(self) -> int | None:
        """Countdown time left, or ``None`` when idle or unbounded."""
        return self._remaining_ms if self._active else None

    @property
    def elapsed_ms(self) -> int:
        """Wall-clock time since the active session started (0 when idle)."""
        if not self._active:
            return 0
        return max(_now_ms() - self._start_timestamp, 0)

    @property
    def streak(self) -> int:
        return self.ledger.streak.value

    # -- lifecycle -----------------------------------------------------------

    def start_session(
        self,
        goal: str | None,
        minutes: int | float | str | None,
        unbounded: bool = False,
        difficulty: Difficulty | str | None = None,
    ) -> bool:
        """Start a session.  Returns ``False`` if one is already active.

        Raises :class:`ValidationError` for an unusable duration or
        difficulty before any state changes.
        """
        if self._active:
            logger.debug("start_session() ignored in %s state", self._state.value)
            return False
        duration_ms = session_duration_ms(minutes, unbounded)
        parsed_difficulty = _parse_difficulty(difficulty)

        # A failing timer start must leave the controller and ledger untouched.
        self._timer.start(duration_ms)

        now = _now_ms()
        closed = self.ledger.close_open_break(now)
        if closed is not None:
            logger.debug("Closed break %s after %d ms", closed.id, closed.duration_ms)

        self._distractions = 0
        self._goal = resolve_goal(goal)
        self._difficulty = parsed_difficulty
        self._start_timestamp = now
        self._remaining_ms = None if duration_ms == UNBOUNDED_MS else duration_ms
        self._active = True
        self._state = SessionState.RUNNING

        logger.info("Session started: goal=%r duration_ms=%s", self._goal, self._remaining_ms)
        self._notify("on_start", self._goal, self._remaining_ms)
        return True

    def pause(self) -> None:
        if self._state != SessionState.RUNNING:
            logger.debug("pause() ignored in %s state", self._state.value)
            return
        self._timer.pause()
        self._state = SessionState.PAUSED
        self._notify("on_pause")

    def resume(self) -> None:
        if self._state != SessionState.PAUSED:
            logger.debug("resume() ignored in %s state", self._state.value)
            return
        self._state = SessionState.RUNNING
        self._timer.resume()
        self._notify("on_resume")

    def stop(self) -> SessionRecord | None:
        """End the active session early.  No-op when idle."""
        return self.end_session()

    def end_session(self) -> SessionRecord | None:
        """Archive the active session and open a break.

        Returns the new :class:`SessionRecord`, or ``None`` if no session was
        active (for example when expiry and ``stop()`` race).
        """
        if not self._active:
            logger.debug("end_session() ignored in %s state", self._state.value)
            return None
        self._active = False
        self._state = SessionState.ENDING

        try:
            self._timer.stop()
            now = _now_ms()
            record = SessionRecord(
                start_timestamp=self._start_timestamp,
                duration_ms=max(now - self._start_timestamp, 0),
                goal=self._goal or DEFAULT_GOAL,
                distraction_count=self._distractions,
                posture_score=self._read_posture(),
                difficulty=self._difficulty,
            )
            streak = self.ledger.streak.record_session(record.distraction_count)
            self.ledger.prepend(BreakRecord(start=now), record)
            self.last_session = record
        finally:
            self._distractions = 0
            self._goal = ""
            self._difficulty = None
            self._start_timestamp = 0
            self._remaining_ms = None
            self._state = SessionState.IDLE

        logger.info(
            "Session ended: goal=%r duration_ms=%d distractions=%d streak=%d",
            record.goal,
            record.duration_ms,
            record.distraction_count,
            streak,
        )
        self._notify("on_session_end", record, streak)
        return record

    def log_distraction(self) -> int:
        """Count a distraction while RUNNING.  Returns the current count."""
        if self._state != SessionState.RUNNING:
            logger.debug("log_distraction() ignored in %s state", self._state.value)
            return self._distractions
        self._distractions += 1
        self._notify("on_distraction", self._distractions)
        return self._distractions

    def set_difficulty(self, difficulty: Difficulty | str | None) -> None:
        """Record the difficulty of the active session."""
        parsed = _parse_difficulty(difficulty)
        if not self._active:
            logger.debug("set_difficulty() ignored in %s state", self._state.value)
            return
        self._difficulty = parsed

    # -- ledger edits --------------------------------------------------------

    def update_break_note(self, break_id: str, note: str) -> bool:
        """Replace a break's note.  Returns ``False`` if the break is gone."""
        try:
            self.ledger.update_break_note(break_id, note)
        except NotFound as exc:
            logger.warning("Break note dropped: %s", exc)
            return False
        return True

    def amend_session(
        self,
        session_id: str,
        comment: str | None = None,
        distraction_count: int | None = None,
    ) -> SessionRecord | None:
        """Annotate a finished session.  Returns ``None`` if the session is gone."""
        try:
            return self.ledger.amend_session(
                session_id, comment=comment, distraction_count=distraction_count
            )
        except NotFound as exc:
            logger.warning("Session amendment dropped: %s", exc)
            return None

    def clear_history(self) -> None:
        """Empty the ledger and reset the streak."""
        self.ledger.clear()
        self.last_session = None

    # -- private helpers -----------------------------------------------------

    def _handle_tick(self, remaining_ms: int | None) -> None:
        self._remaining_ms = remaining_ms
        self._notify("on_tick", remaining_ms)

    def _handle_expire(self) -> None:
        if not self._active:
            return
        self._remaining_ms = 0
        self._notify("on_expire")
        self.end_session()

    def _read_posture(self) -> int | None:
        if self._posture is None:
            return None
        try:
            score = self._posture()
        except Exception:
            logger.exception("Posture provider failed; omitting score")
            return None
        if score is None:
            return None
        if isinstance(score, bool) or not isinstance(score, int) or not 0 <= score <= 100:
            logger.warning("Ignoring out-of-range posture score %r", score)
            return None
        return score

    def _notify(self, hook: str, *args: object) -> None:
        for observer in list(self._observers):
            try:
                getattr(observer, hook)(*args)
            except Exception:
                logger.exception("Observer %r failed in %s", observer, hook)
