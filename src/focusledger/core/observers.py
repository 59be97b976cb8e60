"""Notification interface for collaborators such as audio cues or a UI."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from focusledger.core.records import SessionRecord


class SessionObserver:
    """Fire-and-forget hooks emitted by :class:`SessionController`.

    Subclass and override what you need; every hook defaults to a no-op.
    Exceptions raised here are logged and never reach the engine.
    """

    def on_start(self, goal: str, duration_ms: int | None) -> None:
        pass

    def on_tick(self, remaining_ms: int | None) -> None:
        pass

    def on_pause(self) -> None:
        pass

    def on_resume(self) -> None:
        pass

    def on_distraction(self, count: int) -> None:
        pass

    def on_expire(self) -> None:
        pass

    def on_session_end(self, session: SessionRecord, streak: int) -> None:
        pass
