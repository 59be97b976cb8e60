"""Ledger record types: a tagged union of session and break records."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Union

SESSION = "session"
BREAK = "break"


class Difficulty(Enum):
    """Self-reported difficulty of a focus session."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


def new_id() -> str:
    """Return a fresh opaque record id."""
    return uuid.uuid4().hex


@dataclass
class SessionRecord:
    """A completed focus session."""

    start_timestamp: int
    duration_ms: int
    goal: str
    distraction_count: int = 0
    posture_score: int | None = None
    difficulty: Difficulty | None = None
    comment: str | None = None
    id: str = field(default_factory=new_id)
    type: Literal["session"] = SESSION

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": SESSION,
            "id": self.id,
            "timestamp": self.start_timestamp,
            "duration": self.duration_ms,
            "goal": self.goal,
            "distractions": self.distraction_count,
        }
        if self.posture_score is not None:
            data["posture"] = self.posture_score
        if self.difficulty is not None:
            data["difficulty"] = self.difficulty.value
        if self.comment is not None:
            data["comment"] = self.comment
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionRecord:
        difficulty = data.get("difficulty")
        distractions = data.get("distractions", 0)
        if isinstance(distractions, bool) or not isinstance(distractions, int) or distractions < 0:
            raise ValueError(f"invalid distraction count: {distractions!r}")
        posture = data.get("posture")
        if posture is not None and (
            isinstance(posture, bool) or not isinstance(posture, int) or not 0 <= posture <= 100
        ):
            raise ValueError(f"invalid posture score: {posture!r}")
        return cls(
            id=str(data["id"]),
            start_timestamp=int(data["timestamp"]),
            duration_ms=int(data["duration"]),
            goal=str(data["goal"]),
            distraction_count=distractions,
            posture_score=posture,
            difficulty=Difficulty(difficulty) if difficulty is not None else None,
            comment=data.get("comment"),
        )


@dataclass
class BreakRecord:
    """The idle interval between two sessions.  ``end is None`` while open."""

    start: int
    end: int | None = None
    duration_ms: int = 0
    note: str = ""
    id: str = field(default_factory=new_id)
    type: Literal["break"] = BREAK

    @property
    def is_open(self) -> bool:
        return self.end is None

    def close(self, now: int) -> None:
        """Set the end time and compute the duration."""
        self.end = now
        self.duration_ms = max(now - self.start, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": BREAK,
            "id": self.id,
            "start": self.start,
            "end": self.end,
            "durationMs": self.duration_ms,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BreakRecord:
        end = data.get("end")
        return cls(
            id=str(data["id"]),
            start=int(data["start"]),
            end=int(end) if end is not None else None,
            duration_ms=int(data.get("durationMs", 0)),
            note=str(data.get("note", "")),
        )


Record = Union[SessionRecord, BreakRecord]

_RECORD_TYPES: dict[str, type[SessionRecord] | type[BreakRecord]] = {
    SESSION: SessionRecord,
    BREAK: BreakRecord,
}


def record_from_dict(data: dict[str, Any]) -> Record:
    """Rebuild a record from its serialized form, dispatching on ``type``.

    Raises ``ValueError`` for an unknown tag and ``KeyError``/``TypeError``
    for a malformed payload.
    """
    tag = data.get("type")
    record_cls = _RECORD_TYPES.get(tag)  # type: ignore[arg-type]
    if record_cls is None:
        raise ValueError(f"unknown record type: {tag!r}")
    return record_cls.from_dict(data)
