"""HistoryLedger — the persisted, newest-first list of sessions and breaks."""

from __future__ import annotations

import logging
from typing import Any, Iterator

from focusledger.core.errors import InvariantViolation, NotFound, PersistenceError, ValidationError
from focusledger.core.records import BreakRecord, Record, SessionRecord, record_from_dict
from focusledger.core.store import JsonStore
from focusledger.core.streak import StreakCounter

logger = logging.getLogger(__name__)

HISTORY_KEY = "history"


class HistoryLedger:
    """Ordered, newest-first sequence of :class:`SessionRecord` and :class:`BreakRecord`.

    Invariants:

    * at most one break is open (``end is None``);
    * breaks are only added together with the session they follow;
    * record ids are unique.

    The full ledger is written to the store after every mutation.  Store
    failures are logged and the in-memory records stay authoritative.

    With ``strict=True`` a mutation that would leave two open breaks raises
    :class:`InvariantViolation`; otherwise the older break is closed and the
    anomaly is logged.
    """

    def __init__(
        self,
        store: JsonStore,
        streak: StreakCounter | None = None,
        strict: bool = False,
    ) -> None:
        self._store = store
        self.streak: StreakCounter = streak if streak is not None else StreakCounter(store)
        self.strict = strict
        self._records: list[Record] = self._load()

    # -- queries -------------------------------------------------------------

    @property
    def records(self) -> tuple[Record, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(tuple(self._records))

    def sessions(self) -> list[SessionRecord]:
        return [r for r in self._records if isinstance(r, SessionRecord)]

    def breaks(self) -> list[BreakRecord]:
        return [r for r in self._records if isinstance(r, BreakRecord)]

    def open_break(self) -> BreakRecord | None:
        """Return the open break, if any."""
        for record in self._records:
            if isinstance(record, BreakRecord) and record.is_open:
                return record
        return None

    def get(self, record_id: str) -> Record:
        """Return the record with *record_id*.  Raises :class:`NotFound`."""
        for record in self._records:
            if record.id == record_id:
                return record
        raise NotFound(f"no ledger record with id {record_id!r}")

    def total_focus_ms(self) -> int:
        return sum(r.duration_ms for r in self.sessions())

    def total_break_ms(self) -> int:
        return sum(r.duration_ms for r in self.breaks() if not r.is_open)

    # -- mutations -----------------------------------------------------------

    def prepend(self, new_break: BreakRecord, session: SessionRecord) -> None:
        """Insert ``[new_break, session]`` at the front as one step."""
        if not isinstance(new_break, BreakRecord) or not isinstance(session, SessionRecord):
            raise TypeError("prepend() takes a BreakRecord followed by a SessionRecord")

        known_ids = {r.id for r in self._records}
        for record in (new_break, session):
            if record.id in known_ids:
                raise InvariantViolation(f"duplicate ledger record id {record.id!r}")
        if new_break.id == session.id:
            raise InvariantViolation(f"duplicate ledger record id {session.id!r}")

        stale = [r for r in self.breaks() if r.is_open]
        if new_break.is_open and stale:
            message = f"{len(stale)} open break(s) already in ledger while adding {new_break.id}"
            if self.strict:
                raise InvariantViolation(message)
            logger.warning("Ledger anomaly: %s; closing them", message)
            for record in stale:
                record.close(new_break.start)

        self._records[0:0] = [new_break, session]
        self._save()

    def close_open_break(self, now: int) -> BreakRecord | None:
        """Close the open break at *now*.  Returns it, or ``None`` if there was none."""
        record = self.open_break()
        if record is None:
            return None
        record.close(now)
        self._save()
        return record

    def update_break_note(self, record_id: str, note: str) -> None:
        """Replace the note of a break.  Raises :class:`NotFound`."""
        record = self.get(record_id)
        if not isinstance(record, BreakRecord):
            raise NotFound(f"no break with id {record_id!r}")
        record.note = note
        self._save()

    def amend_session(
        self,
        record_id: str,
        comment: str | None = None,
        distraction_count: int | None = None,
    ) -> SessionRecord:
        """Merge a post-session annotation into a session.  Raises :class:`NotFound`."""
        record = self.get(record_id)
        if not isinstance(record, SessionRecord):
            raise NotFound(f"no session with id {record_id!r}")
        if distraction_count is not None and (
            isinstance(distraction_count, bool)
            or not isinstance(distraction_count, int)
            or distraction_count < 0
        ):
            raise ValidationError(
                f"distraction_count must be a non-negative integer, got {distraction_count!r}"
            )

        if comment is not None:
            record.comment = comment
        if distraction_count is not None:
            record.distraction_count = distraction_count
        self._save()
        return record

    def clear(self) -> None:
        """Drop every record and reset the streak.  There is no undo."""
        self._records = []
        self.streak.reset()
        self._save()
        logger.info("Ledger cleared")

    # -- persistence ---------------------------------------------------------

    def _save(self) -> None:
        try:
            self._store.write(HISTORY_KEY, [r.to_dict() for r in self._records])
        except PersistenceError as exc:
            logger.warning("Ledger not persisted: %s", exc)

    def _load(self) -> list[Record]:
        raw = self._store.read(HISTORY_KEY, [])
        if not isinstance(raw, list):
            logger.warning("Ignoring persisted ledger of type %s", type(raw).__name__)
            return []

        records: list[Record] = []
        seen: set[str] = set()
        for item in raw:
            record = self._parse(item)
            if record is None:
                continue
            if record.id in seen:
                logger.warning("Skipping duplicate persisted record %s", record.id)
                continue
            seen.add(record.id)
            records.append(record)

        open_breaks = [r for r in records if isinstance(r, BreakRecord) and r.is_open]
        if len(open_breaks) > 1:
            # Newest first: keep the first open break, close the rest where
            # the next-newer break started.
            logger.warning("Persisted ledger has %d open breaks; repairing", len(open_breaks))
            for newer, older in zip(open_breaks, open_breaks[1:]):
                older.close(newer.start)
        return records

    @staticmethod
    def _parse(item: Any) -> Record | None:
        if not isinstance(item, dict):
            logger.warning("Skipping malformed ledger entry %r", item)
            return None
        try:
            return record_from_dict(item)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed ledger entry %r: %s", item, exc)
            return None
