"""Exception hierarchy shared by the clock, timer, session and ledger."""


class FocusLedgerError(Exception):
    """Base class for all focusledger errors."""


class ValidationError(FocusLedgerError, ValueError):
    """Raised when caller input (e.g. a session duration) is rejected."""


class InvalidStateError(FocusLedgerError):
    """Raised when an invalid state transition is attempted."""


class PersistenceError(FocusLedgerError):
    """Raised when the durable store cannot be written."""


class NotFound(FocusLedgerError, LookupError):
    """Raised when a ledger record id is not present."""


class InvariantViolation(FocusLedgerError, AssertionError):
    """Raised when a ledger mutation would break a ledger invariant."""
