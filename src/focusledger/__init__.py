"""focusledger: a focus-session timer with a running session/break ledger."""

__version__ = "0.1.0"
