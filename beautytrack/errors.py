"""Exception hierarchy for ledger operations."""


class LedgerError(Exception):
    """Base exception for ledger errors."""


class ValidationError(LedgerError, ValueError):
    """Raised when a caller passes values the ledger refuses."""


class PersistenceError(LedgerError):
    """Raised when a store write fails and the change was rolled back."""


class BackupError(LedgerError, ValueError):
    """Raised when a backup cannot be decoded or written."""
