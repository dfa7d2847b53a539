"""
Exceptions for the quote store and sync engine.

None of these are fatal: callers catch them and fall back to a defined
behavior (in-memory operation, empty remote batch, rejected import).
"""


class QuoteSyncError(Exception):
    """Base exception for quote store and sync operations."""


class ValidationError(QuoteSyncError):
    """Raised when a quote is added with empty text or category."""


class StorageUnavailable(QuoteSyncError):
    """Raised when the persistence layer cannot be read or written."""


class SyncUnavailable(QuoteSyncError):
    """Raised or reported when the remote source cannot be reached or parsed."""


class ImportFormatError(QuoteSyncError):
    """Raised when imported bytes are not a list of record-shaped objects."""


class ConflictNotFoundError(QuoteSyncError):
    """Raised when resolving a conflict key that is not in the ledger."""
