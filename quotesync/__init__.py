"""Quote store with remote synchronization.

This package provides:
- QuoteStore: persisted quote collection with filtering and import/export
- RemoteQuoteClient: async HTTP client for the remote quote source
- ReconciliationEngine: remote-wins merge with a reversible conflict ledger
- SyncEngine: single-flight sync, push-all and the auto-sync timer
"""

from quotesync.client import FetchResult, RemoteQuoteClient
from quotesync.config import QuoteSyncConfig
from quotesync.exceptions import (
    ConflictNotFoundError,
    ImportFormatError,
    QuoteSyncError,
    StorageUnavailable,
    SyncUnavailable,
    ValidationError,
)
from quotesync.ledger import ConflictLedger
from quotesync.models import Conflict, Disposition, Preferences, Quote, QuoteSource
from quotesync.reconcile import ReconcileResult, ReconciliationEngine
from quotesync.selection import QuotePicker
from quotesync.storage import InMemoryStorage, KeyValueStorage, LocalDiskStorage
from quotesync.store import QuoteStore
from quotesync.sync import AutoSyncScheduler, PushResult, SyncEngine, SyncResult

__all__ = [
    # Store
    "QuoteStore",
    "QuotePicker",
    "KeyValueStorage",
    "LocalDiskStorage",
    "InMemoryStorage",
    # Model
    "Quote",
    "QuoteSource",
    "Conflict",
    "Disposition",
    "Preferences",
    "ConflictLedger",
    # Sync
    "RemoteQuoteClient",
    "FetchResult",
    "ReconciliationEngine",
    "ReconcileResult",
    "SyncEngine",
    "SyncResult",
    "PushResult",
    "AutoSyncScheduler",
    "QuoteSyncConfig",
    # Exceptions
    "QuoteSyncError",
    "ValidationError",
    "StorageUnavailable",
    "SyncUnavailable",
    "ImportFormatError",
    "ConflictNotFoundError",
]
