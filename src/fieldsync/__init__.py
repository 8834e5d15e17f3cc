"""
fieldsync - offline-first sync engine for field-survey records.

Samples, occurrences and media are kept in a local store and pushed to the
warehouse when a connection is available.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .collection import Collection
from .config import SyncConfig
from .errors import (
    FieldSyncError,
    ValidationError,
    StoreError,
    NetworkError,
    MediaError,
    RemoteError,
    ProtocolError,
    UnsupportedOperationError,
    ConfigError,
)
from .event_bus import EventBus, get_event_bus, reset_event_bus
from .keys import DEFAULT_KEYS, FieldKey, WarehouseKeys
from .manager import Manager
from .models import Entity, Media, Metadata, Occurrence, Sample
from .remote import RemoteSyncClient, SyncOutcome, SyncResult
from .status import SyncStatus, resolve_sync_status
from .store import FileStore, MemoryStore, SQLiteStore, Store
from .submission import build_submission
from .validation import validate_remote

__all__ = [
    # Models
    "Entity",
    "Metadata",
    "Sample",
    "Occurrence",
    "Media",
    "Collection",
    # Sync
    "SyncStatus",
    "resolve_sync_status",
    "SyncOutcome",
    "SyncResult",
    "RemoteSyncClient",
    "Manager",
    "SyncConfig",
    # Submission
    "FieldKey",
    "WarehouseKeys",
    "DEFAULT_KEYS",
    "build_submission",
    "validate_remote",
    # Stores
    "Store",
    "MemoryStore",
    "SQLiteStore",
    "FileStore",
    # Events
    "EventBus",
    "get_event_bus",
    "reset_event_bus",
    # Errors
    "FieldSyncError",
    "ValidationError",
    "StoreError",
    "NetworkError",
    "MediaError",
    "RemoteError",
    "ProtocolError",
    "UnsupportedOperationError",
    "ConfigError",
]
