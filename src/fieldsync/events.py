"""
Event type definitions for fieldsync.

Events published while records are stored and synchronised:
- RecordStoredEvent: a root sample was written to the store
- RecordRemovedEvent: a root sample was removed from the store
- SyncRequestEvent: a remote request for a record is about to be sent
- RecordSyncedEvent: the warehouse accepted a record (or a duplicate was recovered)
- SyncErrorEvent: a remote sync attempt failed
- BatchSyncCompletedEvent: every record of a sync_all() batch has settled
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any


@dataclass
class RecordStoredEvent:
    """Event emitted when a root sample is persisted."""
    cid: str
    server_id: Optional[int] = None
    timestamp: datetime = field(default_factory=datetime.now)
    event_type: str = "record.stored"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type,
            "cid": self.cid,
            "server_id": self.server_id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class RecordRemovedEvent:
    """Event emitted when a root sample is removed from the store."""
    cid: str
    timestamp: datetime = field(default_factory=datetime.now)
    event_type: str = "record.removed"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type,
            "cid": self.cid,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class SyncRequestEvent:
    """Event emitted right before a record is posted to the warehouse."""
    cid: str
    url: str
    media_count: int = 0
    timestamp: datetime = field(default_factory=datetime.now)
    event_type: str = "sync.request"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type,
            "cid": self.cid,
            "url": self.url,
            "media_count": self.media_count,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class RecordSyncedEvent:
    """Event emitted when the warehouse holds the record."""
    cid: str
    server_id: Optional[int]
    outcome: str  # success | conflict_recovered
    timestamp: datetime = field(default_factory=datetime.now)
    event_type: str = "sync.completed"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type,
            "cid": self.cid,
            "server_id": self.server_id,
            "outcome": self.outcome,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class SyncErrorEvent:
    """Event emitted when a remote sync attempt fails."""
    cid: str
    error: str
    error_type: str
    timestamp: datetime = field(default_factory=datetime.now)
    event_type: str = "sync.error"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type,
            "cid": self.cid,
            "error": self.error,
            "error_type": self.error_type,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class BatchSyncCompletedEvent:
    """Event emitted when a sync_all() batch has settled."""
    total: int
    outcomes: Dict[str, int] = field(default_factory=dict)  # outcome -> count
    timestamp: datetime = field(default_factory=datetime.now)
    event_type: str = "sync.batch_completed"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type,
            "total": self.total,
            "outcomes": dict(self.outcomes),
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
