"""
Entity - shared record shape for every survey entity kind.

An entity is a client id, an optional warehouse id, a sparse attribute map
and sync metadata. Samples, occurrences and media only add their child
collections on top; nothing below the root holds a reference to its parent.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple, TYPE_CHECKING

from ..status import SyncStatus, resolve_sync_status
from ..utils import new_client_id, parse_datetime, to_jsonable

if TYPE_CHECKING:
    from ..keys import WarehouseKeys


# Optional record flags copied from sample metadata onto submissions
RECORD_FLAGS = (
    "training",
    "release_status",
    "record_status",
    "sensitive",
    "confidential",
    "sensitivity_precision",
)


@dataclass
class Metadata:
    """Sync and survey metadata of an entity."""
    created_on: datetime = field(default_factory=datetime.now)
    updated_on: Optional[datetime] = None
    synced_on: Optional[datetime] = None  # set once fully synced
    server_on: Optional[datetime] = None  # last change on the server
    survey_id: Optional[int] = None
    input_form: Optional[str] = None
    training: Optional[bool] = None
    sensitive: Optional[bool] = None
    confidential: Optional[bool] = None
    release_status: Optional[str] = None
    record_status: Optional[str] = None
    sensitivity_precision: Optional[int] = None

    def __post_init__(self):
        if self.updated_on is None:
            self.updated_on = self.created_on

    def record_flags(self) -> Dict[str, Any]:
        """Get the populated record flags (training, sensitive, ...)."""
        return {
            name: getattr(self, name)
            for name in RECORD_FLAGS
            if getattr(self, name)
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {f.name: to_jsonable(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Metadata':
        """Create Metadata from dictionary, ignoring unknown keys."""
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        for name in ("created_on", "updated_on", "synced_on", "server_on"):
            if name in values:
                values[name] = parse_datetime(values[name])
        if values.get("created_on") is None:
            values.pop("created_on", None)
        return cls(**values)


class Entity:
    """
    Base record for samples, occurrences and media.

    Attributes:
        cid: Client id, assigned at creation and never changed
        id: Warehouse id, None until the record has been created remotely
        attributes: Sparse name -> value mapping
        metadata: Sync and survey metadata
        synchronising: Transient in-flight flag, never persisted
    """

    kind = "entity"

    # child collection attribute names, in submission order
    child_kinds: Tuple[str, ...] = ()

    def __init__(
        self,
        attributes: Optional[Dict[str, Any]] = None,
        cid: Optional[str] = None,
        id: Optional[int] = None,
        metadata: Optional[Metadata] = None,
    ):
        self.cid = cid or new_client_id()
        self.id = id
        self.attributes: Dict[str, Any] = dict(attributes or {})
        self.metadata = metadata or Metadata()
        self.synchronising = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(cid={self.cid!r}, id={self.id!r})"

    # ==================== Identity ====================

    def get_id(self) -> Any:
        """Get the collection identity: warehouse id if present, else client id."""
        return self.id if self.id is not None else self.cid

    def is_new(self) -> bool:
        """True when the record has no warehouse id yet."""
        return self.id is None

    # ==================== Attributes ====================

    def get(self, name: str, default: Any = None) -> Any:
        """Get an attribute value."""
        return self.attributes.get(name, default)

    def set(self, name: str, value: Any) -> None:
        """Set an attribute and bump updated_on."""
        self.attributes[name] = value
        self.touch()

    def update(self, values: Optional[Dict[str, Any]] = None, **kwargs: Any) -> None:
        """Set several attributes at once."""
        self.attributes.update(values or {}, **kwargs)
        self.touch()

    def unset(self, name: str) -> None:
        """Remove an attribute if present."""
        if name in self.attributes:
            del self.attributes[name]
            self.touch()

    def touch(self) -> None:
        """Mark the record as changed locally."""
        self.metadata.updated_on = datetime.now()

    # ==================== Tree ====================

    def children(self) -> Iterator['Entity']:
        """Iterate direct children across all child collections."""
        for kind in self.child_kinds:
            yield from getattr(self, kind)

    def walk(self) -> Iterator['Entity']:
        """Depth-first iteration over this entity and its whole subtree."""
        yield self
        for child in self.children():
            yield from child.walk()

    def find(self, cid: str) -> Optional['Entity']:
        """Find an entity in the subtree by client id."""
        for entity in self.walk():
            if entity.cid == cid:
                return entity
        return None

    def find_parent(self, cid: str) -> Optional['Entity']:
        """Find the entity whose child collection holds the given client id."""
        for entity in self.walk():
            for kind in entity.child_kinds:
                if getattr(entity, kind).has(cid):
                    return entity
        return None

    def remove_child(self, child: 'Entity') -> bool:
        """
        Detach a descendant from its parent collection.

        Returns:
            True if the descendant was found and removed
        """
        parent = self.find_parent(child.cid)
        if parent is None:
            return False
        for kind in parent.child_kinds:
            if getattr(parent, kind).remove(child.cid) is not None:
                return True
        return False

    # ==================== Sync ====================

    def get_sync_status(self) -> SyncStatus:
        """Resolve the current sync lifecycle state."""
        return resolve_sync_status(self.id, self.metadata, self.synchronising)

    def get_submission(
        self,
        keys: Optional['WarehouseKeys'] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Dict[str, Any], List['Entity']]:
        """Render this entity for the warehouse. See submission.build_submission."""
        from ..submission import build_submission
        return build_submission(self, keys, options)

    def mark_synced(self, when: Optional[datetime] = None) -> None:
        """Stamp server_on, updated_on and synced_on on the whole subtree."""
        when = when or datetime.now()
        for entity in self.walk():
            entity.metadata.server_on = when
            entity.metadata.updated_on = when
            entity.metadata.synced_on = when

    def apply_server_ids(self, remote_ids: Dict[str, int]) -> int:
        """
        Assign warehouse ids to every subtree entity whose cid is mapped.

        An id that is already set is never replaced.

        Returns:
            Number of entities that received an id
        """
        assigned = 0
        for entity in self.walk():
            remote_id = remote_ids.get(entity.cid)
            if remote_id is None:
                continue
            if entity.id is None:
                entity.id = remote_id
                assigned += 1
        return assigned

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        """Deep plain-data snapshot of this entity and its children."""
        data = {
            "id": self.id,
            "cid": self.cid,
            "metadata": self.metadata.to_dict(),
            "attributes": to_jsonable(self.attributes),
        }
        for kind in self.child_kinds:
            data[kind] = getattr(self, kind).to_list()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Entity':
        """Rebuild an entity (and its subtree) from to_dict() output."""
        return cls(
            attributes=data.get("attributes"),
            cid=data.get("cid"),
            id=data.get("id"),
            metadata=Metadata.from_dict(data.get("metadata")),
        )
