"""
Warehouse key tables.

Maps local attribute names onto warehouse field ids and, optionally, local
values onto warehouse values. Tables are immutable and handed to the
submission builder at call time; extend() returns a new table.

Usage:
    keys = DEFAULT_KEYS.extend(
        sample={"weather": FieldKey("smpAttr:12")},
        occurrence={"stage": FieldKey("occAttr:3", values={"adult": 1, "larva": 2})},
    )
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Union

# (value, submission, entity) -> warehouse value
ValueTransform = Callable[[Any, Dict[str, Any], Any], Any]


@dataclass(frozen=True)
class FieldKey:
    """
    One warehouse field mapping.

    Attributes:
        id: Warehouse field id; None keeps the local attribute name
        values: Discrete value lookup or a transform callable
    """
    id: Optional[str] = None
    values: Optional[Union[Mapping[Any, Any], ValueTransform]] = None

    def __post_init__(self):
        if self.values is not None and not callable(self.values):
            object.__setattr__(self, "values", MappingProxyType(dict(self.values)))


KeyTable = Mapping[str, FieldKey]


def _freeze(table: Optional[Mapping[str, Any]]) -> KeyTable:
    frozen: Dict[str, FieldKey] = {}
    for name, key in (table or {}).items():
        if isinstance(key, FieldKey):
            frozen[name] = key
        elif isinstance(key, Mapping):
            frozen[name] = FieldKey(id=key.get("id"), values=key.get("values"))
        else:
            raise TypeError(f"Invalid key definition for '{name}': {key!r}")
    return MappingProxyType(frozen)


def _merge(base: KeyTable, extra: Optional[Mapping[str, Any]]) -> KeyTable:
    if not extra:
        return base
    merged = dict(base)
    for name, key in _freeze(extra).items():
        previous = merged.get(name)
        if previous is None:
            merged[name] = key
            continue
        # deep merge: static lookups are combined, anything else replaces
        values = key.values if key.values is not None else previous.values
        if (
            isinstance(key.values, Mapping)
            and isinstance(previous.values, Mapping)
        ):
            values = {**previous.values, **key.values}
        merged[name] = FieldKey(id=key.id or previous.id, values=values)
    return MappingProxyType(merged)


@dataclass(frozen=True)
class WarehouseKeys:
    """Key tables for every entity kind."""
    sample: KeyTable = field(default_factory=lambda: MappingProxyType({}))
    occurrence: KeyTable = field(default_factory=lambda: MappingProxyType({}))
    media: KeyTable = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def create(
        cls,
        sample: Optional[Mapping[str, Any]] = None,
        occurrence: Optional[Mapping[str, Any]] = None,
        media: Optional[Mapping[str, Any]] = None,
    ) -> 'WarehouseKeys':
        """Build tables from FieldKey objects or {"id": ..., "values": ...} dicts."""
        return cls(sample=_freeze(sample), occurrence=_freeze(occurrence), media=_freeze(media))

    def extend(
        self,
        sample: Optional[Mapping[str, Any]] = None,
        occurrence: Optional[Mapping[str, Any]] = None,
        media: Optional[Mapping[str, Any]] = None,
    ) -> 'WarehouseKeys':
        """Return new tables with the given entries merged over these ones."""
        return WarehouseKeys(
            sample=_merge(self.sample, sample),
            occurrence=_merge(self.occurrence, occurrence),
            media=_merge(self.media, media),
        )

    def for_kind(self, kind: str) -> KeyTable:
        """Get the table for an entity kind ("sample", "occurrence", "media")."""
        try:
            return getattr(self, kind)
        except AttributeError:
            raise ValueError(f"Unknown entity kind: {kind}") from None


DEFAULT_KEYS = WarehouseKeys.create(
    sample={
        "date": FieldKey("date"),
        "sample_method_id": FieldKey("sample_method_id"),
        "location": FieldKey("entered_sref"),
        "location_type": FieldKey(
            "entered_sref_system",
            values={
                "british": "OSGB",  # British National Grid
                "irish": "OSIE",  # Irish Grid
                "channel": "utm30ed50",  # Channel Islands Grid
                "latlon": 4326,  # WGS84 decimal lat/lon
            },
        ),
        "form": FieldKey("input_form"),
        "group": FieldKey("group_id"),
        "comment": FieldKey("comment"),
    },
    occurrence={
        "taxon": FieldKey("taxa_taxon_list_id"),
        "comment": FieldKey("comment"),
    },
)
