"""
Submission Builder

Renders an entity tree into the warehouse submission format:

    {
        "id": None,                      # warehouse id, None until created
        "external_key": "<cid>",
        "survey_id": 1, "input_form": "enter-app-record",   # samples only
        "fields": {"entered_sref": "51.5, -0.1", ...},
        "media": [{"id": None, "external_key": "<media cid>", "name": "<media cid>", "fields": {}}],
        "occurrences": [...],             # samples only
        "samples": [...],                 # samples only
    }

Binary payloads never go into the JSON. The media entities are returned
next to the submission as a flat list so the transport can send them as
separate multipart parts named by their client ids.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple, TYPE_CHECKING

from .keys import DEFAULT_KEYS, KeyTable, WarehouseKeys
from .utils import is_empty, to_jsonable

if TYPE_CHECKING:
    from .models.entity import Entity

logger = logging.getLogger(__name__)

# attributes sent raw without a warning when they have no key entry
SILENT_UNMAPPED = {"email"}


def _transform(
    key_values: Any,
    value: Any,
    submission: Dict[str, Any],
    entity: 'Entity',
) -> Any:
    if callable(key_values):
        return key_values(value, submission, entity)
    if isinstance(value, (list, tuple)):
        # multi-value attribute
        return [key_values.get(v) for v in value]
    return key_values.get(value)


def build_fields(
    entity: 'Entity',
    table: KeyTable,
    submission: Dict[str, Any],
    skip: Tuple[str, ...] = (),
) -> Dict[str, Any]:
    """
    Map populated attributes onto warehouse fields.

    Args:
        entity: Entity whose attributes are mapped
        table: Key table for the entity kind
        submission: Submission under construction (passed to transforms)
        skip: Attribute names never rendered

    Returns:
        Warehouse field dict
    """
    fields: Dict[str, Any] = {}

    for name, value in entity.attributes.items():
        # falsy values (0 and False included) are never sent
        if name in skip or not value:
            continue

        key = table.get(name)
        if key is None:
            if name not in SILENT_UNMAPPED:
                logger.warning(f"No warehouse key for attribute: {name}")
            fields[name] = to_jsonable(value)
            continue

        if key.values is not None:
            value = _transform(key.values, value, submission, entity)

        if isinstance(value, list):
            value = [v for v in value if not is_empty(v)]

        if not value:
            continue

        fields[key.id or name] = to_jsonable(value)

    return fields


def build_media_submission(
    media: 'Entity',
    keys: WarehouseKeys,
    options: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Metadata-only descriptor of a media entity."""
    from .models.media import Media

    submission: Dict[str, Any] = {
        "id": media.id,
        "external_key": media.cid,
        "name": media.cid,
    }
    submission["fields"] = build_fields(
        media, keys.media, submission, skip=Media.PAYLOAD_ATTRIBUTES
    )
    return submission


def build_submission(
    entity: 'Entity',
    keys: Optional[WarehouseKeys] = None,
    options: Optional[Mapping[str, Any]] = None,
) -> Tuple[Dict[str, Any], List['Entity']]:
    """
    Render an entity and its subtree for the warehouse.

    Never raises on incomplete records; use validation.validate_remote()
    to check remote validity.

    Args:
        entity: Sample, Occurrence or Media
        keys: Warehouse key tables (default: DEFAULT_KEYS)
        options: Record flags inherited from the enclosing sample

    Returns:
        (submission, media) where media lists every Media entity of the
        subtree, in the order their descriptors appear
    """
    keys = keys or DEFAULT_KEYS
    options = dict(options or {})

    if entity.kind == "media":
        return build_media_submission(entity, keys, options), [entity]

    submission: Dict[str, Any] = {
        "id": entity.id,
        "external_key": entity.cid,
    }

    if entity.kind == "sample":
        submission["survey_id"] = entity.metadata.survey_id
        submission["input_form"] = entity.metadata.input_form
        # children inherit the sample's record flags
        options.update(entity.metadata.record_flags())
    elif entity.kind == "occurrence":
        for name, value in options.items():
            if value:
                submission[name] = value

    submission["fields"] = build_fields(entity, keys.for_kind(entity.kind), submission)

    media: List['Entity'] = []

    # own media: descriptors in the JSON, entities in the flat list
    own_media = list(entity.media)
    submission["media"] = [build_media_submission(m, keys, options) for m in own_media]
    media.extend(own_media)

    if entity.kind == "sample":
        occurrences, occurrences_media = entity.occurrences.get_submission(keys, options)
        submission["occurrences"] = occurrences
        media.extend(occurrences_media)

        samples, samples_media = entity.samples.get_submission(keys, options)
        submission["samples"] = samples
        media.extend(samples_media)

    return submission, media
