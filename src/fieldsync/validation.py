"""
Remote validation.

Checks whether a sample tree can be submitted to the warehouse. Local
persistence never validates; only the remote sync path does.

Error shape (None when valid):
    {
        "attributes": {"location": "can't be blank", "occurrences": "no occurrences"},
        "samples": {"<cid>": {...}},
        "occurrences": {"<cid>": {...}},
        "media": {"<cid>": {...}},
    }
"""

from datetime import date
from typing import Any, Dict, Optional, TYPE_CHECKING

from .utils import is_empty, parse_date

if TYPE_CHECKING:
    from .models import Media, Occurrence, Sample

BLANK = "can't be blank"


def _child_errors(collection, validator) -> Dict[str, Any]:
    errors = {}
    for child in collection:
        child_errors = validator(child)
        if child_errors:
            errors[child.cid] = child_errors
    return errors


def _assemble(
    attributes: Dict[str, Any],
    samples: Optional[Dict[str, Any]] = None,
    occurrences: Optional[Dict[str, Any]] = None,
    media: Optional[Dict[str, Any]] = None,
) -> Optional[Dict[str, Any]]:
    errors: Dict[str, Any] = {}
    if media:
        errors["media"] = media
    if occurrences:
        errors["occurrences"] = occurrences
    if samples:
        errors["samples"] = samples
    if attributes:
        errors["attributes"] = attributes
    return errors or None


def _validate_date(value: Any) -> Optional[str]:
    if is_empty(value):
        return BLANK
    try:
        parsed = parse_date(value)
    except (TypeError, ValueError):
        return "invalid"
    if parsed > date.today():
        return "future date"
    return None


def validate_media(media: 'Media') -> Optional[Dict[str, Any]]:
    """Validate a media record: payload and type are required."""
    attributes = {}
    if is_empty(media.get("data")):
        attributes["data"] = BLANK
    if is_empty(media.get("type")):
        attributes["type"] = BLANK
    return _assemble(attributes)


def validate_occurrence(occurrence: 'Occurrence') -> Optional[Dict[str, Any]]:
    """Validate an occurrence and its media."""
    return _assemble({}, media=_child_errors(occurrence.media, validate_media))


def validate_sample(sample: 'Sample') -> Optional[Dict[str, Any]]:
    """Validate a sample tree recursively."""
    attributes: Dict[str, Any] = {}

    if is_empty(sample.get("location")):
        attributes["location"] = BLANK

    if is_empty(sample.get("location_type")):
        attributes["location_type"] = BLANK

    date_error = _validate_date(sample.get("date"))
    if date_error:
        attributes["date"] = date_error

    # sightings may hang off nested samples, each of which is checked itself
    if not len(sample.samples) and not len(sample.occurrences):
        attributes["occurrences"] = "no occurrences"

    return _assemble(
        attributes,
        samples=_child_errors(sample.samples, validate_sample),
        occurrences=_child_errors(sample.occurrences, validate_occurrence),
        media=_child_errors(sample.media, validate_media),
    )


def validate_remote(entity) -> Optional[Dict[str, Any]]:
    """
    Validate any entity kind for remote submission.

    Returns:
        Nested error dict, or None when the entity can be submitted
    """
    validators = {
        "sample": validate_sample,
        "occurrence": validate_occurrence,
        "media": validate_media,
    }
    try:
        validator = validators[entity.kind]
    except KeyError:
        raise ValueError(f"Unknown entity kind: {entity.kind}") from None
    return validator(entity)
