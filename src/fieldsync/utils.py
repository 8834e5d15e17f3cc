"""
Shared utility functions for fieldsync
Pattern: Centralized utilities to avoid duplication
"""

import uuid
from datetime import date, datetime
from typing import Any, Optional, Union


def new_client_id() -> str:
    """
    Generate a new client id for a locally created record.

    Returns:
        Random UUID4 string, never reused
    """
    return str(uuid.uuid4())


def is_empty(value: Any) -> bool:
    """
    Check whether an attribute value counts as "not populated".

    None, empty strings and empty containers are empty. Zero and False are
    real values and are kept.

    Examples:
        >>> is_empty("")
        True
        >>> is_empty(0)
        False
    """
    if value is None:
        return True
    if isinstance(value, (str, bytes, list, tuple, dict, set)):
        return len(value) == 0
    return False


def to_jsonable(value: Any) -> Any:
    """
    Convert a value to plain JSON-compatible data.

    Dates and datetimes become ISO strings; containers are converted
    recursively. Anything else is returned unchanged.
    """
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse an ISO timestamp as written by to_jsonable().

    Args:
        value: ISO string, datetime or None

    Returns:
        datetime or None

    Raises:
        ValueError: If the string is not an ISO timestamp
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Parse a date attribute, accepting ISO dates and datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return date.fromisoformat(text)
