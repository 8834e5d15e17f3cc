"""
Media - a binary attachment of a sample or occurrence.

The payload itself is never stored in the JSON submission. Attributes:
    data: inline data URI, http(s) URL or local file path
    type: mime type ("image/jpeg") or bare extension ("jpeg")
"""

from typing import Any, Optional

from .entity import Entity


class Media(Entity):
    """A media attachment."""

    kind = "media"

    # payload attributes, never rendered into the JSON submission
    PAYLOAD_ATTRIBUTES = ("data", "type")

    @classmethod
    def create(
        cls,
        data: str,
        media_type: str,
        cid: Optional[str] = None,
        **attributes: Any,
    ) -> 'Media':
        """Shortcut for Media({"data": data, "type": media_type, ...})."""
        return cls({"data": data, "type": media_type, **attributes}, cid=cid)

    def get_url(self) -> Optional[str]:
        """Get the payload reference (data URI, URL or path)."""
        return self.attributes.get("data")

    @property
    def media_type(self) -> Optional[str]:
        return self.attributes.get("type")
