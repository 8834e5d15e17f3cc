"""
Occurrence - one species sighting within a sample.
"""

from typing import Any, Dict, List, Optional

from ..collection import Collection
from .entity import Entity, Metadata
from .media import Media


class Occurrence(Entity):
    """A sighting, owning its own media attachments."""

    kind = "occurrence"
    child_kinds = ("media",)

    def __init__(
        self,
        attributes: Optional[Dict[str, Any]] = None,
        cid: Optional[str] = None,
        id: Optional[int] = None,
        metadata: Optional[Metadata] = None,
        media: Optional[List[Media]] = None,
    ):
        super().__init__(attributes, cid=cid, id=id, metadata=metadata)
        self.media = Collection(media, model=Media)

    def add_media(self, media: Optional[Media]) -> None:
        """Attach a media record."""
        if media is None:
            return
        self.media.set(media)

    def get_media(self, index: int = 0) -> Optional[Media]:
        """Get the media record at a position."""
        return self.media.at(index)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Occurrence':
        """Rebuild an occurrence and its media from to_dict() output."""
        return cls(
            attributes=data.get("attributes"),
            cid=data.get("cid"),
            id=data.get("id"),
            metadata=Metadata.from_dict(data.get("metadata")),
            media=[Media.from_dict(m) for m in data.get("media") or []],
        )
