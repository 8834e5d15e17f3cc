"""
Sample - the survey event: place, date, recorder and conditions.

A sample owns zero or more occurrences (the sightings), nested sub-samples
and media. The whole tree is persisted under the root sample's client id.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from ..collection import Collection
from .entity import Entity, Metadata
from .media import Media
from .occurrence import Occurrence


class Sample(Entity):
    """Root (or nested) survey sample."""

    kind = "sample"
    child_kinds = ("samples", "occurrences", "media")

    def __init__(
        self,
        attributes: Optional[Dict[str, Any]] = None,
        cid: Optional[str] = None,
        id: Optional[int] = None,
        metadata: Optional[Metadata] = None,
        samples: Optional[List['Sample']] = None,
        occurrences: Optional[List[Occurrence]] = None,
        media: Optional[List[Media]] = None,
        survey_id: Optional[int] = None,
        input_form: Optional[str] = None,
        apply_defaults: bool = True,
    ):
        """
        Args:
            attributes: Initial attributes; date and location_type default
                        to today and "latlon"
            cid: Client id, generated when omitted
            id: Warehouse id
            metadata: Existing metadata, fresh timestamps when omitted
            samples: Nested sub-samples
            occurrences: Occurrences
            media: Media attachments
            survey_id: Survey id for fresh metadata
            input_form: Input form for fresh metadata
            apply_defaults: Set default attributes (off when rebuilding)
        """
        attrs: Dict[str, Any] = {}
        if apply_defaults:
            attrs = {"date": date.today(), "location_type": "latlon"}
        attrs.update(attributes or {})

        if metadata is None:
            metadata = Metadata(survey_id=survey_id, input_form=input_form)

        super().__init__(attrs, cid=cid, id=id, metadata=metadata)

        self.samples = Collection(samples, model=Sample)
        self.occurrences = Collection(occurrences, model=Occurrence)
        self.media = Collection(media, model=Media)

    # ==================== Children ====================

    def add_sample(self, sample: Optional['Sample']) -> None:
        """Add a sub-sample."""
        if sample is None:
            return
        self.samples.set(sample)

    def add_occurrence(self, occurrence: Optional[Occurrence]) -> None:
        """Add an occurrence."""
        if occurrence is None:
            return
        self.occurrences.set(occurrence)

    def add_media(self, media: Optional[Media]) -> None:
        """Attach a media record."""
        if media is None:
            return
        self.media.set(media)

    def get_sample(self, index: int = 0) -> Optional['Sample']:
        return self.samples.at(index)

    def get_occurrence(self, index: int = 0) -> Optional[Occurrence]:
        return self.occurrences.at(index)

    def get_media(self, index: int = 0) -> Optional[Media]:
        return self.media.at(index)

    def has_occurrences(self) -> bool:
        """True if the subtree holds at least one occurrence."""
        if len(self.occurrences):
            return True
        return any(sample.has_occurrences() for sample in self.samples)

    # ==================== Serialization ====================

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Sample':
        """Rebuild a sample tree from to_dict() output."""
        return cls(
            attributes=data.get("attributes"),
            cid=data.get("cid"),
            id=data.get("id"),
            metadata=Metadata.from_dict(data.get("metadata")),
            samples=[cls.from_dict(s) for s in data.get("samples") or []],
            occurrences=[Occurrence.from_dict(o) for o in data.get("occurrences") or []],
            media=[Media.from_dict(m) for m in data.get("media") or []],
            apply_defaults=False,
        )
