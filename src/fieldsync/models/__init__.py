"""
Survey entity tree: Sample -> (Sample | Occurrence | Media), Occurrence -> Media.
"""

from .entity import Entity, Metadata, RECORD_FLAGS
from .media import Media
from .occurrence import Occurrence
from .sample import Sample

__all__ = [
    "Entity",
    "Metadata",
    "RECORD_FLAGS",
    "Media",
    "Occurrence",
    "Sample",
]
