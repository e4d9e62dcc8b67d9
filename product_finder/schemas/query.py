"""Input modalities accepted by the search pipeline.

``SearchQuery`` is a closed union: the normalizer matches on it exhaustively,
so adding a modality means adding a variant here and a case there.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union


@dataclass(frozen=True)
class TextQuery:
    text: str


@dataclass(frozen=True)
class ImageQuery:
    content: bytes
    content_type: Optional[str] = None
    filename: Optional[str] = None


@dataclass(frozen=True)
class AudioQuery:
    content: bytes
    content_type: Optional[str] = None
    filename: Optional[str] = None


SearchQuery = Union[TextQuery, ImageQuery, AudioQuery]


@dataclass
class NormalizedQuery:
    query_text: str
    vector: List[float] = field(default_factory=list)
    modality: str = "text"
