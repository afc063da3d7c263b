"""Pydantic models for catalog records.

Defines data structures for:
- Places and their two-component score
- Stored photos
- Generated (staging) places awaiting verification
- Stored encyclopedia pages
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class ScoreComponent(str, Enum):
    """The two independently maintained parts of a place score."""
    SOURCE = "source"             # Provenance: how the place entered the catalog
    ENHANCEMENT = "enhancement"   # Enrichment signals gathered afterwards


class ScoreBreakdown(BaseModel):
    """Immutable pair of score components. The total is always derived.

    Example:
        >>> ScoreBreakdown(source_score=1, enhancement_score=4).bump(ScoreComponent.ENHANCEMENT, 2).as_fields()
        {'source_score': 1, 'enhancement_score': 6, 'score': 7}
    """
    model_config = ConfigDict(frozen=True, extra='forbid')

    source_score: float = 0
    enhancement_score: float = 0

    @property
    def total(self) -> float:
        return self.source_score + self.enhancement_score

    def bump(self, component: ScoreComponent, delta: float) -> "ScoreBreakdown":
        """Return a copy with `delta` added to one component."""
        if component is ScoreComponent.SOURCE:
            return self.model_copy(update={"source_score": self.source_score + delta})
        return self.model_copy(update={"enhancement_score": self.enhancement_score + delta})

    def as_fields(self) -> Dict[str, float]:
        """The three place columns written together on every score update."""
        return {
            "source_score": self.source_score,
            "enhancement_score": self.enhancement_score,
            "score": self.total,
        }


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class Place(BaseModel):
    """A place in the catalog.

    `score` is stored for ordering and listing only. Anything that changes a
    score goes through `scores` / `ScoreBreakdown` and writes all three
    fields back together.
    """
    model_config = ConfigDict(extra='forbid')

    id: str = Field(default_factory=_new_id)
    name: Optional[str] = None
    external_id: Optional[str] = None          # OSM id of the matching map feature
    place_type: Optional[str] = None
    description: Optional[str] = None
    country: Optional[str] = None
    website: Optional[str] = None
    geometry: Optional[Dict[str, Any]] = None  # GeoJSON geometry
    metadata: Dict[str, Any] = Field(default_factory=dict)
    source_id: Optional[str] = None

    source_score: float = 0
    enhancement_score: float = 0
    score: float = 0

    photos_fetched_at: Optional[datetime] = None
    media_provider_id: Optional[str] = None    # Google Places id
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    rating_fetched_at: Optional[datetime] = None

    encyclopedia_reference: Optional[str] = None   # "lang:Title"
    encyclopedia_analyzed_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=_now)

    @property
    def scores(self) -> ScoreBreakdown:
        return ScoreBreakdown(
            source_score=self.source_score,
            enhancement_score=self.enhancement_score,
        )


class PlacePhoto(BaseModel):
    """A photo stored for a place."""
    model_config = ConfigDict(extra='forbid')

    id: Optional[int] = None
    place_id: str
    url: str
    source: str
    attribution: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    is_primary: bool = False


class GeneratedPlace(BaseModel):
    """A staging record: a place name mentioned by some source, not yet verified.

    `status` holds a MatchOutcome value once a verification attempt finished.
    """
    model_config = ConfigDict(extra='forbid')

    id: str = Field(default_factory=_new_id)
    name: Optional[str] = None
    description: Optional[str] = None
    source_id: Optional[str] = None
    status: Optional[str] = None
    place_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)


class EncyclopediaRecord(BaseModel):
    """Stored encyclopedia page for a place."""
    model_config = ConfigDict(extra='forbid')

    place_id: str
    reference: str                     # "lang:Title"
    language: str
    title: str
    page_id: Optional[int] = None
    summary: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    average_views: Optional[float] = None
    languages: List[str] = Field(default_factory=list)
    infobox: Optional[Dict[str, str]] = None
    score: float = 0                   # views tier + language tier
    fetched_at: datetime = Field(default_factory=_now)
