"""Pydantic models for the enrichment pipeline.

Defines data structures for:
- Enrichment signals (typed observations about one place)
- Encyclopedia pages, photos and ratings returned by upstream services
- Map-feature candidates and verification outcomes
- Media fetch results
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SignalKind(str, Enum):
    """Kinds of facts an enrichment source can report."""
    ENCYCLOPEDIA_PAGE = "encyclopedia_page"
    PHOTO_SET = "photo_set"
    RATING = "rating"
    VERIFICATION_MATCH = "verification_match"


class SignalSource(str, Enum):
    """Upstream services signals come from."""
    WIKIPEDIA = "wikipedia"
    WIKIMEDIA = "wikimedia"
    GOOGLE_PLACES = "google_places"
    NOMINATIM = "nominatim"
    CATALOG = "catalog"


class EnrichmentSignal(BaseModel):
    """One observation from one source for one place. Never mutated."""
    model_config = ConfigDict(extra='forbid', frozen=True)

    kind: SignalKind
    source: SignalSource
    payload: Dict[str, Any] = Field(default_factory=dict)
    observed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class EncyclopediaPage(BaseModel):
    """An article located for a place, with its derived secondary fields."""
    model_config = ConfigDict(extra='forbid')

    language: str
    title: str
    page_id: Optional[int] = None
    summary: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    average_views: Optional[float] = None
    languages: List[str] = Field(default_factory=list)
    infobox: Optional[Dict[str, str]] = None
    score: float = 0

    @property
    def reference(self) -> str:
        """Reference in "lang:Title" form."""
        return f"{self.language}:{self.title}"

    @property
    def url(self) -> str:
        return f"https://{self.language}.wikipedia.org/wiki/{self.title.replace(' ', '_')}"

    def to_signal(self) -> EnrichmentSignal:
        return EnrichmentSignal(
            kind=SignalKind.ENCYCLOPEDIA_PAGE,
            source=SignalSource.WIKIPEDIA,
            payload=self.model_dump(mode="json"),
        )


class PhotoItem(BaseModel):
    """A photo reference returned by a media source."""
    model_config = ConfigDict(extra='forbid')

    url: str
    attribution: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


class RatingInfo(BaseModel):
    """A third-party rating for a place."""
    model_config = ConfigDict(extra='forbid')

    rating: float
    rating_count: int
    provider_id: Optional[str] = None


class MediaSource(str, Enum):
    """Where a media fetch got its photos from."""
    WIKIMEDIA = "wikimedia"
    GOOGLE_PLACES = "google_places"
    NONE = "none"


class FetchResult(BaseModel):
    """Outcome of fetching media for one place."""
    model_config = ConfigDict(extra='forbid')

    place_id: str
    place_name: Optional[str] = None
    success: bool
    photos_found: int = 0
    source: MediaSource = MediaSource.NONE
    error: Optional[str] = None


class MatchOutcome(str, Enum):
    """Terminal result of one verification attempt. Never retried automatically."""
    ADDED = "ADDED"
    NO_MATCH = "NO_MATCH"
    NO_NATURE_MATCH = "NO_NATURE_MATCH"          # Found, rejected by the domain filter
    MULTIPLE_MATCHES = "MULTIPLE_MATCHES"        # Ambiguous or low confidence, human review


class CandidateMatch(BaseModel):
    """A map feature reduced from a raw search result."""
    model_config = ConfigDict(extra='forbid')

    external_id: str
    name: str
    category: str                                # e.g. "natural", "leisure"
    place_type: str                              # e.g. "peak", "nature_reserve"
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    geometry: Optional[Dict[str, Any]] = None
    tags: Dict[str, str] = Field(default_factory=dict)


class FeatureSearchResult(BaseModel):
    """Raw answer of the feature service to a free-text search."""
    model_config = ConfigDict(extra='forbid')

    elements: List[Dict[str, Any]] = Field(default_factory=list)
    no_domain_match: bool = False                # Results existed, none passed the filter


class VerificationResult(BaseModel):
    """What happened to one candidate name."""
    model_config = ConfigDict(extra='forbid')

    outcome: MatchOutcome
    place_id: Optional[str] = None
    external_id: Optional[str] = None
    similarity: Optional[float] = None
    reason: Optional[str] = None
    generated_place_id: Optional[str] = None
    name: Optional[str] = None


class RatingsFetchResult(BaseModel):
    """Outcome of fetching the rating of one place."""
    model_config = ConfigDict(extra='forbid')

    place_id: str
    place_name: Optional[str] = None
    success: bool = False
    skipped: bool = False
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    provider_id: Optional[str] = None
    error: Optional[str] = None


class CleanupCandidate(BaseModel):
    """A place whose stored article title does not look like its name."""
    model_config = ConfigDict(extra='forbid')

    place_id: str
    name: str
    reference: str
    similarity: float


class CleanupReport(BaseModel):
    """What one encyclopedia cleanup pass found and removed."""
    model_config = ConfigDict(extra='forbid')

    checked: int = 0
    invalid: List[CleanupCandidate] = Field(default_factory=list)
    manual_review: List[CleanupCandidate] = Field(default_factory=list)
    removed: int = 0
