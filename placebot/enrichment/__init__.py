"""Enrichment services for catalog places.

- Encyclopedia: Wikipedia article, categories, views, languages, infobox
- Media: photos from Wikimedia Commons, then Google Places
- Ratings: Google Places rating and review count
- Verification: generated place names matched against OSM features
- Scoring: deterministic two-component place score
- Batch drivers running each service over the catalog

Usage:
    from placebot.enrichment import MediaFallbackOrchestrator, ScoringEngine
"""

from placebot.enrichment.encyclopedia import EncyclopediaEnrichment
from placebot.enrichment.match_resolver import MatchResolver
from placebot.enrichment.media_fallback import MediaFallbackOrchestrator
from placebot.enrichment.models import (
    EncyclopediaPage,
    EnrichmentSignal,
    FetchResult,
    MatchOutcome,
    MediaSource,
    SignalKind,
    VerificationResult,
)
from placebot.enrichment.ratings import RatingsFetcher
from placebot.enrichment.scoring import ScoreService, ScoringEngine

__all__ = [
    # Services
    "EncyclopediaEnrichment",
    "MediaFallbackOrchestrator",
    "RatingsFetcher",
    "MatchResolver",
    "ScoringEngine",
    "ScoreService",
    # Models
    "EnrichmentSignal",
    "SignalKind",
    "EncyclopediaPage",
    "FetchResult",
    "MediaSource",
    "MatchOutcome",
    "VerificationResult",
]
