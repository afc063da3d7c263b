"""Wires settings, the catalog and the HTTP client into the enrichment services.

Usage:
------
settings = load_settings()
async with build_http_client(settings.http) as http:
    runtime = Runtime(settings, SQLiteCatalog(settings.database_path), http)
    stats = await fetch_photos_batch(runtime.media(), runtime.catalog)
"""

from typing import Optional

import httpx

from placebot.catalog.store import SQLiteCatalog
from placebot.core.cache import SourceCache
from placebot.core.retry import RetryExecutor
from placebot.enrichment.encyclopedia import EncyclopediaEnrichment
from placebot.enrichment.feature_client import FeatureClient
from placebot.enrichment.http_client import ServiceClient
from placebot.enrichment.match_resolver import MatchResolver
from placebot.enrichment.media_clients import GooglePlacesClient, WikimediaClient
from placebot.enrichment.media_fallback import MediaFallbackOrchestrator
from placebot.enrichment.ratings import RatingsFetcher
from placebot.enrichment.scoring import ScoreService, ScoringEngine
from placebot.enrichment.wikipedia_client import WikipediaClient
from placebot.settings import Settings


class Runtime:
    """Builds services on demand from one Settings instance."""

    def __init__(
        self,
        settings: Settings,
        catalog: SQLiteCatalog,
        http: httpx.AsyncClient,
        executor: Optional[RetryExecutor] = None,
    ):
        self.settings = settings
        self.catalog = catalog
        self.http = http
        self.executor = executor or RetryExecutor(settings.retry)
        self.engine = ScoringEngine(settings.scoring)
        self.scores = ScoreService(catalog, self.engine)

    def service(self, name: str) -> ServiceClient:
        return ServiceClient(
            name,
            self.http,
            executor=self.executor,
            min_interval=self.settings.http.min_interval.get(name, 0.0),
        )

    def cache(self, namespace: str) -> Optional[SourceCache]:
        if not self.settings.cache.enabled:
            return None
        return SourceCache(self.settings.cache.directory, namespace)

    def google(self) -> GooglePlacesClient:
        """Google Places client. Raises ConfigurationError without an API key."""
        media = self.settings.media
        return GooglePlacesClient(
            self.service("google_places"),
            self.settings.require_google_places_key(),
            max_photos=media.max_photos,
            bias_radius_m=media.location_bias_radius_m,
            photo_max_px=media.photo_max_px,
        )

    def encyclopedia(self) -> EncyclopediaEnrichment:
        config = self.settings.encyclopedia
        return EncyclopediaEnrichment(
            WikipediaClient(self.service("wikipedia")),
            engine=self.engine,
            cache=self.cache("wikipedia"),
            primary_language=config.primary_language,
            fallback_language=config.fallback_language,
            extract_max_chars=config.extract_max_chars,
            pageview_days=config.pageview_days,
        )

    def media(self) -> MediaFallbackOrchestrator:
        media = self.settings.media
        google = self.google()
        wikimedia = WikimediaClient(
            self.service("wikimedia"),
            radius_m=media.geosearch_radius_m,
            max_photos=media.max_photos,
            thumb_width=media.photo_max_px,
        )
        return MediaFallbackOrchestrator(
            self.catalog, wikimedia, google, rules=self.settings.scoring
        )

    def ratings(self) -> RatingsFetcher:
        return RatingsFetcher(
            self.catalog,
            self.google(),
            self.scores,
            refresh_after_days=self.settings.ratings.refresh_after_days,
        )

    def resolver(self) -> MatchResolver:
        verification = self.settings.verification
        features = FeatureClient(
            self.service("nominatim"),
            country_codes=verification.country_codes,
            limit=verification.search_limit,
        )
        return MatchResolver(
            self.catalog, features, rules=self.settings.scoring, settings=verification
        )
