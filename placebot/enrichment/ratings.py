"""Third-party ratings for catalog places (Google Places).

A place is (re)fetched when it was never fetched or its last fetch is
older than the refresh window. Every completed attempt stamps
`rating_fetched_at`, found or not, so batch runs skip the place until the
window expires again. A found rating is stored and the score recomputed.

Usage:
------
fetcher = RatingsFetcher(catalog, google, ScoreService(catalog, engine))
result = await fetcher.fetch_ratings_for_place(place)
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from placebot.catalog.geometry import geometry_center
from placebot.catalog.models import Place
from placebot.catalog.store import CatalogStore
from placebot.enrichment.media_clients import GooglePlacesClient
from placebot.enrichment.models import RatingsFetchResult
from placebot.enrichment.scoring import ScoreService
from placebot.utils.logger import LoggerManager


DEFAULT_REFRESH_AFTER_DAYS = 182


class RatingsFetcher:
    """Fetches, stores and scores Google Places ratings."""

    def __init__(
        self,
        catalog: CatalogStore,
        google: GooglePlacesClient,
        scores: ScoreService,
        refresh_after_days: int = DEFAULT_REFRESH_AFTER_DAYS,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.catalog = catalog
        self.google = google
        self.scores = scores
        self.refresh_after = timedelta(days=refresh_after_days)
        self.now = now
        self.logger = LoggerManager.get_logger(__name__)

    def stale_before(self) -> datetime:
        return self.now() - self.refresh_after

    def should_fetch(self, place: Place) -> bool:
        fetched_at = place.rating_fetched_at
        if fetched_at is None:
            return True
        if fetched_at.tzinfo is None:
            fetched_at = fetched_at.replace(tzinfo=timezone.utc)
        return fetched_at < self.stale_before()

    async def fetch_ratings_for_place(self, place: Place) -> RatingsFetchResult:
        result = RatingsFetchResult(place_id=place.id, place_name=place.name)

        if not self.should_fetch(place):
            result.skipped = True
            result.error = "Ratings fetched recently"
            return result
        if not place.name:
            result.error = "Place has no name"
            return result

        try:
            provider_id = place.media_provider_id
            if not provider_id:
                center = geometry_center(place.geometry)
                lat, lon = center if center else (None, None)
                provider_id = await self.google.find_place_id(place.name, lat, lon)
            if not provider_id:
                result.error = "Google Place ID not found"
                self._mark_fetched(place)
                return result

            result.provider_id = provider_id
            info = await self.google.get_rating(provider_id)
            if info is None:
                result.error = "No ratings found"
                self._mark_fetched(place, provider_id)
                return result

            self._mark_fetched(
                place, provider_id, rating=info.rating, rating_count=info.rating_count
            )
            self.scores.recalculate_and_update(place.id)
            result.success = True
            result.rating = info.rating
            result.rating_count = info.rating_count
        except Exception as e:
            self.logger.error(
                "ratings.fetch.fail",
                extra={"extra_data": {"place_id": place.id, "error": str(e)}},
                exc_info=True,
            )
            result.error = str(e)

        self.logger.info(
            "ratings.fetch.done",
            extra={"extra_data": {
                "place_id": place.id,
                "success": result.success,
                "rating": result.rating,
                "rating_count": result.rating_count,
            }},
        )
        return result

    def _mark_fetched(
        self, place: Place, provider_id: Optional[str] = None, **rating_fields
    ) -> None:
        updates = {"rating_fetched_at": self.now(), **rating_fields}
        if provider_id and not place.media_provider_id:
            updates["media_provider_id"] = provider_id
        self.catalog.update_place(place.id, **updates)
