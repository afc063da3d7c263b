"""Photo fetching with an ordered fallback over media sources.

Sources are tried in order and the first one returning at least one photo
wins:
1. Wikimedia Commons (free, coordinates optional)
2. Google Places (needs coordinates, reuses a stored provider id)

Whatever happens after the name check, the place is stamped with
`photos_fetched_at` so batch runs do not pick it up again. The first
successful fetch for a place that had no photos also bumps its
enhancement score once.

Usage:
------
orchestrator = MediaFallbackOrchestrator(catalog, wikimedia, google, rules=settings.scoring)
result = await orchestrator.fetch_media_for_place(place)
print(result.success, result.source, result.photos_found)
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from placebot.catalog.geometry import LatLon, geometry_center
from placebot.catalog.models import Place, PlacePhoto, ScoreComponent
from placebot.catalog.store import CatalogStore
from placebot.core.fallback import SourceProbe, first_success
from placebot.enrichment.media_clients import GooglePlacesClient, WikimediaClient
from placebot.enrichment.models import (
    FetchResult,
    MediaSource,
    PhotoItem,
)
from placebot.settings import ScoreRules
from placebot.utils.logger import LoggerManager


NO_NAME_ERROR = "Place has no name"
NO_COORDINATES_ERROR = "No coordinates available for Google Places search"
NO_PHOTOS_ERROR = "No photos found"


@dataclass(frozen=True)
class MediaContext:
    """State captured once, before any source is tried."""
    place: Place
    coordinates: Optional[LatLon]
    had_photos_before: bool

    @property
    def has_coordinates(self) -> bool:
        return self.coordinates is not None


class MediaFallbackOrchestrator:
    """Fetches and stores photos for catalog places."""

    def __init__(
        self,
        catalog: CatalogStore,
        wikimedia: WikimediaClient,
        google: Optional[GooglePlacesClient] = None,
        rules: Optional[ScoreRules] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.catalog = catalog
        self.wikimedia = wikimedia
        self.google = google
        self.rules = rules or ScoreRules()
        self.now = now
        self.logger = LoggerManager.get_logger(__name__)

    @property
    def probes(self) -> List[SourceProbe[MediaContext, List[PhotoItem]]]:
        probes = [SourceProbe(name=MediaSource.WIKIMEDIA.value, fetch=self._wikimedia_photos)]
        if self.google is not None:
            probes.append(SourceProbe(
                name=MediaSource.GOOGLE_PLACES.value,
                fetch=self._google_photos,
                applies=lambda context: context.has_coordinates,
            ))
        return probes

    # -------------------------------------------------------------------------
    # Sources
    # -------------------------------------------------------------------------

    async def _wikimedia_photos(self, context: MediaContext) -> List[PhotoItem]:
        if context.coordinates:
            lat, lon = context.coordinates
            return await self.wikimedia.search_photos(context.place.name, lat, lon)
        return await self.wikimedia.search_photos(context.place.name)

    async def _google_photos(self, context: MediaContext) -> List[PhotoItem]:
        place = context.place
        lat, lon = context.coordinates
        provider_id = place.media_provider_id
        if not provider_id:
            provider_id = await self.google.find_place_id(place.name, lat, lon)
            if not provider_id:
                return []
            self._store_provider_id(place.id, provider_id)

        return await self.google.get_photos(provider_id)

    # -------------------------------------------------------------------------
    # Main flow
    # -------------------------------------------------------------------------

    async def fetch_media_for_place(self, place: Place) -> FetchResult:
        """Try each source in order and store the first photos found.

        Args:
            place: Catalog place to fetch photos for

        Returns:
            FetchResult with the winning source, or the reason nothing was stored
        """
        result = FetchResult(place_id=place.id, place_name=place.name, success=False)
        if not place.name:
            result.error = NO_NAME_ERROR
            return result

        context = MediaContext(
            place=place,
            coordinates=geometry_center(place.geometry),
            had_photos_before=self._had_photos(place.id),
        )

        try:
            outcome = await first_success(self.probes, context)
            if outcome.found:
                source = MediaSource(outcome.source)
                result.photos_found = self._save_photos(place.id, outcome.value, source)
                result.source = source
                result.success = True
            elif not context.has_coordinates:
                result.error = NO_COORDINATES_ERROR
            else:
                result.error = NO_PHOTOS_ERROR
        except Exception as e:
            self.logger.error(
                "media.fetch.fail",
                extra={"extra_data": {"place_id": place.id, "error": str(e)}},
                exc_info=True,
            )
            result.success = False
            result.error = str(e)

        self._finalize(context, result.success)
        self.logger.info(
            "media.fetch.done",
            extra={"extra_data": {
                "place_id": place.id,
                "success": result.success,
                "source": result.source.value,
                "photos": result.photos_found,
            }},
        )
        return result

    def _save_photos(self, place_id: str, photos: List[PhotoItem], source: MediaSource) -> int:
        return self.catalog.save_photos(place_id, [
            PlacePhoto(
                place_id=place_id,
                url=photo.url,
                source=source.value,
                attribution=photo.attribution,
                width=photo.width,
                height=photo.height,
                is_primary=index == 0,
            )
            for index, photo in enumerate(photos)
        ])

    def _finalize(self, context: MediaContext, success: bool) -> None:
        self._mark_fetched(context.place.id)
        if success and not context.had_photos_before:
            self._bump_score(context.place.id)

    # -------------------------------------------------------------------------
    # Best-effort writes
    # -------------------------------------------------------------------------

    def _had_photos(self, place_id: str) -> bool:
        try:
            return self.catalog.has_photos(place_id)
        except Exception as e:
            self.logger.warning(
                "media.has_photos.fail",
                extra={"extra_data": {"place_id": place_id, "error": str(e)}},
            )
            return False

    def _mark_fetched(self, place_id: str) -> None:
        try:
            self.catalog.update_place(place_id, photos_fetched_at=self.now())
        except Exception as e:
            self.logger.error(
                "media.mark_fetched.fail",
                extra={"extra_data": {"place_id": place_id, "error": str(e)}},
            )

    def _bump_score(self, place_id: str) -> None:
        try:
            fresh = self.catalog.get_place(place_id)
            if fresh is None:
                return
            scores = fresh.scores.bump(ScoreComponent.ENHANCEMENT, self.rules.photos_fetched_bump)
            self.catalog.update_scores(place_id, scores)
            self.logger.info(
                "media.score.bumped",
                extra={"extra_data": {"place_id": place_id, **scores.as_fields()}},
            )
        except Exception as e:
            self.logger.error(
                "media.score.bump.fail",
                extra={"extra_data": {"place_id": place_id, "error": str(e)}},
            )

    def _store_provider_id(self, place_id: str, provider_id: str) -> None:
        try:
            self.catalog.update_place(place_id, media_provider_id=provider_id)
        except Exception as e:
            self.logger.error(
                "media.provider_id.fail",
                extra={"extra_data": {"place_id": place_id, "error": str(e)}},
            )
