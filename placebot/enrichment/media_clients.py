"""Photo and rating sources.

- WikimediaClient: free Commons photos, by geosearch around the place
  first, then by file search on the place name.
- GooglePlacesClient: Places API (New). Resolves a place id by text search
  with a location bias, then reads photos or rating for that id.

Usage:
------
wikimedia = WikimediaClient(ServiceClient("wikimedia", http))
photos = await wikimedia.search_photos("Gorges du Verdon", 43.76, 6.32)

google = GooglePlacesClient(ServiceClient("google_places", http), api_key)
place_id = await google.find_place_id("Gorges du Verdon", 43.76, 6.32)
rating = await google.get_rating(place_id)
"""

import re
from typing import Any, Awaitable, Dict, List, Optional

import httpx

from placebot.core.exceptions import PlaceBotError
from placebot.enrichment.http_client import ServiceClient
from placebot.enrichment.models import PhotoItem, RatingInfo
from placebot.utils.logger import LoggerManager


# =============================================================================
# Constants
# =============================================================================

COMMONS_API_URL = "https://commons.wikimedia.org/w/api.php"
COMMONS_FILE_NAMESPACE = 6
PHOTO_EXTENSIONS = (".jpg", ".jpeg", ".png")

PLACES_SEARCH_URL = "https://places.googleapis.com/v1/places:searchText"
PLACES_DETAILS_URL = "https://places.googleapis.com/v1/places/{place_id}"
PLACES_PHOTO_URL = (
    "https://places.googleapis.com/v1/{name}/media"
    "?maxHeightPx={max_px}&maxWidthPx={max_px}&key={key}"
)

_HTML_TAG = re.compile(r"<[^>]+>")


def _strip_html(text: str) -> str:
    return re.sub(r"\s+", " ", _HTML_TAG.sub("", text)).strip()


# =============================================================================
# Wikimedia Commons
# =============================================================================


class WikimediaClient:
    """Free photos from Wikimedia Commons.

    `search_photos` never raises for upstream failures: a failed strategy
    is logged and counts as "no photos".
    """

    def __init__(
        self,
        service: ServiceClient,
        radius_m: int = 10000,
        max_photos: int = 5,
        thumb_width: int = 800,
    ):
        self.service = service
        self.radius_m = radius_m
        self.max_photos = max_photos
        self.thumb_width = thumb_width
        self.logger = LoggerManager.get_logger(__name__)

    async def _or_empty(self, strategy: str, call: Awaitable[List[PhotoItem]]) -> List[PhotoItem]:
        try:
            return await call
        except (PlaceBotError, httpx.HTTPError) as e:
            self.logger.warning(
                "wikimedia.search.fail",
                extra={"extra_data": {"strategy": strategy, "error": str(e)}},
            )
            return []

    async def _query(self, label: str, **params: Any) -> Dict[str, Any]:
        data = await self.service.get_json(
            COMMONS_API_URL,
            params={"action": "query", "format": "json", **params},
            label=f"wikimedia.{label}",
        )
        return data.get("query", {}) if isinstance(data, dict) else {}

    async def search_photos(
        self,
        name: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> List[PhotoItem]:
        """Photos near the coordinates, else photos whose file name matches `name`."""
        if latitude is not None and longitude is not None:
            photos = await self._or_empty("geosearch", self.photos_near(latitude, longitude))
            if photos:
                return photos
        return await self._or_empty("name", self.photos_by_name(name))

    async def photos_near(self, latitude: float, longitude: float) -> List[PhotoItem]:
        query = await self._query(
            "geosearch",
            list="geosearch",
            gscoord=f"{latitude}|{longitude}",
            gsradius=self.radius_m,
            gsnamespace=COMMONS_FILE_NAMESPACE,
            gslimit=50,
        )
        page_ids = [str(item["pageid"]) for item in query.get("geosearch", [])]
        return await self.image_info(page_ids)

    async def photos_by_name(self, name: str) -> List[PhotoItem]:
        query = await self._query(
            "search",
            list="search",
            srsearch=name,
            srnamespace=COMMONS_FILE_NAMESPACE,
            srlimit=20,
        )
        page_ids = [str(item["pageid"]) for item in query.get("search", [])]
        return await self.image_info(page_ids)

    async def image_info(self, page_ids: List[str]) -> List[PhotoItem]:
        """jpg/png photos for Commons file pages, highest resolution first."""
        if not page_ids:
            return []
        query = await self._query(
            "imageinfo",
            pageids="|".join(page_ids[:50]),
            prop="imageinfo",
            iiprop="url|extmetadata|size",
            iiurlwidth=self.thumb_width,
        )
        pages = query.get("pages", {})
        pages = pages.values() if isinstance(pages, dict) else pages

        photos: List[PhotoItem] = []
        for page in pages:
            info = (page.get("imageinfo") or [None])[0]
            if not info:
                continue
            url = info.get("url") or ""
            if not url.lower().endswith(PHOTO_EXTENSIONS):
                continue
            meta = info.get("extmetadata") or {}
            artist = _strip_html(meta.get("Artist", {}).get("value", "")) or "Unknown"
            license_name = meta.get("LicenseShortName", {}).get("value") or "Unknown license"
            photos.append(PhotoItem(
                url=url,
                attribution=f"Photo by {artist}, {license_name}",
                width=info.get("width"),
                height=info.get("height"),
            ))

        photos.sort(key=lambda p: (p.width or 0) * (p.height or 0), reverse=True)
        return photos[:self.max_photos]


# =============================================================================
# Google Places
# =============================================================================


class GooglePlacesClient:
    """Google Places API (New) client for photos and ratings."""

    def __init__(
        self,
        service: ServiceClient,
        api_key: str,
        max_photos: int = 5,
        bias_radius_m: float = 5000.0,
        photo_max_px: int = 800,
    ):
        self.service = service
        self.api_key = api_key
        self.max_photos = max_photos
        self.bias_radius_m = bias_radius_m
        self.photo_max_px = photo_max_px

    def _headers(self, field_mask: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": field_mask,
        }

    async def find_place_id(
        self,
        name: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> Optional[str]:
        """Id of the best text-search match, biased towards the coordinates."""
        body: Dict[str, Any] = {"textQuery": name, "maxResultCount": 1}
        if latitude is not None and longitude is not None:
            body["locationBias"] = {
                "circle": {
                    "center": {"latitude": latitude, "longitude": longitude},
                    "radius": self.bias_radius_m,
                }
            }
        data = await self.service.post_json(
            PLACES_SEARCH_URL,
            payload=body,
            headers=self._headers("places.id,places.displayName"),
            label="google_places.search",
        )
        places = data.get("places") or []
        return places[0]["id"] if places else None

    async def get_photos(self, place_id: str) -> List[PhotoItem]:
        data = await self.service.get_json(
            PLACES_DETAILS_URL.format(place_id=place_id),
            headers=self._headers("photos"),
            label="google_places.photos",
        )
        photos = []
        for photo in (data.get("photos") or [])[:self.max_photos]:
            authors = photo.get("authorAttributions") or [{}]
            author = authors[0].get("displayName")
            photos.append(PhotoItem(
                url=PLACES_PHOTO_URL.format(
                    name=photo["name"], max_px=self.photo_max_px, key=self.api_key
                ),
                attribution=(
                    f"Photo by {author} via Google Places" if author else "Photo via Google Places"
                ),
                width=photo.get("widthPx"),
                height=photo.get("heightPx"),
            ))
        return photos

    async def get_rating(self, place_id: str) -> Optional[RatingInfo]:
        data = await self.service.get_json(
            PLACES_DETAILS_URL.format(place_id=place_id),
            headers=self._headers("rating,userRatingCount"),
            label="google_places.rating",
        )
        rating = data.get("rating")
        if rating is None:
            return None
        count = data.get("userRatingCount") or 0
        return RatingInfo(rating=float(rating), rating_count=int(count), provider_id=place_id)
