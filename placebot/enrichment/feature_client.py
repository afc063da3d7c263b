"""Map-feature search (OpenStreetMap Nominatim).

Free-text search restricted to the configured countries. Results are kept
only when their OSM class/type, or one of their extra tags, is a supported
nature tag. `reduce_elements` turns the kept raw results into
CandidateMatch objects, dropping the ones without a usable name or
location.

Usage:
------
features = FeatureClient(ServiceClient("nominatim", http, min_interval=1.0))
search = await features.search("Lac d'Annecy")
candidates = reduce_elements(search.elements)
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

from placebot.catalog.geometry import geometry_center
from placebot.enrichment.http_client import ServiceClient
from placebot.enrichment.models import CandidateMatch, FeatureSearchResult
from placebot.utils.logger import LoggerManager


# =============================================================================
# Constants
# =============================================================================

NOMINATIM_SEARCH_URL = "https://nominatim.openstreetmap.org/search"

MIN_NAME_LENGTH = 3

# OSM tag key -> values that describe a nature place
OSM_SUPPORTED_TAGS: Dict[str, List[str]] = {
    "natural": [
        "peak", "volcano", "gorge", "canyon", "cave_entrance", "glacier",
        "waterfall", "hot_spring", "geyser", "beach", "dune", "cape",
        "sinkhole", "ridge", "saddle",
    ],
    "waterway": ["rapids"],
    "boundary": ["national_park", "protected_area"],
    "leisure": ["nature_reserve", "park"],
    "landuse": ["forest"],
    "water": ["lake", "reservoir", "lagoon"],
    "place": ["island", "islet"],
    "tourism": ["wilderness_hut", "alpine_hut"],
    "route": ["hiking"],
}

logger = LoggerManager.get_logger(__name__)


def domain_tag(tags: Mapping[str, Any]) -> Optional[Tuple[str, str]]:
    """The first supported (key, value) pair in `tags`, or None.

    `class`/`type` (Nominatim's own classification) are checked before
    the raw OSM tag keys.
    """
    category, kind = tags.get("class"), tags.get("type")
    if category and kind and kind in OSM_SUPPORTED_TAGS.get(category, []):
        return category, kind
    for key, values in OSM_SUPPORTED_TAGS.items():
        value = tags.get(key)
        if value and value in values:
            return key, value
    return None


def _element_tags(element: Dict[str, Any]) -> Dict[str, Any]:
    return {
        **(element.get("extratags") or {}),
        "class": element.get("class"),
        "type": element.get("type"),
    }


def _element_name(element: Dict[str, Any]) -> str:
    names = element.get("namedetails") or {}
    extra = element.get("extratags") or {}
    display = element.get("display_name") or ""
    return (names.get("name") or extra.get("name") or display.split(",")[0]).strip()


def _element_center(element: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    try:
        return float(element["lat"]), float(element["lon"])
    except (KeyError, TypeError, ValueError):
        return geometry_center(element.get("geojson"))


def reduce_elements(elements: List[Dict[str, Any]]) -> List[CandidateMatch]:
    """Candidates with a name of at least 3 characters and a location.

    Args:
        elements: Raw Nominatim results (already domain filtered)

    Returns:
        One CandidateMatch per usable element, in input order
    """
    candidates = []
    for element in elements:
        name = _element_name(element)
        center = _element_center(element)
        geometry = element.get("geojson")
        if len(name) < MIN_NAME_LENGTH or (center is None and not geometry):
            logger.debug(
                "feature.element.skipped",
                extra={"extra_data": {"osm_id": element.get("osm_id"), "name": name}},
            )
            continue

        category, kind = domain_tag(_element_tags(element)) or (
            element.get("class") or "unknown", element.get("type") or "unknown"
        )
        candidates.append(CandidateMatch(
            external_id=str(element.get("osm_id")),
            name=name,
            category=category,
            place_type=kind,
            latitude=center[0] if center else None,
            longitude=center[1] if center else None,
            geometry=geometry or (
                {"type": "Point", "coordinates": [center[1], center[0]]} if center else None
            ),
            tags={k: str(v) for k, v in (element.get("extratags") or {}).items()},
        ))
    return candidates


class FeatureClient:
    """Nature-place search on Nominatim."""

    def __init__(self, service: ServiceClient, country_codes: str = "fr", limit: int = 10):
        self.service = service
        self.country_codes = country_codes
        self.limit = limit

    async def search(self, name: str) -> FeatureSearchResult:
        results = await self.service.get_json(
            NOMINATIM_SEARCH_URL,
            params={
                "q": name,
                "format": "json",
                "limit": self.limit,
                "countrycodes": self.country_codes,
                "extratags": 1,
                "namedetails": 1,
                "polygon_geojson": 1,
            },
            label="nominatim.search",
        )
        results = results if isinstance(results, list) else []
        kept = [r for r in results if domain_tag(_element_tags(r))]
        logger.info(
            "feature.search",
            extra={"extra_data": {"query": name, "results": len(results), "kept": len(kept)}},
        )
        return FeatureSearchResult(
            elements=kept,
            no_domain_match=bool(results) and not kept,
        )
