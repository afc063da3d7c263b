"""Wikipedia API client.

Thin wrappers over the MediaWiki Action API and the Wikimedia pageviews
REST API. Every method returns plain data and lets HTTP and transport
errors propagate (after retries), so callers decide what degrades.

Usage:
------
client = WikipediaClient(ServiceClient("wikipedia", http))
hit = await client.search("Lac d'Annecy", "fr")           # {"title": ..., "pageid": ...}
extract = await client.fetch_extract(hit["title"], "fr")
views = await client.fetch_daily_views(hit["title"], "fr", start, end)
"""

import re
from datetime import date
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from placebot.enrichment.http_client import ServiceClient


# =============================================================================
# Constants
# =============================================================================

API_URL_TEMPLATE = "https://{language}.wikipedia.org/w/api.php"
PAGEVIEWS_URL_TEMPLATE = (
    "https://wikimedia.org/api/rest_v1/metrics/pageviews/per-article/"
    "{language}.wikipedia/all-access/user/{title}/daily/{start}/{end}"
)

# Maintenance and tracking categories that say nothing about the place
META_CATEGORY_PATTERNS = [
    re.compile(p, re.IGNORECASE) for p in (
        r"^article",
        r"^page (utilisant|avec|contenant|géolocalisée)",
        r"^portail:",
        r"^wikip[ée]dia",
        r"^catégorie commons",
        r"^ébauche",
        r"^all articles",
        r"^articles? (with|needing|lacking|containing|using)",
        r"^pages? (using|with|containing)",
        r"^cs1",
        r"^webarchive",
        r"^short description",
        r"^use (dmy|mdy) dates",
        r"^coordinates on wikidata",
        r"^commons category",
        r"wikidata",
    )
]


def is_meta_category(name: str) -> bool:
    return any(p.search(name) for p in META_CATEGORY_PATTERNS)


def strip_category_prefix(title: str) -> str:
    """'Catégorie:Lac des Alpes' -> 'Lac des Alpes'."""
    return title.split(":", 1)[1] if ":" in title else title


class WikipediaClient:
    """Read-only access to one or more Wikipedia language editions."""

    def __init__(self, service: ServiceClient):
        self.service = service

    async def _query(self, language: str, label: str, **params: Any) -> Dict[str, Any]:
        base = {"action": "query", "format": "json", "formatversion": 2}
        data = await self.service.get_json(
            API_URL_TEMPLATE.format(language=language),
            params={**base, **params},
            label=f"wikipedia.{label}",
        )
        return data.get("query", {}) if isinstance(data, dict) else {}

    @staticmethod
    def _first_page(query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        pages = query.get("pages") or []
        if not pages or pages[0].get("missing"):
            return None
        return pages[0]

    async def search(self, title: str, language: str) -> Optional[Dict[str, Any]]:
        """Best search hit for `title`, as {"title", "pageid"}, or None."""
        query = await self._query(
            language, "search", list="search", srsearch=title, srlimit=1
        )
        hits = query.get("search") or []
        if not hits:
            return None
        return {"title": hits[0]["title"], "pageid": hits[0].get("pageid")}

    async def fetch_extract(self, title: str, language: str) -> Optional[Dict[str, Any]]:
        """Plain-text intro of a page, as {"title", "pageid", "extract"}, or None."""
        query = await self._query(
            language,
            "extract",
            prop="extracts",
            exintro=1,
            explaintext=1,
            exsectionformat="plain",
            redirects=1,
            titles=title,
        )
        page = self._first_page(query)
        if not page or not page.get("extract"):
            return None
        return {
            "title": page.get("title", title),
            "pageid": page.get("pageid"),
            "extract": page["extract"],
        }

    async def fetch_categories(self, title: str, language: str) -> List[str]:
        """Visible, non-maintenance categories of a page."""
        query = await self._query(
            language,
            "categories",
            prop="categories",
            clshow="!hidden",
            cllimit="max",
            titles=title,
        )
        page = self._first_page(query)
        if not page:
            return []
        names = [strip_category_prefix(c["title"]) for c in page.get("categories", [])]
        return [n for n in names if not is_meta_category(n)]

    async def fetch_markup(self, title: str, language: str) -> Optional[str]:
        """Raw markup of the latest revision."""
        query = await self._query(
            language,
            "markup",
            prop="revisions",
            rvprop="content",
            rvslots="main",
            titles=title,
        )
        page = self._first_page(query)
        if not page or not page.get("revisions"):
            return None
        return page["revisions"][0]["slots"]["main"]["content"]

    async def fetch_language_links(self, title: str, language: str) -> List[str]:
        """Language codes of the other editions that have this article."""
        query = await self._query(
            language,
            "langlinks",
            prop="langlinks",
            lllimit="max",
            titles=title,
        )
        page = self._first_page(query)
        if not page:
            return []
        return [link["lang"] for link in page.get("langlinks", [])]

    async def fetch_daily_views(
        self, title: str, language: str, start: date, end: date
    ) -> List[int]:
        """Daily user views between `start` and `end` (inclusive), days with data only."""
        url = PAGEVIEWS_URL_TEMPLATE.format(
            language=language,
            title=quote(title.replace(" ", "_"), safe=""),
            start=start.strftime("%Y%m%d"),
            end=end.strftime("%Y%m%d"),
        )
        data = await self.service.get_json(url, label="wikipedia.pageviews")
        return [int(item.get("views", 0)) for item in data.get("items", [])]
