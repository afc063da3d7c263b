"""Encyclopedia enrichment for places.

Locates the Wikipedia article for a place and derives:
- a cleaned intro summary (truncated to a storage limit)
- the article's topical categories
- the average daily views over the trailing year
- the languages the article exists in
- infobox facts (via placebot.parsing.wiki_markup)

An article is looked up either by an explicit reference ("fr:Lac d'Annecy",
language defaulting to the primary one) or by name, trying the primary
language and then the fallback. A language whose search or extract request
fails counts as not found, so the next language is still tried. The
secondary fields are fetched independently: a failure in one leaves that
field empty and the others intact.

Usage:
------
enrichment = EncyclopediaEnrichment(WikipediaClient(service), ScoringEngine())
signal = await enrichment.fetch_by_reference("fr:Gorges du Verdon")
signal = await enrichment.fetch_by_name("Lac d'Annecy")
"""

import asyncio
import re
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

import httpx

from placebot.catalog.models import EncyclopediaRecord, Place
from placebot.catalog.store import CatalogStore
from placebot.core.cache import SourceCache
from placebot.core.exceptions import PlaceBotError
from placebot.core.fallback import SourceProbe, first_success
from placebot.enrichment.models import EncyclopediaPage, EnrichmentSignal
from placebot.enrichment.scoring import ScoreService, ScoringEngine
from placebot.enrichment.wikipedia_client import WikipediaClient
from placebot.parsing.wiki_markup import extract_infobox
from placebot.utils.logger import LoggerManager


# =============================================================================
# Constants
# =============================================================================

REFERENCE_PATTERN = re.compile(r"^([a-z]{2}):(.+)$")

DEFAULT_EXTRACT_MAX_CHARS = 10000
DEFAULT_PAGEVIEW_DAYS = 365


def clean_extract(text: str) -> str:
    """Normalize line endings, cap blank lines at one and strip trailing spaces."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r"[ \t]+$", "", text, flags=re.MULTILINE)
    return text.strip()


def tagged_reference(place: Place) -> Optional[str]:
    """Article reference from the place's own map tags ("wikipedia" or "wikipedia:fr")."""
    metadata = place.metadata or {}
    return metadata.get("wikipedia") or metadata.get("wikipedia:fr")


def truncate(text: str, max_chars: int) -> str:
    return text[:max_chars] + "..." if len(text) > max_chars else text


def average_daily_views(daily_views: List[int]) -> Optional[float]:
    """Sum of views over the days with data, divided by that number of days.

    Returns None when there is no data or every day has zero views.
    """
    if not daily_views:
        return None
    total = sum(daily_views)
    if total <= 0:
        return None
    return total / len(daily_views)


class EncyclopediaEnrichment:
    """Finds and summarizes the encyclopedia article of a place."""

    def __init__(
        self,
        client: WikipediaClient,
        engine: Optional[ScoringEngine] = None,
        cache: Optional[SourceCache] = None,
        primary_language: str = "fr",
        fallback_language: str = "en",
        extract_max_chars: int = DEFAULT_EXTRACT_MAX_CHARS,
        pageview_days: int = DEFAULT_PAGEVIEW_DAYS,
        today: Callable[[], date] = lambda: datetime.now(timezone.utc).date(),
    ):
        self.client = client
        self.engine = engine or ScoringEngine()
        self.cache = cache
        self.primary_language = primary_language
        self.languages = [primary_language]
        if fallback_language and fallback_language != primary_language:
            self.languages.append(fallback_language)
        self.extract_max_chars = extract_max_chars
        self.pageview_days = pageview_days
        self.today = today
        self.logger = LoggerManager.get_logger(__name__)

    def parse_reference(self, reference: str) -> Tuple[str, str]:
        """Split "lang:Title" into (lang, title). No prefix means the primary language."""
        reference = reference.strip()
        match = REFERENCE_PATTERN.match(reference)
        if match:
            return match.group(1), match.group(2).strip()
        return self.primary_language, reference

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def fetch_by_reference(
        self, reference: str, force_refresh: bool = False
    ) -> Optional[EnrichmentSignal]:
        page = await self.lookup_by_reference(reference, force_refresh)
        return page.to_signal() if page else None

    async def fetch_by_name(
        self, name: str, force_refresh: bool = False
    ) -> Optional[EnrichmentSignal]:
        page = await self.lookup_by_name(name, force_refresh)
        return page.to_signal() if page else None

    async def lookup_by_reference(
        self, reference: str, force_refresh: bool = False
    ) -> Optional[EncyclopediaPage]:
        """Article for an explicit "lang:Title" reference, or None."""
        language, title = self.parse_reference(reference)
        if not title:
            return None
        return await self._locate(title, language, force_refresh)

    async def lookup_by_name(
        self, name: str, force_refresh: bool = False
    ) -> Optional[EncyclopediaPage]:
        """First language (primary, then fallback) with an article and an extract."""
        probes = [
            SourceProbe(
                name=language,
                fetch=lambda subject, lang=language: self._locate(subject, lang, force_refresh),
            )
            for language in self.languages
        ]
        outcome = await first_success(probes, name)
        if outcome.found:
            return outcome.value
        self.logger.info(
            "encyclopedia.not_found",
            extra={"extra_data": {"name": name, "languages": self.languages}},
        )
        return None

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    async def _locate(
        self, title: str, language: str, force_refresh: bool
    ) -> Optional[EncyclopediaPage]:
        """Article in one language, or None when it is missing or unreachable."""
        try:
            hit = await self.client.search(title, language)
            if not hit:
                return None

            if self.cache is None:
                return await self._build_page(hit["title"], language)

            cached = await self.cache.load_or_fetch(
                f"{language}_{hit['title']}",
                lambda: self._build_page_payload(hit["title"], language),
                force_refresh=force_refresh,
            )
        except (PlaceBotError, httpx.HTTPError) as e:
            self.logger.warning(
                "encyclopedia.lookup.fail",
                extra={"extra_data": {
                    "title": title,
                    "language": language,
                    "error": f"{type(e).__name__}: {e}",
                }},
            )
            return None
        return EncyclopediaPage(**cached) if cached else None

    async def _build_page_payload(self, title: str, language: str) -> Optional[dict]:
        page = await self._build_page(title, language)
        return page.model_dump(mode="json") if page else None

    async def _build_page(self, title: str, language: str) -> Optional[EncyclopediaPage]:
        extract = await self.client.fetch_extract(title, language)
        if not extract:
            self.logger.info(
                "encyclopedia.no_extract",
                extra={"extra_data": {"title": title, "language": language}},
            )
            return None

        title = extract["title"]
        categories, markup, views, languages = await asyncio.gather(
            self.client.fetch_categories(title, language),
            self.client.fetch_markup(title, language),
            self._daily_views(title, language),
            self.client.fetch_language_links(title, language),
            return_exceptions=True,
        )

        categories = self._degrade(categories, [], "categories", title)
        markup = self._degrade(markup, None, "markup", title)
        views = self._degrade(views, [], "pageviews", title)
        other_languages = self._degrade(languages, [], "langlinks", title)

        average_views = average_daily_views(views)
        all_languages = sorted({language, *other_languages})
        page = EncyclopediaPage(
            language=language,
            title=title,
            page_id=extract.get("pageid"),
            summary=truncate(clean_extract(extract["extract"]), self.extract_max_chars),
            categories=categories,
            average_views=average_views,
            languages=all_languages,
            infobox=extract_infobox(markup),
            score=self.engine.encyclopedia_score(average_views, len(all_languages)),
        )
        self.logger.info(
            "encyclopedia.page.built",
            extra={"extra_data": {
                "reference": page.reference,
                "categories": len(page.categories),
                "average_views": page.average_views,
                "languages": len(page.languages),
                "has_infobox": page.infobox is not None,
            }},
        )
        return page

    async def _daily_views(self, title: str, language: str) -> List[int]:
        end = self.today() - timedelta(days=1)
        start = end - timedelta(days=self.pageview_days - 1)
        return await self.client.fetch_daily_views(title, language, start, end)

    def _degrade(self, value, default, field: str, title: str):
        if isinstance(value, BaseException):
            self.logger.warning(
                "encyclopedia.field.degraded",
                extra={"extra_data": {
                    "field": field,
                    "title": title,
                    "error": f"{type(value).__name__}: {value}",
                }},
            )
            return default
        return value if value is not None else default

    # -------------------------------------------------------------------------
    # Catalog persistence
    # -------------------------------------------------------------------------

    async def enrich_place(
        self,
        place: Place,
        catalog: CatalogStore,
        scores: ScoreService,
        force_refresh: bool = False,
    ) -> Optional[EncyclopediaPage]:
        """Look up, store and score the article of a catalog place.

        A `wikipedia` tag in the place metadata is tried first, then the name.
        The place is stamped as analyzed either way.
        """
        page = None
        tagged = tagged_reference(place)
        if tagged:
            page = await self.lookup_by_reference(tagged, force_refresh)
        if page is None and place.name:
            page = await self.lookup_by_name(place.name, force_refresh)

        now = datetime.now(timezone.utc)
        if page is None:
            catalog.update_place(place.id, encyclopedia_analyzed_at=now)
            return None

        catalog.save_encyclopedia(EncyclopediaRecord(
            place_id=place.id,
            reference=page.reference,
            language=page.language,
            title=page.title,
            page_id=page.page_id,
            summary=page.summary,
            categories=page.categories,
            average_views=page.average_views,
            languages=page.languages,
            infobox=page.infobox,
            score=page.score,
        ))
        catalog.update_place(
            place.id,
            encyclopedia_reference=page.reference,
            encyclopedia_analyzed_at=now,
        )
        scores.recalculate_and_update(place.id)
        return page
