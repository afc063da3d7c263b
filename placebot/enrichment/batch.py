"""Batch drivers for the enrichment services.

Each driver selects the catalog places (or staging rows) that need work
and processes them one at a time, keeping running success / failure /
skip counts. A failure on one item is logged and counted, never fatal for
the batch.

Usage:
------
stats = await fetch_photos_batch(orchestrator, catalog, min_score=5, limit=50)
print(stats.summary())
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

from placebot.catalog.store import SQLiteCatalog
from placebot.enrichment.encyclopedia import EncyclopediaEnrichment
from placebot.enrichment.match_resolver import MatchResolver
from placebot.enrichment.media_fallback import MediaFallbackOrchestrator
from placebot.enrichment.models import MatchOutcome
from placebot.enrichment.ratings import RatingsFetcher
from placebot.enrichment.scoring import ScoreService
from placebot.utils.logger import LoggerManager

T = TypeVar("T")

logger = LoggerManager.get_logger(__name__)


class ItemStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


@dataclass
class BatchStats:
    """Running counters of one batch run."""
    label: str
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    details: Counter = field(default_factory=Counter)

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed + self.skipped

    def record(self, status: ItemStatus, detail: Optional[str] = None) -> None:
        if status is ItemStatus.SUCCESS:
            self.succeeded += 1
        elif status is ItemStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
        if detail:
            self.details[detail] += 1

    def summary(self) -> str:
        text = (
            f"{self.label}: {self.processed}/{self.total} processed, "
            f"{self.succeeded} succeeded, {self.failed} failed, {self.skipped} skipped"
        )
        if self.details:
            text += " (" + ", ".join(f"{k}: {v}" for k, v in sorted(self.details.items())) + ")"
        return text


ProgressCallback = Callable[[BatchStats], None]


async def run_batch(
    label: str,
    items: Iterable[T],
    handle: Callable[[T], Awaitable[tuple]],
    on_progress: Optional[ProgressCallback] = None,
) -> BatchStats:
    """Run `handle` on each item in order.

    Args:
        label: Name of the batch for logs and the summary
        items: Items to process
        handle: Coroutine returning (ItemStatus, detail or None) for one item
        on_progress: Called with the running stats after every item

    Returns:
        Final BatchStats
    """
    items = list(items)
    stats = BatchStats(label=label, total=len(items))
    logger.info("batch.start", extra={"extra_data": {"label": label, "total": stats.total}})

    for item in items:
        try:
            status, detail = await handle(item)
        except Exception as e:
            logger.error(
                "batch.item.fail",
                extra={"extra_data": {"label": label, "error": str(e)}},
                exc_info=True,
            )
            status, detail = ItemStatus.FAILURE, type(e).__name__
        stats.record(status, detail)
        if on_progress:
            on_progress(stats)

    logger.info(
        "batch.done",
        extra={"extra_data": {
            "label": label,
            "succeeded": stats.succeeded,
            "failed": stats.failed,
            "skipped": stats.skipped,
        }},
    )
    return stats


# =============================================================================
# Drivers
# =============================================================================


async def fetch_photos_batch(
    orchestrator: MediaFallbackOrchestrator,
    catalog: SQLiteCatalog,
    min_score: float = 0,
    limit: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> BatchStats:
    """Photos for places never processed by the media fetcher."""

    async def handle(place):
        result = await orchestrator.fetch_media_for_place(place)
        if result.success:
            return ItemStatus.SUCCESS, result.source.value
        if not place.name:
            return ItemStatus.SKIPPED, result.error
        return ItemStatus.FAILURE, result.error

    places = catalog.places_without_photos_fetch(min_score=min_score, limit=limit)
    return await run_batch("photos", places, handle, on_progress)


async def fetch_ratings_batch(
    fetcher: RatingsFetcher,
    catalog: SQLiteCatalog,
    limit: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> BatchStats:
    """Ratings for places never fetched or fetched before the refresh window."""

    async def handle(place):
        result = await fetcher.fetch_ratings_for_place(place)
        if result.success:
            return ItemStatus.SUCCESS, None
        if result.skipped:
            return ItemStatus.SKIPPED, None
        return ItemStatus.FAILURE, result.error

    places = catalog.places_for_ratings(fetcher.stale_before(), limit=limit)
    return await run_batch("ratings", places, handle, on_progress)


async def verify_places_batch(
    resolver: MatchResolver,
    catalog: SQLiteCatalog,
    limit: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> BatchStats:
    """Verify staging rows without a status, oldest first."""

    async def handle(generated):
        if not generated.name or not generated.source_id:
            return ItemStatus.SKIPPED, "missing name or source"
        result = await resolver.verify_generated(generated)
        status = ItemStatus.SUCCESS if result.outcome is MatchOutcome.ADDED else ItemStatus.FAILURE
        return status, result.outcome.value

    rows = catalog.list_generated_without_status(limit)
    return await run_batch("verification", rows, handle, on_progress)


async def enrich_encyclopedia_batch(
    enrichment: EncyclopediaEnrichment,
    catalog: SQLiteCatalog,
    scores: ScoreService,
    limit: Optional[int] = None,
    force_refresh: bool = False,
    on_progress: Optional[ProgressCallback] = None,
) -> BatchStats:
    """Encyclopedia pages for places never analyzed."""

    async def handle(place):
        page = await enrichment.enrich_place(place, catalog, scores, force_refresh)
        if page is None:
            return ItemStatus.FAILURE, "not found"
        return ItemStatus.SUCCESS, page.language

    places = catalog.places_without_encyclopedia(limit=limit)
    return await run_batch("encyclopedia", places, handle, on_progress)


async def recalculate_scores_batch(
    scores: ScoreService,
    catalog: SQLiteCatalog,
    limit: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> BatchStats:
    """Recompute every place score from its current signals."""

    async def handle(place):
        breakdown = scores.recalculate_and_update(place.id)
        return (ItemStatus.SUCCESS if breakdown else ItemStatus.FAILURE), None

    return await run_batch("scores", catalog.list_places(limit), handle, on_progress)
