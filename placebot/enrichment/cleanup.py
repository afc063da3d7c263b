"""Removes encyclopedia data that was attached to the wrong place.

Articles found by a name search can belong to a different place with a
similar name. For every place with a stored reference that did not come
from its own map tags, the place name is compared with the article title:
- below `min_similarity` the stored page is deleted, the reference fields
  cleared and the score recomputed
- between `manual_review_similarity` and `min_similarity` the place is
  also listed for manual review

Usage:
------
cleanup = EncyclopediaCleanup(catalog, ScoreService(catalog, engine))
report = cleanup.run(dry_run=True)
"""

from typing import Optional

from placebot.catalog.store import SQLiteCatalog
from placebot.enrichment.encyclopedia import tagged_reference
from placebot.enrichment.models import CleanupCandidate, CleanupReport
from placebot.enrichment.scoring import ScoreService
from placebot.normalization.similarity import string_similarity
from placebot.settings import CleanupSettings
from placebot.utils.logger import LoggerManager


def reference_title(reference: str) -> str:
    """'fr:Lac de Vassivière' -> 'Lac de Vassivière'."""
    return reference.split(":", 1)[1] if ":" in reference else reference


class EncyclopediaCleanup:
    def __init__(
        self,
        catalog: SQLiteCatalog,
        scores: ScoreService,
        settings: Optional[CleanupSettings] = None,
    ):
        self.catalog = catalog
        self.scores = scores
        self.settings = settings or CleanupSettings()
        self.logger = LoggerManager.get_logger(__name__)

    def find_invalid(self) -> CleanupReport:
        report = CleanupReport()
        for place in self.catalog.places_with_encyclopedia_reference():
            if not place.name or tagged_reference(place):
                continue
            report.checked += 1

            similarity = string_similarity(
                place.name, reference_title(place.encyclopedia_reference)
            )
            if similarity >= self.settings.min_similarity:
                continue

            candidate = CleanupCandidate(
                place_id=place.id,
                name=place.name,
                reference=place.encyclopedia_reference,
                similarity=similarity,
            )
            report.invalid.append(candidate)
            if similarity >= self.settings.manual_review_similarity:
                report.manual_review.append(candidate)
        return report

    def run(self, dry_run: bool = False) -> CleanupReport:
        """Find mismatched articles and, unless `dry_run`, remove them."""
        report = self.find_invalid()
        self.logger.info(
            "cleanup.scan",
            extra={"extra_data": {
                "checked": report.checked,
                "invalid": len(report.invalid),
                "manual_review": len(report.manual_review),
                "dry_run": dry_run,
            }},
        )
        if dry_run:
            return report

        for candidate in report.invalid:
            try:
                self.catalog.delete_encyclopedia(candidate.place_id)
                self.catalog.update_place(
                    candidate.place_id,
                    encyclopedia_reference=None,
                    encyclopedia_analyzed_at=None,
                )
            except Exception as e:
                self.logger.error(
                    "cleanup.remove.fail",
                    extra={"extra_data": {"place_id": candidate.place_id, "error": str(e)}},
                )
                continue
            report.removed += 1
            self.scores.recalculate_and_update(candidate.place_id)
        return report
