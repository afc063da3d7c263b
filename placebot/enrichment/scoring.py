"""Deterministic place scoring.

A place score has two parts:
- source_score: provenance (base points, park type, verified staging match)
- enhancement_score: enrichment signals (encyclopedia coverage, website,
  photos, third-party rating)

`ScoringEngine.calculate` is a pure function of the place and its signals,
so recomputing with the same inputs always gives the same breakdown. The
rule table is a `ScoreRules` model loaded from the `scoring` section of
the YAML config (see placebot.settings), with `SCORE_*` environment overrides.

Usage:
------
engine = ScoringEngine(settings.scoring)
breakdown = engine.calculate(place, signals)
catalog.update_scores(place.id, breakdown)
"""

import math
from typing import Iterable, List, Optional

from placebot.catalog.models import Place, ScoreBreakdown
from placebot.catalog.store import CatalogStore
from placebot.enrichment.models import (
    EnrichmentSignal,
    SignalKind,
    SignalSource,
)
from placebot.settings import ScoreRules, Tier
from placebot.utils.logger import LoggerManager


def tier_points(value: Optional[float], tiers: Iterable[Tier], default: float = 0) -> float:
    """Points of the highest tier `value` reaches."""
    if value is None:
        return default
    for tier in sorted(tiers, key=lambda t: t.threshold, reverse=True):
        if value >= tier.threshold:
            return tier.points
    return default


class ScoringEngine:
    """Maps a place and its signals to a ScoreBreakdown."""

    def __init__(self, rules: Optional[ScoreRules] = None):
        self.rules = rules or ScoreRules()

    def encyclopedia_score(
        self, average_views: Optional[float], language_count: int
    ) -> float:
        """View-count tier plus language-coverage tier for one article."""
        return (
            tier_points(average_views, self.rules.view_tiers)
            + tier_points(language_count, self.rules.language_tiers)
        )

    def rating_confidence(self, count: int) -> float:
        """0 for no reviews, 1 at or above the best count, logarithmic between."""
        best = self.rules.rating_best_count
        if count <= 0:
            return 0.0
        if count >= best:
            return 1.0
        return math.log(count + 1) / math.log(best + 1)

    def rating_score(self, rating: Optional[float], count: Optional[int]) -> float:
        """Flat bonus for having a rating plus the confidence-weighted quality tier."""
        if not rating or not count:
            return 0.0
        quality = tier_points(rating, self.rules.rating_tiers, default=self.rules.rating_floor)
        return self.rules.has_rating + quality * self.rating_confidence(count)

    def source_score(self, place: Place, signals: List[EnrichmentSignal]) -> float:
        score = self.rules.source_by_type.get(place.place_type or "", self.rules.source_base)
        if any(s.kind is SignalKind.VERIFICATION_MATCH for s in signals):
            score += self.rules.verified_generated_place
        return score

    def enhancement_score(self, place: Place, signals: List[EnrichmentSignal]) -> float:
        score = 0.0
        if place.website:
            score += self.rules.has_website

        for signal in signals:
            if signal.kind is SignalKind.ENCYCLOPEDIA_PAGE:
                score += self.rules.encyclopedia_page + float(signal.payload.get("score") or 0)
                break

        if any(
            s.kind is SignalKind.PHOTO_SET and s.payload.get("count", 0) > 0 for s in signals
        ):
            score += self.rules.has_photos

        for signal in signals:
            if signal.kind is SignalKind.RATING:
                score += self.rating_score(
                    signal.payload.get("rating"), signal.payload.get("rating_count")
                )
                break
        return score

    def calculate(
        self, place: Place, signals: Iterable[EnrichmentSignal]
    ) -> ScoreBreakdown:
        """Recompute both score components from scratch."""
        signals = list(signals)
        return ScoreBreakdown(
            source_score=self.source_score(place, signals),
            enhancement_score=self.enhancement_score(place, signals),
        )


class ScoreService:
    """Collects a place's signals from the catalog and rewrites its score."""

    def __init__(self, catalog: CatalogStore, engine: Optional[ScoringEngine] = None):
        self.catalog = catalog
        self.engine = engine or ScoringEngine()
        self.logger = LoggerManager.get_logger(__name__)

    def collect_signals(self, place: Place) -> List[EnrichmentSignal]:
        signals: List[EnrichmentSignal] = []

        record = self.catalog.get_encyclopedia(place.id)
        if record:
            signals.append(EnrichmentSignal(
                kind=SignalKind.ENCYCLOPEDIA_PAGE,
                source=SignalSource.CATALOG,
                payload={"reference": record.reference, "score": record.score},
            ))
        if self.catalog.has_photos(place.id):
            signals.append(EnrichmentSignal(
                kind=SignalKind.PHOTO_SET,
                source=SignalSource.CATALOG,
                payload={"count": 1},
            ))
        if place.rating and place.rating_count:
            signals.append(EnrichmentSignal(
                kind=SignalKind.RATING,
                source=SignalSource.CATALOG,
                payload={"rating": place.rating, "rating_count": place.rating_count},
            ))
        if self.catalog.has_verified_generated_place(place.id):
            signals.append(EnrichmentSignal(
                kind=SignalKind.VERIFICATION_MATCH,
                source=SignalSource.CATALOG,
            ))
        return signals

    def recalculate_and_update(self, place_id: str) -> Optional[ScoreBreakdown]:
        """Recompute and store the score of one place.

        Returns:
            The new breakdown, or None if the place is missing or the update failed
        """
        try:
            place = self.catalog.get_place(place_id)
            if place is None:
                self.logger.warning(
                    "score.recalculate.missing_place",
                    extra={"extra_data": {"place_id": place_id}},
                )
                return None
            breakdown = self.engine.calculate(place, self.collect_signals(place))
            self.catalog.update_scores(place_id, breakdown)
            self.logger.info(
                "score.recalculated",
                extra={"extra_data": {"place_id": place_id, **breakdown.as_fields()}},
            )
            return breakdown
        except Exception as e:
            self.logger.error(
                "score.recalculate.fail",
                extra={"extra_data": {"place_id": place_id, "error": str(e)}},
                exc_info=True,
            )
            return None
