"""Verification of generated place names against map features.

A generated place is a name some source mentioned. Verifying it means
finding exactly one nature feature with a close enough name, then either
crediting the catalog place that already has that feature's id or
creating a new place for it.

Outcomes (MatchOutcome):
- ADDED: one confident match, place created or credited
- NO_MATCH: nothing found, or nothing usable
- NO_NATURE_MATCH: results exist but none is a nature feature
- MULTIPLE_MATCHES: several candidates, or one with a low similarity
  (`reason` tells which); left for human review

The outcome is written back on the staging row, so a row is verified at
most once.

Usage:
------
resolver = MatchResolver(catalog, FeatureClient(service), rules=settings.scoring)
result = await resolver.verify("Lac d'Annecy", "Lac alpin", source_id)
results = await resolver.verify_pending(limit=20)
"""

from typing import List, Optional

from placebot.catalog.models import (
    GeneratedPlace,
    Place,
    ScoreBreakdown,
    ScoreComponent,
)
from placebot.catalog.store import CatalogStore
from placebot.enrichment.feature_client import FeatureClient, reduce_elements
from placebot.enrichment.models import CandidateMatch, MatchOutcome, VerificationResult
from placebot.normalization.similarity import match_similarity_score
from placebot.settings import ScoreRules, VerificationSettings
from placebot.utils.logger import LoggerManager


REASON_NOT_NATURE = "Place found but is not a nature place"
REASON_NOT_FOUND = "Place not found"
REASON_NO_VALID = "No valid places found in results"
REASON_AMBIGUOUS = "ambiguous"
REASON_LOW_CONFIDENCE = "low confidence"


class MatchResolver:
    """Resolves candidate names to catalog places."""

    def __init__(
        self,
        catalog: CatalogStore,
        features: FeatureClient,
        rules: Optional[ScoreRules] = None,
        settings: Optional[VerificationSettings] = None,
    ):
        self.catalog = catalog
        self.features = features
        self.rules = rules or ScoreRules()
        self.settings = settings or VerificationSettings()
        self.logger = LoggerManager.get_logger(__name__)

    async def verify(
        self, name: str, description: Optional[str], source_id: Optional[str]
    ) -> VerificationResult:
        """Search `name` and add or credit the single confident match.

        Errors while searching or writing end the attempt as NO_MATCH with
        the error text as reason.
        """
        try:
            return await self._verify(name, description, source_id)
        except Exception as e:
            self.logger.error(
                "verify.fail",
                extra={"extra_data": {"name": name, "error": str(e)}},
                exc_info=True,
            )
            return VerificationResult(outcome=MatchOutcome.NO_MATCH, reason=str(e), name=name)

    async def _verify(
        self, name: str, description: Optional[str], source_id: Optional[str]
    ) -> VerificationResult:
        search = await self.features.search(name)

        if search.no_domain_match:
            return self._outcome(name, MatchOutcome.NO_NATURE_MATCH, reason=REASON_NOT_NATURE)
        if not search.elements:
            return self._outcome(name, MatchOutcome.NO_MATCH, reason=REASON_NOT_FOUND)

        candidates = reduce_elements(search.elements)
        if not candidates:
            return self._outcome(name, MatchOutcome.NO_MATCH, reason=REASON_NO_VALID)
        if len(candidates) > 1:
            return self._outcome(
                name,
                MatchOutcome.MULTIPLE_MATCHES,
                reason=f"{REASON_AMBIGUOUS}: {len(candidates)} candidates",
            )

        match = candidates[0]
        similarity = match_similarity_score(name, match.name)
        if similarity < self.settings.min_similarity:
            return self._outcome(
                name,
                MatchOutcome.MULTIPLE_MATCHES,
                reason=f"{REASON_LOW_CONFIDENCE}: similarity {similarity:.1f}",
                external_id=match.external_id,
                similarity=similarity,
            )

        place_id = self._upsert(match, description, source_id)
        return self._outcome(
            name,
            MatchOutcome.ADDED,
            place_id=place_id,
            external_id=match.external_id,
            similarity=similarity,
        )

    def _outcome(self, name: str, outcome: MatchOutcome, **fields) -> VerificationResult:
        self.logger.info(
            "verify.outcome",
            extra={"extra_data": {"name": name, "outcome": outcome.value, **fields}},
        )
        return VerificationResult(outcome=outcome, name=name, **fields)

    def _upsert(
        self, match: CandidateMatch, description: Optional[str], source_id: Optional[str]
    ) -> str:
        """Credit the place holding `match.external_id`, or create it. Returns the place id."""
        bump = self.rules.generated_place_verified_bump
        existing = self.catalog.get_place_by_external_id(match.external_id)

        if existing:
            scores = existing.scores.bump(ScoreComponent.SOURCE, bump)
            self.catalog.update_place(
                existing.id,
                description=description or existing.description,
                source_id=source_id,
                **scores.as_fields(),
            )
            self.logger.info(
                "verify.place.credited",
                extra={"extra_data": {
                    "place_id": existing.id,
                    "source_score": scores.source_score,
                    "score": scores.total,
                }},
            )
            return existing.id

        place = Place(
            name=match.name,
            external_id=match.external_id,
            place_type=match.place_type,
            description=description,
            country=self.settings.default_country,
            geometry=match.geometry,
            metadata=dict(match.tags),
            source_id=source_id,
            **ScoreBreakdown(source_score=bump).as_fields(),
        )
        return self.catalog.insert_place(place).id

    # -------------------------------------------------------------------------
    # Staging rows
    # -------------------------------------------------------------------------

    async def verify_generated(self, generated: GeneratedPlace) -> VerificationResult:
        """Verify one staging row and record the outcome on it."""
        result = await self.verify(generated.name, generated.description, generated.source_id)
        result.generated_place_id = generated.id
        self.catalog.update_generated_place(generated.id, result.outcome.value, result.place_id)
        return result

    async def verify_pending(self, limit: Optional[int] = None) -> List[VerificationResult]:
        """Verify staging rows without a status, oldest first.

        Rows missing a name or a source id are left untouched.
        """
        pending = [
            g for g in self.catalog.list_generated_without_status(limit)
            if g.name and g.source_id
        ]
        self.logger.info("verify.pending", extra={"extra_data": {"count": len(pending)}})

        results = []
        for generated in pending:
            results.append(await self.verify_generated(generated))
        return results
