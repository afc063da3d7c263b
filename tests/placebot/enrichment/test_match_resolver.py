"""Tests for verifying generated place names against map features."""

import asyncio
from datetime import datetime, timezone

import pytest

from placebot.catalog.models import GeneratedPlace, Place
from placebot.catalog.store import SQLiteCatalog
from placebot.enrichment.match_resolver import (
    REASON_NO_VALID,
    REASON_NOT_FOUND,
    REASON_NOT_NATURE,
    MatchResolver,
)
from placebot.enrichment.models import FeatureSearchResult, MatchOutcome
from placebot.settings import ScoreRules


def _element(osm_id, name, kind="peak", lat="44.17", lon="5.28"):
    return {
        "osm_id": osm_id,
        "class": "natural",
        "type": kind,
        "lat": lat,
        "lon": lon,
        "namedetails": {"name": name},
        "extratags": {"ele": "1910"},
    }


class FakeFeatures:
    def __init__(self, result=None, error=None):
        self.result = result or FeatureSearchResult()
        self.error = error
        self.queries = []

    async def search(self, name):
        self.queries.append(name)
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def catalog():
    store = SQLiteCatalog(":memory:")
    yield store
    store.close()


def _resolver(catalog, features):
    return MatchResolver(catalog, features, rules=ScoreRules(generated_place_verified_bump=2))


def _verify(resolver, name="Mont Ventoux", description="Géant de Provence", source_id="article-1"):
    return asyncio.run(resolver.verify(name, description, source_id))


def test_single_match_creates_place(catalog):
    features = FakeFeatures(FeatureSearchResult(elements=[_element(555, "Mont Ventoux")]))

    result = _verify(_resolver(catalog, features))

    assert result.outcome is MatchOutcome.ADDED
    assert result.similarity == 100
    assert result.external_id == "555"
    place = catalog.get_place(result.place_id)
    assert place.name == "Mont Ventoux"
    assert place.place_type == "peak"
    assert place.country == "France"
    assert place.description == "Géant de Provence"
    assert place.source_id == "article-1"
    assert place.metadata == {"ele": "1910"}
    assert place.geometry == {"type": "Point", "coordinates": [5.28, 44.17]}
    assert (place.source_score, place.enhancement_score, place.score) == (2, 0, 2)


def test_existing_feature_is_credited(catalog):
    existing = catalog.insert_place(Place(
        name="Mont Ventoux", external_id="555", description="Old",
        source_score=1, enhancement_score=3, score=4,
    ))
    features = FakeFeatures(FeatureSearchResult(elements=[_element(555, "Mont Ventoux")]))

    result = _verify(_resolver(catalog, features), description=None, source_id="article-2")

    assert result.place_id == existing.id
    place = catalog.get_place(existing.id)
    assert place.description == "Old"
    assert place.source_id == "article-2"
    assert (place.source_score, place.enhancement_score, place.score) == (3, 3, 6)
    assert len(catalog.list_places()) == 1


def test_results_without_nature_feature(catalog):
    result = _verify(_resolver(catalog, FakeFeatures(FeatureSearchResult(no_domain_match=True))))

    assert result.outcome is MatchOutcome.NO_NATURE_MATCH
    assert result.reason == REASON_NOT_NATURE


def test_nothing_found(catalog):
    result = _verify(_resolver(catalog, FakeFeatures()))

    assert result.outcome is MatchOutcome.NO_MATCH
    assert result.reason == REASON_NOT_FOUND


def test_no_usable_candidate(catalog):
    features = FakeFeatures(FeatureSearchResult(elements=[_element(1, "Mt")]))

    result = _verify(_resolver(catalog, features))

    assert result.outcome is MatchOutcome.NO_MATCH
    assert result.reason == REASON_NO_VALID


def test_several_candidates_are_ambiguous(catalog):
    features = FakeFeatures(FeatureSearchResult(elements=[
        _element(1, "Lac Bleu", kind="water", lat="42.9", lon="0.1"),
        _element(2, "Lac Bleu", kind="water", lat="42.8", lon="-0.2"),
    ]))

    result = _verify(_resolver(catalog, features), name="Lac Bleu")

    assert result.outcome is MatchOutcome.MULTIPLE_MATCHES
    assert result.reason == "ambiguous: 2 candidates"
    assert catalog.list_places() == []


def test_low_similarity_needs_review(catalog):
    features = FakeFeatures(FeatureSearchResult(elements=[_element(9, "Pic du Midi")]))

    result = _verify(_resolver(catalog, features), name="Mont Ventoux")

    assert result.outcome is MatchOutcome.MULTIPLE_MATCHES
    assert result.reason == "low confidence: similarity 0.0"
    assert result.external_id == "9"
    assert catalog.list_places() == []


def test_search_error_ends_as_no_match(catalog):
    features = FakeFeatures(error=RuntimeError("nominatim unreachable"))

    result = _verify(_resolver(catalog, features))

    assert result.outcome is MatchOutcome.NO_MATCH
    assert result.reason == "nominatim unreachable"


def test_verify_pending_records_outcomes(catalog):
    first = GeneratedPlace(
        name="Mont Ventoux", source_id="article-1",
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )
    second = GeneratedPlace(
        name="Lac Imaginaire", source_id="article-2",
        created_at=datetime(2026, 1, 2, tzinfo=timezone.utc),
    )
    orphan = GeneratedPlace(name="Sans source", created_at=datetime(2026, 1, 3, tzinfo=timezone.utc))
    for row in (first, second, orphan):
        catalog.insert_generated_place(row)

    class ByName(FakeFeatures):
        async def search(self, name):
            self.queries.append(name)
            if name == "Mont Ventoux":
                return FeatureSearchResult(elements=[_element(555, "Mont Ventoux")])
            return FeatureSearchResult()

    features = ByName()
    results = asyncio.run(_resolver(catalog, features).verify_pending())

    assert features.queries == ["Mont Ventoux", "Lac Imaginaire"]
    assert [r.outcome for r in results] == [MatchOutcome.ADDED, MatchOutcome.NO_MATCH]
    assert results[0].generated_place_id == first.id

    verified = catalog.get_generated_place(first.id)
    assert verified.status == "ADDED"
    assert verified.place_id == results[0].place_id
    assert catalog.get_generated_place(second.id).status == "NO_MATCH"
    assert catalog.get_generated_place(orphan.id).status is None
    assert catalog.has_verified_generated_place(results[0].place_id)
