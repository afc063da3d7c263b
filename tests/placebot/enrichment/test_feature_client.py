"""Tests for Nominatim search and candidate reduction."""

import asyncio

import httpx

from placebot.core.retry import RetryExecutor, RetryPolicy
from placebot.enrichment.feature_client import FeatureClient, domain_tag, reduce_elements
from placebot.enrichment.http_client import ServiceClient


ANNECY = {
    "osm_id": 1234,
    "class": "natural",
    "type": "water",
    "lat": "45.85",
    "lon": "6.17",
    "display_name": "Lac d'Annecy, Haute-Savoie, Auvergne-Rhône-Alpes, France",
    "namedetails": {"name": "Lac d'Annecy"},
    "extratags": {"water": "lake", "wikipedia": "fr:Lac d'Annecy", "ele": 447},
}

ANNECY_TOWN = {
    "osm_id": 99,
    "class": "place",
    "type": "town",
    "lat": "45.89",
    "lon": "6.12",
    "display_name": "Annecy, Haute-Savoie, France",
}


def test_domain_tag_prefers_classification():
    assert domain_tag({"class": "natural", "type": "peak", "leisure": "park"}) == ("natural", "peak")
    assert domain_tag({"class": "natural", "type": "water", "water": "lake"}) == ("water", "lake")
    assert domain_tag({"class": "place", "type": "town"}) is None
    assert domain_tag({"waterway": "waterfall"}) is None


class TestReduceElements:
    def test_candidate_fields(self):
        (candidate,) = reduce_elements([ANNECY])

        assert candidate.external_id == "1234"
        assert candidate.name == "Lac d'Annecy"
        assert (candidate.category, candidate.place_type) == ("water", "lake")
        assert (candidate.latitude, candidate.longitude) == (45.85, 6.17)
        assert candidate.geometry == {"type": "Point", "coordinates": [6.17, 45.85]}
        assert candidate.tags["ele"] == "447"

    def test_name_from_display_name_and_center_from_geojson(self):
        element = {
            "osm_id": 77,
            "class": "leisure",
            "type": "nature_reserve",
            "display_name": "Réserve naturelle du Néouvielle, Hautes-Pyrénées, France",
            "geojson": {"type": "Polygon", "coordinates": [[[0, 42], [2, 42], [2, 44], [0, 44], [0, 42]]]},
        }

        (candidate,) = reduce_elements([element])

        assert candidate.name == "Réserve naturelle du Néouvielle"
        assert round(candidate.latitude, 6) == 43.0
        assert candidate.geometry == element["geojson"]

    def test_unusable_elements_dropped(self):
        short_name = {**ANNECY, "namedetails": {"name": "Lu"}}
        no_location = {"osm_id": 5, "class": "natural", "type": "peak", "namedetails": {"name": "Pic Sans Lieu"}}

        assert reduce_elements([short_name, no_location]) == []


class FakeNominatim:
    def __init__(self, results):
        self.results = results
        self.params = None

    def __call__(self, request):
        self.params = request.url.params
        return httpx.Response(200, json=self.results)


def _client(handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    service = ServiceClient("nominatim", http, executor=RetryExecutor(RetryPolicy(max_attempts=1)))
    return FeatureClient(service, country_codes="fr", limit=5)


class TestFeatureClient:
    def test_search_keeps_nature_results(self):
        nominatim = FakeNominatim([ANNECY, ANNECY_TOWN])

        result = asyncio.run(_client(nominatim).search("Lac d'Annecy"))

        assert [e["osm_id"] for e in result.elements] == [1234]
        assert not result.no_domain_match
        assert nominatim.params["q"] == "Lac d'Annecy"
        assert nominatim.params["countrycodes"] == "fr"
        assert nominatim.params["limit"] == "5"
        assert nominatim.params["polygon_geojson"] == "1"

    def test_results_without_nature_feature(self):
        result = asyncio.run(_client(FakeNominatim([ANNECY_TOWN])).search("Annecy"))

        assert result.elements == []
        assert result.no_domain_match

    def test_no_results(self):
        result = asyncio.run(_client(FakeNominatim([])).search("Lac Imaginaire"))

        assert result.elements == []
        assert not result.no_domain_match
