"""Tests for the Wikimedia Commons and Google Places clients."""

import asyncio
import json

import httpx
import pytest

from placebot.core.retry import RetryExecutor, RetryPolicy
from placebot.enrichment.http_client import ServiceClient
from placebot.enrichment.media_clients import GooglePlacesClient, WikimediaClient


IMAGE_PAGES = {
    "11": {"imageinfo": [{
        "url": "https://upload.wikimedia.org/small.jpg",
        "width": 640, "height": 480,
        "extmetadata": {
            "Artist": {"value": '<a href="//commons.wikimedia.org/wiki/User:Jean">Jean  Dupont</a>'},
            "LicenseShortName": {"value": "CC BY-SA 4.0"},
        },
    }]},
    "12": {"imageinfo": [{
        "url": "https://upload.wikimedia.org/large.PNG",
        "width": 4000, "height": 3000,
        "extmetadata": {},
    }]},
    "13": {"imageinfo": [{
        "url": "https://upload.wikimedia.org/map.svg",
        "width": 9000, "height": 9000,
    }]},
    "14": {"missing": True},
}


def _service(name, handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ServiceClient(name, http, executor=RetryExecutor(RetryPolicy(max_attempts=1)))


class FakeCommons:
    def __init__(self, geosearch=(), search=(), geosearch_status=200):
        self.geosearch = [{"pageid": int(p)} for p in geosearch]
        self.search = [{"pageid": int(p)} for p in search]
        self.geosearch_status = geosearch_status
        self.requests = []

    def __call__(self, request):
        params = request.url.params
        self.requests.append(dict(params))
        if params.get("list") == "geosearch":
            if self.geosearch_status != 200:
                return httpx.Response(self.geosearch_status)
            return httpx.Response(200, json={"query": {"geosearch": self.geosearch}})
        if params.get("list") == "search":
            return httpx.Response(200, json={"query": {"search": self.search}})
        ids = params["pageids"].split("|")
        return httpx.Response(200, json={"query": {"pages": {i: IMAGE_PAGES[i] for i in ids}}})


class TestWikimediaClient:
    def test_geosearch_filters_and_sorts(self):
        commons = FakeCommons(geosearch=["11", "12", "13", "14"])
        client = WikimediaClient(_service("wikimedia", commons), radius_m=2000)

        photos = asyncio.run(client.search_photos("Lac d'Annecy", 45.85, 6.17))

        assert [p.url for p in photos] == [
            "https://upload.wikimedia.org/large.PNG",
            "https://upload.wikimedia.org/small.jpg",
        ]
        assert photos[0].attribution == "Photo by Unknown, Unknown license"
        assert photos[1].attribution == "Photo by Jean Dupont, CC BY-SA 4.0"
        geosearch = commons.requests[0]
        assert geosearch["gscoord"] == "45.85|6.17"
        assert geosearch["gsradius"] == "2000"
        assert geosearch["gsnamespace"] == "6"

    def test_name_search_when_nothing_nearby(self):
        commons = FakeCommons(geosearch=[], search=["11"])
        client = WikimediaClient(_service("wikimedia", commons))

        photos = asyncio.run(client.search_photos("Lac d'Annecy", 45.85, 6.17))

        assert [p.width for p in photos] == [640]
        assert commons.requests[1]["srsearch"] == "Lac d'Annecy"

    def test_name_search_without_coordinates(self):
        commons = FakeCommons(search=["12"])
        client = WikimediaClient(_service("wikimedia", commons))

        photos = asyncio.run(client.search_photos("Lac d'Annecy"))

        assert len(photos) == 1
        assert all(r.get("list") != "geosearch" for r in commons.requests)

    def test_failed_geosearch_falls_back_to_name(self):
        commons = FakeCommons(search=["11"], geosearch_status=503)
        client = WikimediaClient(_service("wikimedia", commons))

        photos = asyncio.run(client.search_photos("Lac d'Annecy", 45.85, 6.17))

        assert len(photos) == 1

    def test_max_photos(self):
        commons = FakeCommons(search=["11", "12"])
        client = WikimediaClient(_service("wikimedia", commons), max_photos=1)

        photos = asyncio.run(client.search_photos("Lac d'Annecy"))

        assert [p.width for p in photos] == [4000]


class FakePlaces:
    def __init__(self, search=None, details=None):
        self.search = search if search is not None else {"places": [{"id": "gp-1"}]}
        self.details = details or {}
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if request.method == "POST":
            return httpx.Response(200, json=self.search)
        return httpx.Response(200, json=self.details)


class TestGooglePlacesClient:
    def test_find_place_id_with_location_bias(self):
        places = FakePlaces()
        client = GooglePlacesClient(_service("google_places", places), "secret", bias_radius_m=3000)

        place_id = asyncio.run(client.find_place_id("Gorges du Verdon", 43.76, 6.32))

        request = places.requests[0]
        body = json.loads(request.content)
        assert place_id == "gp-1"
        assert request.headers["X-Goog-Api-Key"] == "secret"
        assert request.headers["X-Goog-FieldMask"] == "places.id,places.displayName"
        assert body["textQuery"] == "Gorges du Verdon"
        assert body["maxResultCount"] == 1
        assert body["locationBias"]["circle"] == {
            "center": {"latitude": 43.76, "longitude": 6.32},
            "radius": 3000,
        }

    def test_find_place_id_none(self):
        client = GooglePlacesClient(_service("google_places", FakePlaces(search={})), "secret")

        assert asyncio.run(client.find_place_id("Nowhere")) is None

    def test_get_photos(self):
        details = {"photos": [
            {"name": "places/gp-1/photos/a", "widthPx": 1200, "heightPx": 800,
             "authorAttributions": [{"displayName": "Marie"}]},
            {"name": "places/gp-1/photos/b"},
        ]}
        places = FakePlaces(details=details)
        client = GooglePlacesClient(_service("google_places", places), "secret", photo_max_px=400)

        photos = asyncio.run(client.get_photos("gp-1"))

        assert places.requests[0].headers["X-Goog-FieldMask"] == "photos"
        assert photos[0].url == (
            "https://places.googleapis.com/v1/places/gp-1/photos/a/media"
            "?maxHeightPx=400&maxWidthPx=400&key=secret"
        )
        assert photos[0].attribution == "Photo by Marie via Google Places"
        assert photos[0].width == 1200
        assert photos[1].attribution == "Photo via Google Places"

    def test_get_rating(self):
        places = FakePlaces(details={"rating": 4.6, "userRatingCount": 1532})
        client = GooglePlacesClient(_service("google_places", places), "secret")

        rating = asyncio.run(client.get_rating("gp-1"))

        assert (rating.rating, rating.rating_count, rating.provider_id) == (4.6, 1532, "gp-1")
        assert str(places.requests[0].url) == "https://places.googleapis.com/v1/places/gp-1"

    def test_get_rating_missing(self):
        client = GooglePlacesClient(_service("google_places", FakePlaces(details={})), "secret")

        assert asyncio.run(client.get_rating("gp-1")) is None

    def test_http_errors_propagate(self):
        def handler(request):
            return httpx.Response(403, json={"error": {"status": "PERMISSION_DENIED"}})

        client = GooglePlacesClient(_service("google_places", handler), "bad-key")

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(client.get_rating("gp-1"))
