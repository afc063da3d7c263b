"""Tests for the JSON file cache."""

import asyncio

import pytest

from placebot.core.cache import SourceCache


@pytest.fixture
def cache(tmp_path):
    return SourceCache(tmp_path, "wikipedia")


class Counter:
    def __init__(self, value):
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.value


def test_miss_then_hit(cache):
    """A miss computes and stores, the next lookup does not compute."""
    compute = Counter({"title": "Gorges du Verdon", "views": 1200})

    first = asyncio.run(cache.load_or_fetch("fr_Gorges_du_Verdon", compute))
    second = asyncio.run(cache.load_or_fetch("fr_Gorges_du_Verdon", compute))

    assert first == second == {"title": "Gorges du Verdon", "views": 1200}
    assert compute.calls == 1
    assert cache.exists("fr_Gorges_du_Verdon")


def test_entries_live_under_namespace(cache, tmp_path):
    asyncio.run(cache.load_or_fetch("en_Mont_Blanc", Counter([1, 2])))

    assert cache.path_for("en_Mont_Blanc") == tmp_path / "wikipedia" / "en_Mont_Blanc.json"
    assert cache.path_for("en_Mont_Blanc").exists()


def test_force_refresh_recomputes(cache):
    asyncio.run(cache.load_or_fetch("k", Counter("old")))
    fresh = Counter("new")

    value = asyncio.run(cache.load_or_fetch("k", fresh, force_refresh=True))

    assert value == "new"
    assert fresh.calls == 1
    assert asyncio.run(cache.load_or_fetch("k", Counter("unused"))) == "new"


def test_unsafe_keys_get_distinct_files(cache):
    a = cache.path_for("fr:Lac d'Annecy")
    b = cache.path_for("fr/Lac d'Annecy")

    assert a != b
    assert a.parent == cache.directory
    assert "/" not in a.name and ":" not in a.name


def test_corrupt_entry_is_a_miss(cache):
    cache.directory.mkdir(parents=True)
    cache.path_for("broken").write_text("{not json", encoding="utf-8")
    compute = Counter({"ok": True})

    assert asyncio.run(cache.load_or_fetch("broken", compute)) == {"ok": True}
    assert compute.calls == 1


def test_unserializable_value_is_returned_but_not_stored(cache):
    """A failed save never fails the caller."""
    value = {"when": object()}

    result = asyncio.run(cache.load_or_fetch("odd", Counter(value)))

    assert result is value
    assert not cache.exists("odd")
    assert list(cache.directory.iterdir()) == []


def test_none_is_not_stored(cache):
    """A lookup that found nothing is retried on the next call."""
    compute = Counter(None)

    assert asyncio.run(cache.load_or_fetch("nothing", compute)) is None
    asyncio.run(cache.load_or_fetch("nothing", compute))

    assert compute.calls == 2
    assert not cache.exists("nothing")


def test_concurrent_lookups_compute_once(cache):
    calls = []

    async def slow():
        calls.append(1)
        await asyncio.sleep(0.01)
        return "value"

    async def main():
        return await asyncio.gather(*(cache.load_or_fetch("shared", slow) for _ in range(5)))

    assert asyncio.run(main()) == ["value"] * 5
    assert len(calls) == 1


def test_delete_and_clear(cache):
    for key in ("a", "b", "c"):
        asyncio.run(cache.load_or_fetch(key, Counter(key)))

    cache.delete("a")
    cache.delete("missing")

    assert not cache.exists("a")
    assert cache.clear() == 2
    assert cache.clear() == 0


def test_clear_without_directory(tmp_path):
    assert SourceCache(tmp_path, "never_used").clear() == 0
