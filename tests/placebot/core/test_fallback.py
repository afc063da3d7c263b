"""Tests for first-success-wins source probing."""

import asyncio

import pytest

from placebot.core.fallback import SourceProbe, first_success, is_non_empty


def _probe(name, value, calls, applies=None):
    async def fetch(subject):
        calls.append(name)
        return value

    if applies is None:
        return SourceProbe(name, fetch)
    return SourceProbe(name, fetch, applies)


def test_is_non_empty():
    assert not is_non_empty(None)
    assert not is_non_empty([])
    assert not is_non_empty("")
    assert is_non_empty([1])
    assert is_non_empty(0)


def test_first_accepted_value_stops_chain():
    calls = []
    probes = [
        _probe("wikimedia", [], calls),
        _probe("google_places", ["photo"], calls),
        _probe("never", ["other"], calls),
    ]

    result = asyncio.run(first_success(probes, "Cirque de Gavarnie"))

    assert result.found
    assert result.source == "google_places"
    assert result.value == ["photo"]
    assert result.tried == ["wikimedia", "google_places"]
    assert calls == ["wikimedia", "google_places"]


def test_nothing_found():
    calls = []
    result = asyncio.run(first_success([_probe("a", None, calls), _probe("b", [], calls)], "x"))

    assert not result.found
    assert result.value is None
    assert result.tried == ["a", "b"]


def test_probe_not_applicable_is_skipped():
    calls = []
    probes = [
        _probe("needs_coordinates", ["photo"], calls, applies=lambda subject: False),
        _probe("by_name", ["photo"], calls),
    ]

    result = asyncio.run(first_success(probes, "x"))

    assert result.source == "by_name"
    assert result.skipped == ["needs_coordinates"]
    assert calls == ["by_name"]


def test_probe_errors_propagate():
    async def boom(subject):
        raise RuntimeError("upstream down")

    with pytest.raises(RuntimeError, match="upstream down"):
        asyncio.run(first_success([SourceProbe("boom", boom)], "x"))


def test_custom_accept():
    calls = []
    probes = [_probe("low", 1, calls), _probe("high", 10, calls)]

    result = asyncio.run(first_success(probes, "x", accept=lambda v: v > 5))

    assert result.source == "high"
