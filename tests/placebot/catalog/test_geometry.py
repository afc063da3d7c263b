"""Tests for GeoJSON center computation."""

import pytest

from placebot.catalog.geometry import center_from_coordinates, geometry_center


def test_point():
    assert geometry_center({"type": "Point", "coordinates": [6.13, 45.86]}) == (45.86, 6.13)


def test_point_out_of_range():
    assert geometry_center({"type": "Point", "coordinates": [200.0, 95.0]}) is None


def test_polygon_centroid():
    square = [[[0, 0], [2, 0], [2, 2], [0, 2], [0, 0]]]
    lat, lon = geometry_center({"type": "Polygon", "coordinates": square})

    assert lat == pytest.approx(1.0)
    assert lon == pytest.approx(1.0)


def test_degenerate_polygon_uses_vertex_mean():
    ring = [[[5.0, 45.0], [5.0, 45.0], [5.0, 45.0]]]
    assert geometry_center({"type": "Polygon", "coordinates": ring}) == (45.0, 5.0)


def test_multipolygon_uses_largest_ring():
    small = [[[0, 0], [1, 0], [0, 0]]]
    large = [[[10, 40], [12, 40], [12, 42], [10, 42], [10, 40]]]
    lat, lon = geometry_center({"type": "MultiPolygon", "coordinates": [small, large]})

    assert lat == pytest.approx(41.0)
    assert lon == pytest.approx(11.0)


def test_linestring_bounding_box():
    line = {"type": "LineString", "coordinates": [[1.0, 44.0], [3.0, 46.0]]}
    assert geometry_center(line) == (45.0, 2.0)


@pytest.mark.parametrize("geometry", [
    None,
    {},
    {"type": "Point", "coordinates": []},
    {"type": "Point", "coordinates": ["x", "y"]},
    {"type": "GeometryCollection", "coordinates": [[1, 2]]},
])
def test_unusable_geometries(geometry):
    assert geometry_center(geometry) is None


def test_center_from_coordinates_ignores_invalid_points():
    assert center_from_coordinates([(44.0, 1.0), (46.0, 3.0), (120.0, 0.0)]) == (45.0, 2.0)
    assert center_from_coordinates([]) is None
