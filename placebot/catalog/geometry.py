"""Coordinates from GeoJSON geometries."""

from typing import Any, Dict, Iterable, List, Optional, Tuple

LatLon = Tuple[float, float]


def _is_valid(lat: float, lon: float) -> bool:
    return -90 <= lat <= 90 and -180 <= lon <= 180


def center_from_coordinates(points: Iterable[LatLon]) -> Optional[LatLon]:
    """Midpoint of the bounding box of (lat, lon) pairs."""
    pts = [(lat, lon) for lat, lon in points if _is_valid(lat, lon)]
    if not pts:
        return None
    lats = [p[0] for p in pts]
    lons = [p[1] for p in pts]
    return (min(lats) + max(lats)) / 2, (min(lons) + max(lons)) / 2


def _ring_centroid(ring: List[List[float]]) -> Optional[LatLon]:
    """Area-weighted centroid of a closed ring, falling back to the vertex mean."""
    pts = [(float(p[0]), float(p[1])) for p in ring if len(p) >= 2]
    if not pts:
        return None
    if pts[0] != pts[-1]:
        pts.append(pts[0])

    area = 0.0
    cx = 0.0
    cy = 0.0
    for (x0, y0), (x1, y1) in zip(pts, pts[1:]):
        cross = x0 * y1 - x1 * y0
        area += cross
        cx += (x0 + x1) * cross
        cy += (y0 + y1) * cross
    if abs(area) < 1e-12:
        unique = pts[:-1] or pts
        lon = sum(p[0] for p in unique) / len(unique)
        lat = sum(p[1] for p in unique) / len(unique)
        return lat, lon
    area *= 0.5
    return cy / (6 * area), cx / (6 * area)


def geometry_center(geometry: Optional[Dict[str, Any]]) -> Optional[LatLon]:
    """Representative (lat, lon) of a GeoJSON geometry, or None.

    Points use their own coordinates, polygons their outer ring centroid and
    everything else the middle of its bounding box.
    """
    if not geometry or not geometry.get("coordinates"):
        return None
    try:
        kind = geometry.get("type")
        coords = geometry["coordinates"]
        if kind == "Point":
            lon, lat = float(coords[0]), float(coords[1])
            return (lat, lon) if _is_valid(lat, lon) else None
        if kind == "Polygon":
            return _ring_centroid(coords[0])
        if kind == "MultiPolygon":
            return _ring_centroid(max(coords, key=lambda poly: len(poly[0]))[0])
        if kind == "LineString":
            return center_from_coordinates((p[1], p[0]) for p in coords)
        if kind == "MultiLineString":
            return center_from_coordinates((p[1], p[0]) for line in coords for p in line)
    except (TypeError, ValueError, IndexError, KeyError):
        return None
    return None
