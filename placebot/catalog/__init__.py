"""Catalog records and the SQLite store the enrichment services write to."""

from placebot.catalog.models import (
    EncyclopediaRecord,
    GeneratedPlace,
    Place,
    PlacePhoto,
    ScoreBreakdown,
    ScoreComponent,
)
from placebot.catalog.store import CatalogStore, SQLiteCatalog

__all__ = [
    "Place",
    "PlacePhoto",
    "GeneratedPlace",
    "EncyclopediaRecord",
    "ScoreBreakdown",
    "ScoreComponent",
    "CatalogStore",
    "SQLiteCatalog",
]
