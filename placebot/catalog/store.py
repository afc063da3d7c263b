"""SQLite-backed catalog store.

The enrichment services talk to the catalog through the narrow
`CatalogStore` protocol: read a place by id or external id, update named
fields, insert a place, and read/write photos, staging rows and stored
encyclopedia pages. `SQLiteCatalog` implements it on a local database file.

Usage:
------
catalog = SQLiteCatalog(Path("data/catalog.db"))
place = catalog.get_place(place_id)
catalog.update_scores(place.id, place.scores.bump(ScoreComponent.ENHANCEMENT, 2))
"""

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from placebot.catalog.models import (
    EncyclopediaRecord,
    GeneratedPlace,
    Place,
    PlacePhoto,
    ScoreBreakdown,
)
from placebot.utils.logger import LoggerManager


_JSON_PLACE_FIELDS = {"geometry", "metadata"}
_DATETIME_PLACE_FIELDS = {
    "photos_fetched_at", "rating_fetched_at", "encyclopedia_analyzed_at", "created_at",
}
_PLACE_COLUMNS = list(Place.model_fields)


class CatalogStore(Protocol):
    """Operations the enrichment services need from the catalog."""

    def get_place(self, place_id: str) -> Optional[Place]: ...

    def get_place_by_external_id(self, external_id: str) -> Optional[Place]: ...

    def insert_place(self, place: Place) -> Place: ...

    def update_place(self, place_id: str, **fields: Any) -> None: ...

    def update_scores(self, place_id: str, scores: ScoreBreakdown) -> None: ...

    def has_photos(self, place_id: str) -> bool: ...

    def save_photos(self, place_id: str, photos: List[PlacePhoto]) -> int: ...

    def update_generated_place(
        self, generated_id: str, status: str, place_id: Optional[str]
    ) -> None: ...

    def list_generated_without_status(
        self, limit: Optional[int] = None
    ) -> List[GeneratedPlace]: ...

    def has_verified_generated_place(self, place_id: str) -> bool: ...

    def get_encyclopedia(self, place_id: str) -> Optional[EncyclopediaRecord]: ...

    def save_encyclopedia(self, record: EncyclopediaRecord) -> None: ...


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    if hasattr(value, "value") and isinstance(value, str):
        return value.value
    return value


def _decode_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SQLiteCatalog:
    """SQLite implementation of CatalogStore.

    Attributes:
        db_path: Path to SQLite database file
        _conn: SQLite connection (lazy-loaded)
    """

    def __init__(self, db_path: Path):
        """Open (and create if needed) the catalog database.

        Args:
            db_path: Path to SQLite database, or ":memory:"
        """
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self.logger = LoggerManager.get_logger(__name__)
        self._ensure_schema()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
        return self._conn

    def _ensure_schema(self) -> None:
        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, encoding="utf-8") as f:
            self.conn.executescript(f.read())
        self.conn.commit()
        self.logger.debug(
            "catalog.schema.ready", extra={"extra_data": {"db_path": str(self.db_path)}}
        )

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # -------------------------------------------------------------------------
    # Places
    # -------------------------------------------------------------------------

    def _row_to_place(self, row: sqlite3.Row) -> Place:
        data = dict(row)
        for field in _JSON_PLACE_FIELDS:
            data[field] = json.loads(data[field]) if data[field] else None
        data["metadata"] = data["metadata"] or {}
        for field in _DATETIME_PLACE_FIELDS:
            data[field] = _decode_datetime(data[field])
        return Place(**data)

    def get_place(self, place_id: str) -> Optional[Place]:
        row = self.conn.execute("SELECT * FROM places WHERE id = ?", (place_id,)).fetchone()
        return self._row_to_place(row) if row else None

    def get_place_by_external_id(self, external_id: str) -> Optional[Place]:
        row = self.conn.execute(
            "SELECT * FROM places WHERE external_id = ?", (str(external_id),)
        ).fetchone()
        return self._row_to_place(row) if row else None

    def insert_place(self, place: Place) -> Place:
        values = [_encode(getattr(place, column)) for column in _PLACE_COLUMNS]
        placeholders = ", ".join("?" for _ in _PLACE_COLUMNS)
        self.conn.execute(
            f"INSERT INTO places ({', '.join(_PLACE_COLUMNS)}) VALUES ({placeholders})",
            values,
        )
        self.conn.commit()
        self.logger.info(
            "catalog.place.inserted",
            extra={"extra_data": {"place_id": place.id, "name": place.name}},
        )
        return place

    def update_place(self, place_id: str, **fields: Any) -> None:
        """Update named columns of a place.

        Raises:
            ValueError: If a field is not a place column
        """
        if not fields:
            return
        unknown = set(fields) - set(_PLACE_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown place fields: {sorted(unknown)}")
        assignments = ", ".join(f"{name} = ?" for name in fields)
        values = [_encode(v) for v in fields.values()]
        self.conn.execute(
            f"UPDATE places SET {assignments} WHERE id = ?", (*values, place_id)
        )
        self.conn.commit()

    def update_scores(self, place_id: str, scores: ScoreBreakdown) -> None:
        """Write source, enhancement and total score together."""
        self.update_place(place_id, **scores.as_fields())

    def list_places(self, limit: Optional[int] = None) -> List[Place]:
        query = "SELECT * FROM places ORDER BY created_at"
        params: tuple = ()
        if limit:
            query += " LIMIT ?"
            params = (limit,)
        return [self._row_to_place(r) for r in self.conn.execute(query, params)]

    def places_without_photos_fetch(
        self, min_score: float = 0, limit: Optional[int] = None
    ) -> List[Place]:
        """Places never processed by the media fetcher, best score first."""
        query = """
        SELECT * FROM places
        WHERE photos_fetched_at IS NULL AND score >= ?
        ORDER BY score DESC, created_at
        """
        params: tuple = (min_score,)
        if limit:
            query += " LIMIT ?"
            params = (min_score, limit)
        return [self._row_to_place(r) for r in self.conn.execute(query, params)]

    def places_for_ratings(
        self, stale_before: datetime, limit: Optional[int] = None
    ) -> List[Place]:
        """Places whose rating was never fetched or fetched before `stale_before`."""
        query = """
        SELECT * FROM places
        WHERE rating_fetched_at IS NULL OR rating_fetched_at < ?
        ORDER BY score DESC, created_at
        """
        params: tuple = (stale_before.isoformat(),)
        if limit:
            query += " LIMIT ?"
            params = (stale_before.isoformat(), limit)
        return [self._row_to_place(r) for r in self.conn.execute(query, params)]

    def places_without_encyclopedia(self, limit: Optional[int] = None) -> List[Place]:
        query = """
        SELECT * FROM places
        WHERE encyclopedia_analyzed_at IS NULL
        ORDER BY score DESC, created_at
        """
        params: tuple = ()
        if limit:
            query += " LIMIT ?"
            params = (limit,)
        return [self._row_to_place(r) for r in self.conn.execute(query, params)]

    def places_with_encyclopedia_reference(self) -> List[Place]:
        rows = self.conn.execute(
            "SELECT * FROM places WHERE encyclopedia_reference IS NOT NULL ORDER BY created_at"
        )
        return [self._row_to_place(r) for r in rows]

    # -------------------------------------------------------------------------
    # Photos
    # -------------------------------------------------------------------------

    def has_photos(self, place_id: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM place_photos WHERE place_id = ? LIMIT 1", (place_id,)
        ).fetchone()
        return row is not None

    def save_photos(self, place_id: str, photos: List[PlacePhoto]) -> int:
        self.conn.executemany(
            """
            INSERT INTO place_photos
            (place_id, url, source, attribution, width, height, is_primary)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (place_id, p.url, p.source, p.attribution, p.width, p.height, int(p.is_primary))
                for p in photos
            ],
        )
        self.conn.commit()
        return len(photos)

    def get_photos(self, place_id: str) -> List[PlacePhoto]:
        rows = self.conn.execute(
            "SELECT * FROM place_photos WHERE place_id = ? ORDER BY id", (place_id,)
        )
        return [
            PlacePhoto(**{**dict(r), "is_primary": bool(r["is_primary"])}) for r in rows
        ]

    # -------------------------------------------------------------------------
    # Generated places (staging)
    # -------------------------------------------------------------------------

    def _row_to_generated(self, row: sqlite3.Row) -> GeneratedPlace:
        data = dict(row)
        data["created_at"] = _decode_datetime(data["created_at"])
        return GeneratedPlace(**data)

    def insert_generated_place(self, generated: GeneratedPlace) -> GeneratedPlace:
        self.conn.execute(
            """
            INSERT INTO generated_places
            (id, name, description, source_id, status, place_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                generated.id,
                generated.name,
                generated.description,
                generated.source_id,
                generated.status,
                generated.place_id,
                generated.created_at.isoformat(),
            ),
        )
        self.conn.commit()
        return generated

    def get_generated_place(self, generated_id: str) -> Optional[GeneratedPlace]:
        row = self.conn.execute(
            "SELECT * FROM generated_places WHERE id = ?", (generated_id,)
        ).fetchone()
        return self._row_to_generated(row) if row else None

    def update_generated_place(
        self, generated_id: str, status: str, place_id: Optional[str]
    ) -> None:
        self.conn.execute(
            "UPDATE generated_places SET status = ?, place_id = ? WHERE id = ?",
            (_encode(status), place_id, generated_id),
        )
        self.conn.commit()

    def list_generated_without_status(
        self, limit: Optional[int] = None
    ) -> List[GeneratedPlace]:
        """Staging rows never verified, oldest first."""
        query = "SELECT * FROM generated_places WHERE status IS NULL ORDER BY created_at ASC"
        params: tuple = ()
        if limit:
            query += " LIMIT ?"
            params = (limit,)
        return [self._row_to_generated(r) for r in self.conn.execute(query, params)]

    def has_verified_generated_place(self, place_id: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM generated_places WHERE place_id = ? LIMIT 1", (place_id,)
        ).fetchone()
        return row is not None

    # -------------------------------------------------------------------------
    # Encyclopedia pages
    # -------------------------------------------------------------------------

    def save_encyclopedia(self, record: EncyclopediaRecord) -> None:
        self.conn.execute(
            """
            INSERT OR REPLACE INTO encyclopedia_pages
            (place_id, reference, language, title, page_id, summary, categories,
             average_views, languages, infobox, score, fetched_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.place_id,
                record.reference,
                record.language,
                record.title,
                record.page_id,
                record.summary,
                json.dumps(record.categories, ensure_ascii=False),
                record.average_views,
                json.dumps(record.languages),
                json.dumps(record.infobox, ensure_ascii=False) if record.infobox else None,
                record.score,
                record.fetched_at.isoformat(),
            ),
        )
        self.conn.commit()

    def get_encyclopedia(self, place_id: str) -> Optional[EncyclopediaRecord]:
        row = self.conn.execute(
            "SELECT * FROM encyclopedia_pages WHERE place_id = ?", (place_id,)
        ).fetchone()
        if not row:
            return None
        data = dict(row)
        data["categories"] = json.loads(data["categories"])
        data["languages"] = json.loads(data["languages"])
        data["infobox"] = json.loads(data["infobox"]) if data["infobox"] else None
        data["fetched_at"] = _decode_datetime(data["fetched_at"])
        return EncyclopediaRecord(**data)

    def delete_encyclopedia(self, place_id: str) -> None:
        self.conn.execute("DELETE FROM encyclopedia_pages WHERE place_id = ?", (place_id,))
        self.conn.commit()
