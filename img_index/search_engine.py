from __future__ import annotations

import json
import logging
import math
import sqlite3
from pathlib import Path
from typing import Any

from .config import IndexConfig
from .db import connect_sqlite, get_schema_version
from .ingestion import ImageIndexExporter
from .models import IndexedImage
from .preferences import get_image_index_path
from .query_builder import ImageQuery, build_query

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000.0


class IndexUnavailableError(RuntimeError):
    """The index file is missing or was written by a different schema version."""


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dp = p2 - p1
    dl = math.radians(lon2 - lon1)
    a = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))


def _json_field(raw: Any, default: Any) -> Any:
    try:
        parsed = json.loads(raw or "null")
    except (TypeError, ValueError):
        return default
    return parsed if isinstance(parsed, type(default)) else default


def row_to_image(row: sqlite3.Row) -> IndexedImage:
    people = _json_field(row["people_json"], {})
    objects = _json_field(row["objects_json"], {})
    return IndexedImage(
        id=int(row["id"]),
        path=str(row["path"]),
        width=int(row["width"] or 0),
        height=int(row["height"] or 0),
        short_description=str(row["short_description"] or ""),
        long_description=str(row["long_description"] or ""),
        picture_type=str(row["picture_type"] or ""),
        overall_mood_of_image=str(row["overall_mood_of_image"] or ""),
        style_type=str(row["style_type"] or ""),
        has_nudity=bool(row["has_nudity"]),
        has_explicit_content=bool(row["has_explicit_content"]),
        keywords=[str(k) for k in _json_field(row["keywords_json"], [])],
        people=[str(f) for f in people.get("faces", []) or []],
        objects={str(k): int(v) for k, v in (objects.get("object_counts") or {}).items()},
        scene=_json_field(row["scenes_json"], {}),
        camera_make=row["camera_make"],
        camera_model=row["camera_model"],
        gps_latitude=row["gps_latitude"],
        gps_longitude=row["gps_longitude"],
        gps_altitude=row["gps_altitude"],
        date_taken=row["date_taken"],
    )


class IndexedImageSearch:
    def __init__(self, cfg: IndexConfig | None = None, exporter: ImageIndexExporter | None = None):
        self.cfg = cfg or IndexConfig()
        self.exporter = exporter or ImageIndexExporter(self.cfg)

    def _run(self, db_path: Path, sql: str, params: dict[str, Any]) -> list[sqlite3.Row]:
        if not db_path.is_file():
            raise IndexUnavailableError(f"Image index not found: {db_path}")
        conn = connect_sqlite(db_path)
        try:
            version = get_schema_version(conn)
            if version != self.cfg.schema_version:
                raise IndexUnavailableError(
                    f"Image index {db_path} has schema version {version!r}, expected {self.cfg.schema_version!r}"
                )
            return conn.execute(sql, params).fetchall()
        finally:
            conn.close()

    def find(self, query: ImageQuery, *, database_path: str | Path | None = None) -> list[IndexedImage]:
        sql, params = build_query(query)
        db_path = get_image_index_path(self.cfg, database_path=str(database_path) if database_path else None)

        try:
            rows = self._run(db_path, sql, params)
        except (IndexUnavailableError, sqlite3.OperationalError) as exc:
            logger.warning(f"Index query failed ({exc}); rebuilding {db_path} and retrying once")
            self.exporter.export(database_path=db_path)
            rows = self._run(db_path, sql, params)

        images = [row_to_image(r) for r in rows]
        if query.geo_location is not None:
            lat, lon = float(query.geo_location[0]), float(query.geo_location[1])
            images = [
                img
                for img in images
                if img.gps_latitude is not None
                and img.gps_longitude is not None
                and haversine_m(lat, lon, img.gps_latitude, img.gps_longitude) <= query.geo_distance_m
            ]
            if query.limit > 0:
                images = images[: query.limit]
        return images
