from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .models import ImageMetadata
from .utils import as_bool, json_dumps, utc_now_iso

TABLES: tuple[str, ...] = (
    "ImageKeywords",
    "ImagePeople",
    "ImageObjects",
    "ImageScenes",
    "Images",
    "ImageSchemaVersion",
)


def connect_sqlite(path: str | Path) -> sqlite3.Connection:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    return conn


def recreate_schema(conn: sqlite3.Connection, schema_version: str) -> None:
    for table in TABLES:
        conn.execute(f"DROP TABLE IF EXISTS {table}")

    conn.executescript(
        """
        CREATE TABLE Images (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            path TEXT NOT NULL UNIQUE,
            image_data BLOB,
            file_size INTEGER NOT NULL DEFAULT 0,
            file_modified TEXT,
            width INTEGER NOT NULL DEFAULT 0,
            height INTEGER NOT NULL DEFAULT 0,
            camera_make TEXT,
            camera_model TEXT,
            gps_latitude REAL,
            gps_longitude REAL,
            gps_altitude REAL,
            exposure_time REAL,
            f_number REAL,
            iso_speed INTEGER,
            focal_length REAL,
            date_taken TEXT,
            short_description TEXT NOT NULL DEFAULT '',
            long_description TEXT NOT NULL DEFAULT '',
            picture_type TEXT NOT NULL DEFAULT '',
            overall_mood_of_image TEXT NOT NULL DEFAULT '',
            style_type TEXT NOT NULL DEFAULT '',
            has_nudity INTEGER NOT NULL DEFAULT 0,
            has_explicit_content INTEGER NOT NULL DEFAULT 0,
            description_language TEXT NOT NULL DEFAULT '',
            keywords_json TEXT NOT NULL DEFAULT '[]',
            people_json TEXT NOT NULL DEFAULT '{}',
            objects_json TEXT NOT NULL DEFAULT '{}',
            scenes_json TEXT NOT NULL DEFAULT '{}',
            indexed_at TEXT NOT NULL
        );

        CREATE TABLE ImageKeywords (
            image_id INTEGER NOT NULL,
            keyword TEXT NOT NULL,
            FOREIGN KEY(image_id) REFERENCES Images(id) ON DELETE CASCADE
        );

        CREATE TABLE ImagePeople (
            image_id INTEGER NOT NULL,
            person_name TEXT NOT NULL,
            FOREIGN KEY(image_id) REFERENCES Images(id) ON DELETE CASCADE
        );

        CREATE TABLE ImageObjects (
            image_id INTEGER NOT NULL,
            object_name TEXT NOT NULL,
            object_count INTEGER NOT NULL DEFAULT 1,
            FOREIGN KEY(image_id) REFERENCES Images(id) ON DELETE CASCADE
        );

        CREATE TABLE ImageScenes (
            image_id INTEGER NOT NULL,
            scene_name TEXT NOT NULL,
            confidence REAL NOT NULL DEFAULT 0.0,
            FOREIGN KEY(image_id) REFERENCES Images(id) ON DELETE CASCADE
        );

        CREATE TABLE ImageSchemaVersion (
            version TEXT NOT NULL,
            created_at TEXT NOT NULL
        );

        CREATE INDEX idx_images_mood ON Images(overall_mood_of_image);
        CREATE INDEX idx_images_style ON Images(style_type);
        CREATE INDEX idx_images_picture_type ON Images(picture_type);
        CREATE INDEX idx_images_nudity ON Images(has_nudity, has_explicit_content);
        CREATE INDEX idx_images_gps ON Images(gps_latitude, gps_longitude);
        CREATE INDEX idx_images_date_taken ON Images(date_taken);

        CREATE INDEX idx_keywords_keyword ON ImageKeywords(keyword COLLATE NOCASE);
        CREATE INDEX idx_keywords_image ON ImageKeywords(image_id);
        CREATE INDEX idx_people_name ON ImagePeople(person_name COLLATE NOCASE);
        CREATE INDEX idx_people_image ON ImagePeople(image_id);
        CREATE INDEX idx_objects_name ON ImageObjects(object_name COLLATE NOCASE);
        CREATE INDEX idx_objects_image ON ImageObjects(image_id);
        CREATE INDEX idx_scenes_name ON ImageScenes(scene_name COLLATE NOCASE);
        CREATE INDEX idx_scenes_image ON ImageScenes(image_id);
        """
    )
    conn.execute(
        "INSERT INTO ImageSchemaVersion (version, created_at) VALUES (?, ?)",
        (schema_version, utc_now_iso()),
    )


def get_schema_version(conn: sqlite3.Connection) -> str | None:
    try:
        row = conn.execute("SELECT version FROM ImageSchemaVersion ORDER BY rowid DESC LIMIT 1").fetchone()
    except sqlite3.OperationalError:
        return None
    return str(row["version"]) if row else None


def _scene(meta: ImageMetadata) -> dict[str, Any]:
    scenes = meta.scenes or {}
    name = str(scenes.get("scene") or scenes.get("label") or "").strip()
    if not name:
        return {}
    return {"scene": name, "confidence": float(scenes.get("confidence", 0.0) or 0.0)}


def _people_count(meta: ImageMetadata, faces: list[str]) -> int:
    count = (meta.people or {}).get("count")
    if isinstance(count, bool):
        return len(faces)
    try:
        return max(int(count), len(faces))
    except (TypeError, ValueError):
        return len(faces)


@dataclass
class ImageRecord:
    """One Images row plus the values for its child tables."""

    row: dict[str, Any]
    keywords: list[str] = field(default_factory=list)
    faces: list[str] = field(default_factory=list)
    object_counts: dict[str, int] = field(default_factory=dict)
    scene: dict[str, Any] = field(default_factory=dict)


def image_record(meta: ImageMetadata, image_data: bytes | None = None) -> ImageRecord:
    """Normalize sidecar and EXIF values for one image.

    Raises ValueError or TypeError when a sidecar value cannot be coerced, so a
    caller can skip the image before anything touches the database.
    """
    desc = meta.description or {}
    exif = meta.exif
    keywords = meta.keywords
    faces = meta.faces
    object_counts = meta.object_counts
    scene = _scene(meta)

    row = {
        "path": str(meta.path),
        "image_data": image_data,
        "file_size": int(meta.file_size),
        "file_modified": meta.file_modified,
        "width": int(exif.width),
        "height": int(exif.height),
        "camera_make": exif.camera_make,
        "camera_model": exif.camera_model,
        "gps_latitude": exif.gps_latitude,
        "gps_longitude": exif.gps_longitude,
        "gps_altitude": exif.gps_altitude,
        "exposure_time": exif.exposure_time,
        "f_number": exif.f_number,
        "iso_speed": exif.iso_speed,
        "focal_length": exif.focal_length,
        "date_taken": exif.date_taken,
        "short_description": str(desc.get("short_description", "") or ""),
        "long_description": str(desc.get("long_description", "") or ""),
        "picture_type": str(desc.get("picture_type", "") or ""),
        "overall_mood_of_image": str(desc.get("overall_mood_of_image", "") or ""),
        "style_type": str(desc.get("style_type", "") or ""),
        "has_nudity": int(as_bool(desc.get("has_nudity", False))),
        "has_explicit_content": int(as_bool(desc.get("has_explicit_content", False))),
        "description_language": str(desc.get("language", "") or ""),
        "keywords_json": json_dumps(keywords),
        "people_json": json_dumps({"count": _people_count(meta, faces), "faces": faces}),
        "objects_json": json_dumps({"count": sum(object_counts.values()), "object_counts": object_counts}),
        "scenes_json": json_dumps(scene),
        "indexed_at": utc_now_iso(),
    }
    return ImageRecord(row=row, keywords=keywords, faces=faces, object_counts=object_counts, scene=scene)


def insert_record(conn: sqlite3.Connection, record: ImageRecord) -> int:
    """Insert one Images row and its child rows. The caller owns the transaction."""
    cur = conn.execute(
        """
        INSERT INTO Images (
            path,image_data,file_size,file_modified,width,height,
            camera_make,camera_model,gps_latitude,gps_longitude,gps_altitude,
            exposure_time,f_number,iso_speed,focal_length,date_taken,
            short_description,long_description,picture_type,overall_mood_of_image,style_type,
            has_nudity,has_explicit_content,description_language,
            keywords_json,people_json,objects_json,scenes_json,indexed_at
        ) VALUES (
            :path,:image_data,:file_size,:file_modified,:width,:height,
            :camera_make,:camera_model,:gps_latitude,:gps_longitude,:gps_altitude,
            :exposure_time,:f_number,:iso_speed,:focal_length,:date_taken,
            :short_description,:long_description,:picture_type,:overall_mood_of_image,:style_type,
            :has_nudity,:has_explicit_content,:description_language,
            :keywords_json,:people_json,:objects_json,:scenes_json,:indexed_at
        )
        """,
        record.row,
    )
    image_id = int(cur.lastrowid)

    conn.executemany(
        "INSERT INTO ImageKeywords (image_id, keyword) VALUES (?, ?)",
        [(image_id, k) for k in record.keywords],
    )
    conn.executemany(
        "INSERT INTO ImagePeople (image_id, person_name) VALUES (?, ?)",
        [(image_id, name) for name in record.faces],
    )
    conn.executemany(
        "INSERT INTO ImageObjects (image_id, object_name, object_count) VALUES (?, ?, ?)",
        [(image_id, name, count) for name, count in record.object_counts.items()],
    )
    if record.scene:
        conn.execute(
            "INSERT INTO ImageScenes (image_id, scene_name, confidence) VALUES (?, ?, ?)",
            (image_id, record.scene["scene"], record.scene["confidence"]),
        )
    return image_id


def insert_image(conn: sqlite3.Connection, meta: ImageMetadata, image_data: bytes | None = None) -> int:
    return insert_record(conn, image_record(meta, image_data))
