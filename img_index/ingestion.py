from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .config import IndexConfig
from .db import connect_sqlite, image_record, insert_record, recreate_schema
from .discovery import iter_image_files, load_image_metadata
from .preferences import get_image_directories, get_image_index_path
from .preprocess import preprocess_image

logger = logging.getLogger(__name__)


def remove_database_files(db_path: Path) -> None:
    for suffix in ("", "-wal", "-shm", "-journal"):
        candidate = db_path.with_name(db_path.name + suffix)
        if candidate.exists():
            candidate.unlink()


class ImageIndexExporter:
    """Rebuilds the SQLite image index from scratch out of files, EXIF and sidecars."""

    def __init__(self, cfg: IndexConfig | None = None):
        self.cfg = cfg or IndexConfig()

    def export(
        self,
        directories: list[str | Path] | None = None,
        *,
        database_path: str | Path | None = None,
        embed_images: bool = False,
    ) -> dict[str, Any]:
        db_path = get_image_index_path(self.cfg, database_path=str(database_path) if database_path else None)
        dirs = [Path(d) for d in directories] if directories else get_image_directories(self.cfg)
        if not dirs:
            raise ValueError("No image directories given and none configured (see add-dirs)")

        remove_database_files(db_path)
        conn = connect_sqlite(db_path)

        indexed = 0
        failures: list[str] = []
        try:
            recreate_schema(conn, self.cfg.schema_version)
            for image_path in iter_image_files(dirs, self.cfg):
                # Unreadable images and malformed sidecars are skipped; database errors abort the run.
                try:
                    meta = load_image_metadata(image_path)
                    image_data = preprocess_image(image_path, self.cfg).jpeg_bytes if embed_images else None
                    record = image_record(meta, image_data)
                except (OSError, ValueError, TypeError, RuntimeError) as exc:
                    failures.append(f"{image_path}: {exc}")
                    logger.warning(f"Skipping {image_path}: {exc}")
                    continue
                insert_record(conn, record)
                indexed += 1
            conn.commit()
        except Exception:
            conn.rollback()
            logger.exception(f"Index export to {db_path} failed, rolled back")
            raise
        finally:
            conn.close()

        logger.info(f"Indexed {indexed} image(s) into {db_path}")
        return {
            "database": str(db_path),
            "indexed": indexed,
            "failed": failures,
            "schema_version": self.cfg.schema_version,
        }
