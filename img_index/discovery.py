from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .config import IndexConfig
from .exif import extract_exif
from .models import ImageMetadata
from .sidecar import is_sidecar_file, read_sidecar

logger = logging.getLogger(__name__)


def iter_image_files(directories: list[Path], cfg: IndexConfig) -> Iterator[Path]:
    """Yield supported image files below each directory once, in sorted order."""
    seen: set[str] = set()
    for directory in directories:
        directory = Path(directory)
        if not directory.is_dir():
            logger.warning(f"Skipping missing image directory: {directory}")
            continue
        for p in sorted(directory.rglob("*")):
            if not p.is_file() or p.suffix.lower() not in cfg.supported_exts:
                continue
            if is_sidecar_file(p):
                continue
            key = os.path.normcase(str(p.resolve()))
            if key in seen:
                continue
            seen.add(key)
            yield p


def load_image_metadata(image_path: Path) -> ImageMetadata:
    st = image_path.stat()
    return ImageMetadata(
        path=image_path.resolve(),
        file_size=st.st_size,
        file_modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).isoformat(),
        exif=extract_exif(image_path),
        description=read_sidecar(image_path, "description"),
        people=read_sidecar(image_path, "people"),
        objects=read_sidecar(image_path, "objects"),
        scenes=read_sidecar(image_path, "scenes"),
    )
