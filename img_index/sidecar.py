from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from .config import SIDECAR_STREAMS

logger = logging.getLogger(__name__)

SEPARATOR = ":"


def _check_stream(stream: str) -> str:
    if stream not in SIDECAR_STREAMS:
        raise ValueError(f"Unknown sidecar stream '{stream}', expected one of {', '.join(SIDECAR_STREAMS)}")
    return stream


def sidecar_path(image_path: str | Path, stream: str) -> Path:
    # photo.jpg -> photo.jpg:people.json
    image_path = Path(image_path)
    return image_path.with_name(f"{image_path.name}{SEPARATOR}{_check_stream(stream)}.json")


def is_sidecar_file(path: str | Path) -> bool:
    name = Path(path).name
    return any(name.endswith(f"{SEPARATOR}{stream}.json") for stream in SIDECAR_STREAMS)


def has_sidecar(image_path: str | Path, stream: str) -> bool:
    return sidecar_path(image_path, stream).is_file()


def read_sidecar(image_path: str | Path, stream: str) -> dict[str, Any] | None:
    path = sidecar_path(image_path, stream)
    if not path.is_file():
        return None
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning(f"Ignoring unreadable sidecar {path}: {exc}")
        return None
    if not isinstance(payload, dict):
        logger.warning(f"Ignoring sidecar {path}: expected a JSON object")
        return None
    return payload


def write_sidecar(image_path: str | Path, stream: str, payload: dict[str, Any]) -> Path:
    path = sidecar_path(image_path, stream)
    fd, tmp_name = tempfile.mkstemp(prefix=".sidecar-", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, ensure_ascii=False, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    logger.debug(f"Wrote sidecar {path}")
    return path


def remove_sidecar(image_path: str | Path, stream: str) -> bool:
    path = sidecar_path(image_path, stream)
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
