"""Sidecar writers: run the AI services over image directories and persist their answers.

Each ``update_*`` function walks the configured image directories, skips images
that already carry the relevant sidecar (unless ``force``), and writes one JSON
sidecar per image. A failure on one image is recorded and the walk continues.
"""

from __future__ import annotations

import logging
from collections import Counter
from contextlib import nullcontext
from pathlib import Path
from typing import Any, Callable

from .config import IndexConfig
from .detection import UNKNOWN_FACE, DetectionClient
from .discovery import iter_image_files
from .models import PreparedImage
from .preferences import get_image_directories, get_known_faces_root, get_meta_language
from .preprocess import preprocess_image
from .sidecar import has_sidecar, write_sidecar
from .utils import dedupe_keep_order, utc_now_iso
from .vlm_analyzer import make_describer

logger = logging.getLogger(__name__)


def _resolve_directories(directories: list[str | Path] | None, cfg: IndexConfig) -> list[Path]:
    if directories:
        return [Path(d) for d in directories]
    configured = get_image_directories(cfg)
    if not configured:
        raise ValueError("No image directories given and none configured (see add-dirs)")
    return configured


def _annotate(
    stream: str,
    directories: list[str | Path] | None,
    cfg: IndexConfig,
    force: bool,
    work: Callable[[PreparedImage], dict[str, Any]],
) -> dict[str, Any]:
    processed = 0
    skipped = 0
    failures: list[str] = []
    for image_path in iter_image_files(_resolve_directories(directories, cfg), cfg):
        if not force and has_sidecar(image_path, stream):
            skipped += 1
            continue
        try:
            payload = work(preprocess_image(image_path, cfg))
            payload["updated_at"] = utc_now_iso()
            write_sidecar(image_path, stream, payload)
            processed += 1
            logger.info(f"[{stream}] {image_path}")
        except Exception as exc:
            failures.append(f"{image_path}: {exc}")
            logger.error(f"[{stream}] failed for {image_path}: {exc}")
    return {"stream": stream, "processed": processed, "skipped": skipped, "failed": failures}


def update_descriptions(
    directories: list[str | Path] | None = None,
    cfg: IndexConfig | None = None,
    *,
    force: bool = False,
    language: str | None = None,
    describer=None,
) -> dict[str, Any]:
    cfg = cfg or IndexConfig()
    language = get_meta_language(cfg, language=language)
    with nullcontext(describer) if describer is not None else make_describer(cfg) as active:
        return _annotate(
            "description",
            directories,
            cfg,
            force,
            lambda prepared: active.describe(prepared, language).to_sidecar(),
        )


def _client_context(client: DetectionClient | None, cfg: IndexConfig):
    return nullcontext(client) if client is not None else DetectionClient(cfg)


def faces_payload(predictions) -> dict[str, Any]:
    names = [p.label for p in predictions if p.label and p.label.lower() != UNKNOWN_FACE]
    return {
        "count": len(predictions),
        "faces": dedupe_keep_order(names),
        "predictions": [p.to_dict() for p in predictions],
    }


def objects_payload(predictions) -> dict[str, Any]:
    labels = [p.label for p in predictions]
    return {
        "count": len(labels),
        "objects": labels,
        "object_counts": dict(Counter(labels)),
        "predictions": [p.to_dict() for p in predictions],
    }


def update_faces(
    directories: list[str | Path] | None = None,
    cfg: IndexConfig | None = None,
    *,
    force: bool = False,
    client: DetectionClient | None = None,
) -> dict[str, Any]:
    cfg = cfg or IndexConfig()
    with _client_context(client, cfg) as active:
        return _annotate("people", directories, cfg, force, lambda p: faces_payload(active.recognize_faces(p)))


def update_objects(
    directories: list[str | Path] | None = None,
    cfg: IndexConfig | None = None,
    *,
    force: bool = False,
    client: DetectionClient | None = None,
) -> dict[str, Any]:
    cfg = cfg or IndexConfig()
    with _client_context(client, cfg) as active:
        return _annotate("objects", directories, cfg, force, lambda p: objects_payload(active.detect_objects(p)))


def update_scenes(
    directories: list[str | Path] | None = None,
    cfg: IndexConfig | None = None,
    *,
    force: bool = False,
    client: DetectionClient | None = None,
) -> dict[str, Any]:
    cfg = cfg or IndexConfig()
    with _client_context(client, cfg) as active:
        return _annotate("scenes", directories, cfg, force, active.classify_scene)


def register_known_faces(
    cfg: IndexConfig | None = None,
    *,
    faces_root: str | None = None,
    client: DetectionClient | None = None,
) -> dict[str, Any]:
    """Register every ``<faces_root>/<person name>/`` folder with the face recognizer."""
    cfg = cfg or IndexConfig()
    root = get_known_faces_root(cfg, faces_directory=faces_root)
    if not root.is_dir():
        raise FileNotFoundError(f"Known faces directory not found: {root}")
    registered: list[dict[str, Any]] = []
    failures: list[str] = []
    with _client_context(client, cfg) as active:
        for person_dir in sorted(p for p in root.iterdir() if p.is_dir()):
            images = list(iter_image_files([person_dir], cfg))
            if not images:
                continue
            try:
                registered.append(active.register_face(person_dir.name, images))
            except Exception as exc:
                failures.append(f"{person_dir.name}: {exc}")
                logger.error(f"Face registration failed for {person_dir.name}: {exc}")
    return {"faces_root": str(root), "registered": registered, "failed": failures}
