from __future__ import annotations

from pathlib import Path
from typing import Any

from .annotate import register_known_faces, update_descriptions, update_faces, update_objects, update_scenes
from .config import IndexConfig
from .detection import DetectionClient
from .ingestion import ImageIndexExporter
from .preferences import (
    add_image_directories,
    describe_preferences,
    get_image_directories,
    get_image_index_path,
    get_known_faces_root,
    get_meta_language,
    set_image_index_path,
    set_known_faces_root,
    set_meta_language,
)
from .preprocess import validate_image_file
from .query_builder import ImageQuery
from .search_engine import IndexedImageSearch
from .vlm_analyzer import list_loaded_models, list_models


def export_index(
    directories: list[str] | None = None,
    *,
    database_path: str | None = None,
    embed_images: bool = False,
    cfg: IndexConfig | None = None,
) -> dict[str, Any]:
    exporter = ImageIndexExporter(cfg)
    return exporter.export(directories, database_path=database_path, embed_images=embed_images)


def find_images(query: ImageQuery, *, database_path: str | None = None, cfg: IndexConfig | None = None) -> dict[str, Any]:
    engine = IndexedImageSearch(cfg)
    images = engine.find(query, database_path=database_path)
    return {"count": len(images), "results": [img.to_dict() for img in images]}


def describe_images(
    directories: list[str] | None = None,
    *,
    force: bool = False,
    language: str | None = None,
    cfg: IndexConfig | None = None,
) -> dict[str, Any]:
    return update_descriptions(directories, cfg, force=force, language=language)


def detect_faces(directories: list[str] | None = None, *, force: bool = False, cfg: IndexConfig | None = None) -> dict[str, Any]:
    return update_faces(directories, cfg, force=force)


def detect_objects(directories: list[str] | None = None, *, force: bool = False, cfg: IndexConfig | None = None) -> dict[str, Any]:
    return update_objects(directories, cfg, force=force)


def classify_scenes(directories: list[str] | None = None, *, force: bool = False, cfg: IndexConfig | None = None) -> dict[str, Any]:
    return update_scenes(directories, cfg, force=force)


def register_faces(*, faces_root: str | None = None, cfg: IndexConfig | None = None) -> dict[str, Any]:
    return register_known_faces(cfg, faces_root=faces_root)


def known_faces(cfg: IndexConfig | None = None) -> dict[str, Any]:
    with DetectionClient(cfg) as client:
        names = client.list_faces()
    return {"count": len(names), "faces": names}


def forget_face(name: str, cfg: IndexConfig | None = None) -> dict[str, Any]:
    with DetectionClient(cfg) as client:
        client.delete_face(name)
    return {"name": name, "deleted": True}


def models(*, loaded_only: bool = False, cfg: IndexConfig | None = None) -> dict[str, Any]:
    names = list_loaded_models(cfg) if loaded_only else list_models(cfg)
    return {"loaded_only": loaded_only, "models": names}


def check_image(path: str, cfg: IndexConfig | None = None) -> dict[str, Any]:
    cfg = cfg or IndexConfig()
    checked = validate_image_file(path, cfg.supported_exts)
    return {"path": str(checked.resolve()), "valid": True}


# ── Preferences ──

def index_path_set(
    path: str | None,
    *,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
    cfg: IndexConfig | None = None,
) -> dict[str, Any]:
    result = set_image_index_path(
        path, cfg, session_only=session_only, clear_session=clear_session, skip_session=skip_session
    )
    return {"image_index_path": str(result) if result else None, "cleared": clear_session}


def index_path_get(*, session_only: bool = False, skip_session: bool = False, cfg: IndexConfig | None = None) -> dict[str, str]:
    path = get_image_index_path(cfg, session_only=session_only, skip_session=skip_session)
    return {"image_index_path": str(path)}


def directories_add(
    directories: list[str],
    *,
    session_only: bool = False,
    skip_session: bool = False,
    cfg: IndexConfig | None = None,
) -> dict[str, Any]:
    dirs = add_image_directories([Path(d) for d in directories], cfg, session_only=session_only, skip_session=skip_session)
    return {"image_directories": [str(d) for d in dirs]}


def directories_get(*, session_only: bool = False, skip_session: bool = False, cfg: IndexConfig | None = None) -> dict[str, Any]:
    dirs = get_image_directories(cfg, session_only=session_only, skip_session=skip_session)
    return {"image_directories": [str(d) for d in dirs]}


def language_set(
    language: str | None,
    *,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
    cfg: IndexConfig | None = None,
) -> dict[str, Any]:
    value = set_meta_language(
        language, cfg, session_only=session_only, clear_session=clear_session, skip_session=skip_session
    )
    return {"language": value, "cleared": clear_session}


def language_get(*, session_only: bool = False, skip_session: bool = False, cfg: IndexConfig | None = None) -> dict[str, str]:
    return {"language": get_meta_language(cfg, session_only=session_only, skip_session=skip_session)}


def faces_root_set(
    path: str | None,
    *,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
    cfg: IndexConfig | None = None,
) -> dict[str, Any]:
    result = set_known_faces_root(
        path, cfg, session_only=session_only, clear_session=clear_session, skip_session=skip_session
    )
    return {"known_faces_root": str(result) if result else None, "cleared": clear_session}


def faces_root_get(*, session_only: bool = False, skip_session: bool = False, cfg: IndexConfig | None = None) -> dict[str, str]:
    return {"known_faces_root": str(get_known_faces_root(cfg, session_only=session_only, skip_session=skip_session))}


def preferences(cfg: IndexConfig | None = None) -> dict[str, Any]:
    return describe_preferences(cfg)
