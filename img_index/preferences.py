from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from sqlite_utils import Database

from .config import IndexConfig
from .languages import normalize_language
from .utils import dedupe_keep_order, expand_path, utc_now_iso

logger = logging.getLogger(__name__)

IMAGE_INDEX_PATH = "ImageIndexPath"
IMAGE_DIRECTORIES = "ImageDirectories"
META_LANGUAGE = "AIMetaLanguage"
KNOWN_FACES_ROOT = "AIKnownFacesRootpath"

# Session overrides live for the lifetime of the process.
_SESSION: dict[str, str] = {}


class PreferenceStore:
    """Named string preferences in a small SQLite file plus a per-process session layer."""

    table_name = "preferences"

    def __init__(self, path: str | Path, session: dict[str, str] | None = None):
        self.path = Path(path)
        self.session = _SESSION if session is None else session

    def _db(self) -> Database:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        db = Database(self.path)
        if self.table_name not in db.table_names():
            db[self.table_name].create({"name": str, "value": str, "updated_at": str}, pk="name")
        return db

    def _read_persistent(self, name: str) -> str | None:
        if not self.path.exists():
            return None
        db = self._db()
        try:
            rows = list(db[self.table_name].rows_where("name = ?", [name], limit=1))
        finally:
            db.conn.close()
        return str(rows[0]["value"]) if rows else None

    def _write_persistent(self, name: str, value: str) -> None:
        db = self._db()
        try:
            db[self.table_name].upsert({"name": name, "value": value, "updated_at": utc_now_iso()}, pk="name")
        finally:
            db.conn.close()

    def get(
        self,
        name: str,
        default: str | None = None,
        *,
        session_only: bool = False,
        clear_session: bool = False,
        skip_session: bool = False,
    ) -> str | None:
        if clear_session:
            self.session.pop(name, None)
        if not skip_session and name in self.session:
            return self.session[name]
        if session_only:
            return default
        value = self._read_persistent(name)
        return default if value is None else value

    def set(
        self,
        name: str,
        value: str | None,
        *,
        session_only: bool = False,
        clear_session: bool = False,
        skip_session: bool = False,
    ) -> None:
        if clear_session:
            self.session.pop(name, None)
            logger.info(f"Cleared session setting: {name}")
            return
        if value is None:
            raise ValueError(f"A value is required for preference {name}")
        if session_only:
            self.session[name] = value
            logger.info(f"Set session-only preference {name}")
            return
        self._write_persistent(name, value)
        if not skip_session:
            self.session[name] = value
        logger.info(f"Set preference {name}")

    def remove(self, name: str) -> None:
        self.session.pop(name, None)
        if not self.path.exists():
            return
        db = self._db()
        try:
            db[self.table_name].delete_where("name = ?", [name])
        finally:
            db.conn.close()


def _store(cfg: IndexConfig) -> PreferenceStore:
    return PreferenceStore(cfg.preferences_path)


def _path_key(path: Path) -> str:
    return os.path.normcase(str(path))


# ── Image index database path ──

def get_image_index_path(cfg: IndexConfig | None = None, *, database_path: str | None = None, **flags: bool) -> Path:
    cfg = cfg or IndexConfig()
    if database_path:
        return expand_path(database_path)
    value = _store(cfg).get(IMAGE_INDEX_PATH, str(cfg.index_path), **flags)
    return expand_path(value or cfg.index_path)


def set_image_index_path(
    database_path: str | None,
    cfg: IndexConfig | None = None,
    *,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
) -> Path | None:
    cfg = cfg or IndexConfig()
    store = _store(cfg)
    if clear_session:
        store.set(IMAGE_INDEX_PATH, None, clear_session=True)
        return None
    if not database_path or not str(database_path).strip():
        raise ValueError("A database file path is required unless clearing the session setting")
    path = expand_path(database_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    store.set(IMAGE_INDEX_PATH, str(path), session_only=session_only, skip_session=skip_session)
    return path


# ── Image directories ──

def get_image_directories(cfg: IndexConfig | None = None, **flags: bool) -> list[Path]:
    cfg = cfg or IndexConfig()
    raw = _store(cfg).get(IMAGE_DIRECTORIES, None, **flags)
    if not raw:
        return []
    try:
        values = json.loads(raw)
    except ValueError:
        logger.warning(f"Ignoring malformed {IMAGE_DIRECTORIES} preference")
        return []
    return [expand_path(v) for v in values if str(v).strip()]


def set_image_directories(
    directories: list[str | Path],
    cfg: IndexConfig | None = None,
    *,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
) -> list[Path]:
    cfg = cfg or IndexConfig()
    store = _store(cfg)
    if clear_session:
        store.set(IMAGE_DIRECTORIES, None, clear_session=True)
        return []
    expanded = [expand_path(d) for d in directories if str(d).strip()]
    unique = dedupe_keep_order([str(p) for p in expanded], key=lambda s: _path_key(Path(s)))
    store.set(IMAGE_DIRECTORIES, json.dumps(unique), session_only=session_only, skip_session=skip_session)
    return [Path(p) for p in unique]


def add_image_directories(
    directories: list[str | Path],
    cfg: IndexConfig | None = None,
    *,
    session_only: bool = False,
    skip_session: bool = False,
) -> list[Path]:
    cfg = cfg or IndexConfig()
    current = get_image_directories(cfg, skip_session=skip_session)
    known = {_path_key(p) for p in current}
    for directory in directories:
        path = expand_path(directory)
        if _path_key(path) in known:
            logger.info(f"Directory already exists: {path}")
            continue
        known.add(_path_key(path))
        current.append(path)
        logger.info(f"Adding directory: {path}")
    return set_image_directories(current, cfg, session_only=session_only, skip_session=skip_session)


# ── Meta language ──

def get_meta_language(cfg: IndexConfig | None = None, *, language: str | None = None, **flags: bool) -> str:
    cfg = cfg or IndexConfig()
    if language and language.strip():
        return normalize_language(language)
    value = _store(cfg).get(META_LANGUAGE, cfg.default_language, **flags)
    return normalize_language(value or cfg.default_language)


def set_meta_language(
    language: str | None,
    cfg: IndexConfig | None = None,
    *,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
) -> str | None:
    cfg = cfg or IndexConfig()
    store = _store(cfg)
    if clear_session:
        store.set(META_LANGUAGE, None, clear_session=True)
        return None
    value = normalize_language(language) if language and language.strip() else normalize_language(cfg.default_language)
    store.set(META_LANGUAGE, value, session_only=session_only, skip_session=skip_session)
    return value


# ── Known faces root ──

def get_known_faces_root(cfg: IndexConfig | None = None, *, faces_directory: str | None = None, **flags: bool) -> Path:
    cfg = cfg or IndexConfig()
    if faces_directory and faces_directory.strip():
        return expand_path(faces_directory)
    value = _store(cfg).get(KNOWN_FACES_ROOT, str(cfg.faces_root), **flags)
    return expand_path(value or cfg.faces_root)


def set_known_faces_root(
    faces_directory: str | None,
    cfg: IndexConfig | None = None,
    *,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
) -> Path | None:
    cfg = cfg or IndexConfig()
    store = _store(cfg)
    if clear_session:
        store.set(KNOWN_FACES_ROOT, None, clear_session=True)
        return None
    if not faces_directory or not faces_directory.strip():
        raise ValueError("A faces directory is required unless clearing the session setting")
    path = expand_path(faces_directory)
    store.set(KNOWN_FACES_ROOT, str(path), session_only=session_only, skip_session=skip_session)
    return path


def describe_preferences(cfg: IndexConfig | None = None) -> dict[str, Any]:
    cfg = cfg or IndexConfig()
    return {
        "image_index_path": str(get_image_index_path(cfg)),
        "image_directories": [str(p) for p in get_image_directories(cfg)],
        "meta_language": get_meta_language(cfg),
        "known_faces_root": str(get_known_faces_root(cfg)),
    }
