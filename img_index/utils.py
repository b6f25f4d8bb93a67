from __future__ import annotations

import hashlib
import json
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

MAX_KEYWORDS = 15


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def json_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))


def expand_path(value: str | Path) -> Path:
    raw = os.path.expandvars(os.path.expanduser(str(value).strip()))
    return Path(os.path.abspath(raw))


def dedupe_keep_order(items: list[str], *, key=None) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for item in items:
        marker = key(item) if key else item
        if marker in seen:
            continue
        seen.add(marker)
        out.append(item)
    return out


def as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value or "").strip().lower() in {"true", "yes", "1", "y"}


def normalize_keywords(raw: Any) -> list[str]:
    """Lowercase, trim and de-duplicate keywords; a string is split on , ; or |."""
    if isinstance(raw, str):
        raw = re.split(r"[,;|]+", raw)
    if not isinstance(raw, list):
        return []
    cleaned: list[str] = []
    for item in raw:
        if not isinstance(item, (str, int, float)) or isinstance(item, bool):
            continue
        token = re.sub(r"\s+", " ", str(item).replace("_", " ")).strip().strip("\"'`").lower()
        if len(token) < 2:
            continue
        cleaned.append(token)
    return dedupe_keep_order(cleaned)[:MAX_KEYWORDS]
