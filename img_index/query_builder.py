"""Translate named image filters into one parameterized SQL SELECT over the index.

Filter categories are AND-ed together, the values inside one category are OR-ed.
A value containing ``*`` or ``?`` is matched with ``LIKE`` after wildcard
translation; any other value is matched exactly, case-insensitively.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

LIKE_ESCAPE = "\\"
METERS_PER_DEGREE = 111_320.0


def has_wildcards(pattern: str) -> bool:
    return "*" in pattern or "?" in pattern


def wildcard_to_like(pattern: str) -> str:
    """``*`` -> ``%``, ``?`` -> ``_``; literal ``%``, ``_`` and ``\\`` are escaped."""
    out: list[str] = []
    for ch in pattern:
        if ch in (LIKE_ESCAPE, "%", "_"):
            out.append(LIKE_ESCAPE + ch)
        elif ch == "*":
            out.append("%")
        elif ch == "?":
            out.append("_")
        else:
            out.append(ch)
    return "".join(out)


def _contains(value: str) -> str:
    return value if has_wildcards(value) else f"*{value}*"


@dataclass
class ImageQuery:
    any_terms: list[str] = field(default_factory=list)
    description_search: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    people: list[str] = field(default_factory=list)
    objects: list[str] = field(default_factory=list)
    scenes: list[str] = field(default_factory=list)
    picture_types: list[str] = field(default_factory=list)
    style_types: list[str] = field(default_factory=list)
    moods: list[str] = field(default_factory=list)
    path_like: list[str] = field(default_factory=list)
    camera_make: list[str] = field(default_factory=list)
    camera_model: list[str] = field(default_factory=list)
    has_nudity: bool = False
    no_nudity: bool = False
    has_explicit_content: bool = False
    no_explicit_content: bool = False
    taken_after: str | None = None
    taken_before: str | None = None
    geo_location: tuple[float, float] | None = None
    geo_distance_m: float = 1000.0
    min_confidence: float | None = None
    limit: int = 0


class _Params:
    """Named parameters with a running counter so no two placeholders collide."""

    def __init__(self):
        self.values: dict[str, Any] = {}
        self._counter = 0

    def add(self, prefix: str, value: Any) -> str:
        name = f"{prefix}{self._counter}"
        self._counter += 1
        self.values[name] = value
        return f":{name}"


def _clean(values: list[str] | str | None) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    return [str(v).strip() for v in values if str(v).strip()]


def _match(column: str, value: str, params: _Params, prefix: str) -> str:
    if has_wildcards(value):
        return f"{column} LIKE {params.add(prefix, wildcard_to_like(value))} ESCAPE '\\'"
    return f"{column} = {params.add(prefix, value)} COLLATE NOCASE"


def _any_of(columns: list[str], values: list[str], params: _Params, prefix: str) -> str:
    parts = [_match(col, v, params, prefix) for v in values for col in columns]
    return "(" + " OR ".join(parts) + ")"


def _exists(table: str, column: str, values: list[str], params: _Params, prefix: str, extra: str = "") -> str:
    inner = _any_of([f"c.{column}"], values, params, prefix)
    return f"EXISTS (SELECT 1 FROM {table} c WHERE c.image_id = i.id AND {inner}{extra})"


def _any_term(term: str, params: _Params) -> str:
    pattern = _contains(term)
    parts = [
        _match("i.short_description", pattern, params, "any"),
        _match("i.long_description", pattern, params, "any"),
        _match("i.path", pattern, params, "any"),
        _match("i.picture_type", term, params, "any"),
        _match("i.style_type", term, params, "any"),
        _match("i.overall_mood_of_image", term, params, "any"),
    ]
    for table, column in (
        ("ImageKeywords", "keyword"),
        ("ImagePeople", "person_name"),
        ("ImageObjects", "object_name"),
        ("ImageScenes", "scene_name"),
    ):
        parts.append(_exists(table, column, [term], params, "any"))
    return "(" + " OR ".join(parts) + ")"


def geo_bounding_box(lat: float, lon: float, distance_m: float) -> tuple[float, float, float, float]:
    """Return ``(min_lat, max_lat, min_lon, max_lon)`` enclosing a circle of ``distance_m``."""
    dlat = distance_m / METERS_PER_DEGREE
    cos_lat = math.cos(math.radians(lat))
    dlon = 180.0 if cos_lat < 1e-9 else min(180.0, distance_m / (METERS_PER_DEGREE * cos_lat))
    return lat - dlat, lat + dlat, lon - dlon, lon + dlon


def build_query(query: ImageQuery) -> tuple[str, dict[str, Any]]:
    if query.has_nudity and query.no_nudity:
        raise ValueError("has_nudity and no_nudity cannot both be set")
    if query.has_explicit_content and query.no_explicit_content:
        raise ValueError("has_explicit_content and no_explicit_content cannot both be set")
    if query.geo_location is not None and query.geo_distance_m <= 0:
        raise ValueError("geo_distance_m must be positive")

    params = _Params()
    where: list[str] = []

    any_terms = _clean(query.any_terms)
    if any_terms:
        where.append("(" + " OR ".join(_any_term(t, params) for t in any_terms) + ")")

    descriptions = [_contains(v) for v in _clean(query.description_search)]
    if descriptions:
        where.append(_any_of(["i.short_description", "i.long_description"], descriptions, params, "desc"))

    for values, table, column, prefix in (
        (query.keywords, "ImageKeywords", "keyword", "kw"),
        (query.people, "ImagePeople", "person_name", "person"),
        (query.objects, "ImageObjects", "object_name", "obj"),
    ):
        values = _clean(values)
        if values:
            where.append(_exists(table, column, values, params, prefix))

    scenes = _clean(query.scenes)
    if scenes:
        extra = ""
        if query.min_confidence is not None:
            extra = f" AND c.confidence >= {params.add('conf', float(query.min_confidence))}"
        where.append(_exists("ImageScenes", "scene_name", scenes, params, "scene", extra))

    for values, column, prefix in (
        (query.picture_types, "i.picture_type", "ptype"),
        (query.style_types, "i.style_type", "style"),
        (query.moods, "i.overall_mood_of_image", "mood"),
        (query.path_like, "i.path", "path"),
        (query.camera_make, "i.camera_make", "make"),
        (query.camera_model, "i.camera_model", "model"),
    ):
        values = _clean(values)
        if values:
            where.append(_any_of([column], values, params, prefix))

    if query.has_nudity:
        where.append("i.has_nudity = 1")
    if query.no_nudity:
        where.append("i.has_nudity = 0")
    if query.has_explicit_content:
        where.append("i.has_explicit_content = 1")
    if query.no_explicit_content:
        where.append("i.has_explicit_content = 0")

    if query.taken_after:
        where.append(f"i.date_taken >= {params.add('after', query.taken_after)}")
    if query.taken_before:
        # A date-only bound covers the whole day.
        before = params.add("before", query.taken_before)
        where.append(f"substr(i.date_taken, 1, length({before})) <= {before}")

    if query.geo_location is not None:
        lat, lon = float(query.geo_location[0]), float(query.geo_location[1])
        min_lat, max_lat, min_lon, max_lon = geo_bounding_box(lat, lon, float(query.geo_distance_m))
        clause = (
            "i.gps_latitude IS NOT NULL AND i.gps_longitude IS NOT NULL"
            f" AND i.gps_latitude BETWEEN {params.add('lat', min_lat)} AND {params.add('lat', max_lat)}"
        )
        # Boxes crossing the antimeridian are left to the exact distance check.
        if min_lon >= -180.0 and max_lon <= 180.0:
            clause += f" AND i.gps_longitude BETWEEN {params.add('lon', min_lon)} AND {params.add('lon', max_lon)}"
        where.append(clause)

    sql = "SELECT i.* FROM Images i"
    if where:
        sql += " WHERE " + " AND ".join(where)
    sql += " ORDER BY i.path COLLATE NOCASE"
    # Geo results are trimmed after the exact distance check, so no SQL limit there.
    if query.limit > 0 and query.geo_location is None:
        sql += f" LIMIT {params.add('limit', int(query.limit))}"
    return sql, params.values
