from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from .utils import normalize_keywords


@dataclass
class PreparedImage:
    source_path: Path
    jpeg_bytes: bytes
    sha256_hash: str
    width: int
    height: int


@dataclass
class ExifInfo:
    width: int = 0
    height: int = 0
    camera_make: str | None = None
    camera_model: str | None = None
    gps_latitude: float | None = None
    gps_longitude: float | None = None
    gps_altitude: float | None = None
    exposure_time: float | None = None
    f_number: float | None = None
    iso_speed: int | None = None
    focal_length: float | None = None
    date_taken: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ImageDescription:
    short_description: str = ""
    long_description: str = ""
    picture_type: str = ""
    overall_mood_of_image: str = ""
    style_type: str = ""
    has_nudity: bool = False
    has_explicit_content: bool = False
    keywords: list[str] = field(default_factory=list)
    language: str = ""
    raw_output: str = ""

    def to_sidecar(self) -> dict[str, Any]:
        out = asdict(self)
        out.pop("raw_output")
        return out


@dataclass
class Prediction:
    label: str
    confidence: float
    x_min: int = 0
    y_min: int = 0
    x_max: int = 0
    y_max: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ImageMetadata:
    """Everything known about one image file, as fed to the index loader."""

    path: Path
    file_size: int = 0
    file_modified: str | None = None
    exif: ExifInfo = field(default_factory=ExifInfo)
    description: dict[str, Any] | None = None
    people: dict[str, Any] | None = None
    objects: dict[str, Any] | None = None
    scenes: dict[str, Any] | None = None

    @property
    def keywords(self) -> list[str]:
        if not self.description:
            return []
        return normalize_keywords(self.description.get("keywords", []))

    @property
    def faces(self) -> list[str]:
        if not self.people:
            return []
        faces = self.people.get("faces")
        if not isinstance(faces, list):
            return []
        return [f.strip() for f in faces if isinstance(f, str) and f.strip()]

    @property
    def object_counts(self) -> dict[str, int]:
        if not self.objects:
            return {}
        counts = self.objects.get("object_counts")
        if isinstance(counts, dict) and counts:
            return {str(k): int(v) for k, v in counts.items()}
        out: dict[str, int] = {}
        labels = self.objects.get("objects")
        if not isinstance(labels, list):
            return out
        for label in labels:
            out[str(label)] = out.get(str(label), 0) + 1
        return out


@dataclass
class IndexedImage:
    id: int
    path: str
    width: int
    height: int
    short_description: str
    long_description: str
    picture_type: str
    overall_mood_of_image: str
    style_type: str
    has_nudity: bool
    has_explicit_content: bool
    keywords: list[str]
    people: list[str]
    objects: dict[str, int]
    scene: dict[str, Any]
    camera_make: str | None = None
    camera_model: str | None = None
    gps_latitude: float | None = None
    gps_longitude: float | None = None
    gps_altitude: float | None = None
    date_taken: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
