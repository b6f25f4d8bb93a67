from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from .models import ExifInfo

logger = logging.getLogger(__name__)


def _to_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    text = str(value).replace("\x00", "").strip()
    return text or None


def _dms_to_degrees(dms: Any, ref: Any) -> float | None:
    try:
        degrees, minutes, seconds = (float(x) for x in dms)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    value = degrees + minutes / 60.0 + seconds / 3600.0
    if _clean_text(ref) in ("S", "W"):
        value = -value
    return round(value, 7)


def parse_exif_datetime(raw: Any) -> str | None:
    text = _clean_text(raw)
    if not text:
        return None
    for fmt in ("%Y:%m:%d %H:%M:%S", "%Y-%m-%d %H:%M:%S", "%Y:%m:%d"):
        try:
            return datetime.strptime(text, fmt).isoformat()
        except ValueError:
            continue
    return None


def extract_exif(image_path: str | Path) -> ExifInfo:
    """Read dimensions and the camera/GPS/exposure EXIF fields used by the index.

    Missing tags become ``None``; only an undecodable file raises.
    """
    from PIL import ExifTags, Image

    with Image.open(image_path) as img:
        width, height = img.size
        exif = img.getexif()

    info = ExifInfo(width=int(width), height=int(height))
    if not exif:
        return info

    try:
        sub = exif.get_ifd(ExifTags.IFD.Exif)
        gps = exif.get_ifd(ExifTags.IFD.GPSInfo)
    except Exception as exc:
        logger.warning(f"Unreadable EXIF sub-directories in {image_path}: {exc}")
        sub, gps = {}, {}

    info.camera_make = _clean_text(exif.get(ExifTags.Base.Make))
    info.camera_model = _clean_text(exif.get(ExifTags.Base.Model))
    info.exposure_time = _to_float(sub.get(ExifTags.Base.ExposureTime))
    info.f_number = _to_float(sub.get(ExifTags.Base.FNumber))
    info.focal_length = _to_float(sub.get(ExifTags.Base.FocalLength))

    iso = sub.get(ExifTags.Base.ISOSpeedRatings)
    if isinstance(iso, (tuple, list)):
        iso = iso[0] if iso else None
    iso_value = _to_float(iso)
    info.iso_speed = int(iso_value) if iso_value is not None else None

    info.date_taken = parse_exif_datetime(sub.get(ExifTags.Base.DateTimeOriginal)) or parse_exif_datetime(
        exif.get(ExifTags.Base.DateTime)
    )

    if gps:
        info.gps_latitude = _dms_to_degrees(gps.get(ExifTags.GPS.GPSLatitude), gps.get(ExifTags.GPS.GPSLatitudeRef))
        info.gps_longitude = _dms_to_degrees(gps.get(ExifTags.GPS.GPSLongitude), gps.get(ExifTags.GPS.GPSLongitudeRef))
        altitude = _to_float(gps.get(ExifTags.GPS.GPSAltitude))
        if altitude is not None and gps.get(ExifTags.GPS.GPSAltitudeRef) in (1, b"\x01"):
            altitude = -altitude
        info.gps_altitude = altitude

    return info
