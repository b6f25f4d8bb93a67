from __future__ import annotations

import base64
import io
from pathlib import Path

from .config import SUPPORTED_EXTS, IndexConfig
from .models import PreparedImage
from .utils import sha256_bytes


def _load_pillow():
    try:
        from PIL import Image, ImageOps

        return Image, ImageOps
    except Exception as exc:
        raise RuntimeError("Pillow is required for preprocessing. Install with: pip install pillow") from exc


def validate_image_file(image_path: str | Path, exts: tuple[str, ...] = SUPPORTED_EXTS) -> Path:
    path = Path(image_path)
    if not path.is_file():
        raise FileNotFoundError(f"Image file not found: {path}")
    if path.suffix.lower() not in exts:
        formats = ", ".join(ext.lstrip(".") for ext in exts)
        raise ValueError(f"Invalid image format. Supported formats: {formats}")
    return path


def preprocess_image(image_path: Path, cfg: IndexConfig) -> PreparedImage:
    Image, ImageOps = _load_pillow()
    image_path = validate_image_file(image_path, cfg.supported_exts)

    with Image.open(image_path) as img:
        img = ImageOps.exif_transpose(img)
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")

        w, h = img.size
        max_dim = max(w, h)
        if max_dim > cfg.max_image_dim:
            scale = cfg.max_image_dim / float(max_dim)
            resized_w = max(1, int(round(w * scale)))
            resized_h = max(1, int(round(h * scale)))
            img = img.resize((resized_w, resized_h), Image.Resampling.LANCZOS)
        else:
            resized_w, resized_h = w, h

        if img.mode != "RGB":
            img = img.convert("RGB")

        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=95, optimize=True)
        jpeg_bytes = buffer.getvalue()

    return PreparedImage(
        source_path=image_path,
        jpeg_bytes=jpeg_bytes,
        sha256_hash=sha256_bytes(jpeg_bytes),
        width=resized_w,
        height=resized_h,
    )


def image_data_url(prepared: PreparedImage) -> str:
    encoded = base64.b64encode(prepared.jpeg_bytes).decode("ascii")
    return f"data:image/jpeg;base64,{encoded}"
