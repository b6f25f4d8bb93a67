from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DATA_ROOT = Path(os.getenv("IMG_INDEX_DATA_ROOT", str(Path.home() / ".local" / "share" / "img_index")))

SUPPORTED_EXTS: tuple[str, ...] = (".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp", ".tiff", ".tif")


@dataclass(frozen=True)
class IndexConfig:
    data_root: Path = DATA_ROOT

    index_path: Path = Path(os.getenv("IMG_INDEX_DB", str(DATA_ROOT / "allimages.meta.db")))
    preferences_path: Path = Path(os.getenv("IMG_INDEX_PREFERENCES", str(DATA_ROOT / "preferences.db")))
    faces_root: Path = Path(os.getenv("IMG_INDEX_FACES_ROOT", str(Path.home() / "Pictures")))

    llm_backend: str = os.getenv("IMG_INDEX_LLM_BACKEND", "lmstudio")
    llm_base_url: str = os.getenv("IMG_INDEX_LLM_URL", "http://localhost:1234")
    llm_model: str = os.getenv("IMG_INDEX_LLM_MODEL", "qwen2.5-vl-7b-instruct")
    llm_timeout: float = float(os.getenv("IMG_INDEX_LLM_TIMEOUT", "300"))
    llm_max_tokens: int = 800
    mlx_model_name: str = os.getenv("IMG_INDEX_MLX_MODEL", "lmstudio-community/Qwen3-VL-4B-Instruct-MLX-4bit")

    detection_base_url: str = os.getenv("IMG_INDEX_DETECTION_URL", "http://localhost:5000")
    detection_timeout: float = float(os.getenv("IMG_INDEX_DETECTION_TIMEOUT", "60"))
    min_confidence: float = float(os.getenv("IMG_INDEX_MIN_CONFIDENCE", "0.5"))

    default_language: str = os.getenv("IMG_INDEX_LANGUAGE", "English")
    schema_version: str = "img-index-v1"

    max_image_dim: int = 1024
    supported_exts: tuple[str, ...] = SUPPORTED_EXTS


SIDECAR_STREAMS: tuple[str, ...] = (
    "description",
    "people",
    "objects",
    "scenes",
)
