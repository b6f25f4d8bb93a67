from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import requests

from .config import IndexConfig
from .models import Prediction, PreparedImage

logger = logging.getLogger(__name__)

UNKNOWN_FACE = "unknown"


class DetectionServiceError(RuntimeError):
    """Raised when the vision server is unreachable or reports failure."""


def _predictions(body: dict[str, Any], label_key: str = "label") -> list[Prediction]:
    out: list[Prediction] = []
    for p in body.get("predictions", []) or []:
        if not isinstance(p, dict):
            continue
        out.append(
            Prediction(
                label=str(p.get(label_key, "") or "").strip(),
                confidence=float(p.get("confidence", 0.0) or 0.0),
                x_min=int(p.get("x_min", 0) or 0),
                y_min=int(p.get("y_min", 0) or 0),
                x_max=int(p.get("x_max", 0) or 0),
                y_max=int(p.get("y_max", 0) or 0),
            )
        )
    return out


class DetectionClient:
    """Client for a DeepStack / CodeProject.AI compatible vision server."""

    def __init__(self, cfg: IndexConfig | None = None, session: requests.Session | None = None):
        self.cfg = cfg or IndexConfig()
        self.session = session or requests.Session()

    def __enter__(self) -> "DetectionClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.session.close()

    def _post(self, route: str, *, files: Any = None, data: dict[str, Any] | None = None) -> dict[str, Any]:
        url = f"{self.cfg.detection_base_url.rstrip('/')}{route}"
        try:
            response = self.session.post(url, files=files, data=data or {}, timeout=self.cfg.detection_timeout)
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise DetectionServiceError(f"Vision request to {url} failed: {exc}") from exc
        if not isinstance(body, dict):
            raise DetectionServiceError(f"Unexpected response from {url}")
        if body.get("success") is False:
            raise DetectionServiceError(f"{route} failed: {body.get('error') or body.get('message') or 'unknown error'}")
        return body

    @staticmethod
    def _image_file(prepared: PreparedImage) -> dict[str, Any]:
        return {"image": (prepared.source_path.name, prepared.jpeg_bytes, "image/jpeg")}

    def detect_objects(self, prepared: PreparedImage, min_confidence: float | None = None) -> list[Prediction]:
        threshold = self.cfg.min_confidence if min_confidence is None else min_confidence
        body = self._post("/v1/vision/detection", files=self._image_file(prepared), data={"min_confidence": threshold})
        return [p for p in _predictions(body) if p.label and p.confidence >= threshold]

    def recognize_faces(self, prepared: PreparedImage, min_confidence: float | None = None) -> list[Prediction]:
        threshold = self.cfg.min_confidence if min_confidence is None else min_confidence
        body = self._post(
            "/v1/vision/face/recognize", files=self._image_file(prepared), data={"min_confidence": threshold}
        )
        return _predictions(body, label_key="userid")

    def classify_scene(self, prepared: PreparedImage) -> dict[str, Any]:
        body = self._post("/v1/vision/scene", files=self._image_file(prepared))
        return {
            "scene": str(body.get("label", "") or "").strip(),
            "confidence": float(body.get("confidence", 0.0) or 0.0),
        }

    def register_face(self, name: str, image_paths: list[Path]) -> dict[str, Any]:
        if not name.strip():
            raise ValueError("A person name is required to register a face")
        if not image_paths:
            raise ValueError(f"No images to register for {name}")
        files = {}
        for i, path in enumerate(image_paths, start=1):
            files[f"image{i}"] = (Path(path).name, Path(path).read_bytes(), "application/octet-stream")
        body = self._post("/v1/vision/face/register", files=files, data={"userid": name})
        logger.info(f"Registered {len(image_paths)} image(s) for {name}")
        return {"name": name, "images": len(image_paths), "message": body.get("message", "")}

    def list_faces(self) -> list[str]:
        body = self._post("/v1/vision/face/list")
        return [str(f) for f in body.get("faces", []) or []]

    def delete_face(self, name: str) -> None:
        if not name.strip():
            raise ValueError("A person name is required to delete a face")
        self._post("/v1/vision/face/delete", data={"userid": name})
        logger.info(f"Deleted registered face {name}")
