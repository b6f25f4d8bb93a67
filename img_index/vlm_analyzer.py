from __future__ import annotations

import json
import logging
import re
from typing import Any

import requests

from .config import IndexConfig
from .models import ImageDescription, PreparedImage
from .preprocess import image_data_url
from .utils import MAX_KEYWORDS, as_bool, dedupe_keep_order, normalize_keywords

logger = logging.getLogger(__name__)


class LLMServiceError(RuntimeError):
    """Raised when the local LLM runtime fails or returns an unusable response."""


def build_prompt(language: str) -> str:
    return (
        "You are labeling one image for a local photo search index.\n"
        "Return only valid JSON with this schema:\n"
        '{"short_description":"","long_description":"","picture_type":"","overall_mood_of_image":"",'
        '"style_type":"","has_nudity":false,"has_explicit_content":false,"keywords":[""]}\n'
        "Rules:\n"
        "- short_description: one factual sentence, at most 80 characters\n"
        "- long_description: 2-4 factual sentences\n"
        "- picture_type: one word such as photo, screenshot, drawing, document, painting\n"
        "- overall_mood_of_image and style_type: one or two words each\n"
        f"- keywords: at most {MAX_KEYWORDS} lowercase keywords naming visible objects, text and setting\n"
        "- do not guess identities, dates or locations that are not clearly visible\n"
        f"- write every text value in {language}\n"
    )


def _json_candidates(text: str) -> list[str]:
    candidates = [m.group(1) for m in re.finditer(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", text, re.IGNORECASE)]
    first_brace = text.find("{")
    last_brace = text.rfind("}")
    if first_brace != -1 and last_brace > first_brace:
        candidates.append(text[first_brace : last_brace + 1])
    return dedupe_keep_order(candidates)


def _from_blob(blob: dict[str, Any]) -> ImageDescription:
    lowered = {str(k).lower(): v for k, v in blob.items()}
    return ImageDescription(
        short_description=str(lowered.get("short_description", "") or "").strip(),
        long_description=str(lowered.get("long_description", "") or "").strip(),
        picture_type=str(lowered.get("picture_type", "") or "").strip().lower(),
        overall_mood_of_image=str(lowered.get("overall_mood_of_image", "") or "").strip().lower(),
        style_type=str(lowered.get("style_type", lowered.get("styletype", "")) or "").strip().lower(),
        has_nudity=as_bool(lowered.get("has_nudity", False)),
        has_explicit_content=as_bool(lowered.get("has_explicit_content", False)),
        keywords=normalize_keywords(lowered.get("keywords", [])),
    )


def parse_description(text: str) -> ImageDescription:
    text = (text or "").strip()

    for candidate in _json_candidates(text):
        try:
            blob = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(blob, dict):
            desc = _from_blob(blob)
            if desc.short_description or desc.keywords:
                desc.raw_output = text
                return desc

    # Partial JSON: recover individual string fields.
    desc = ImageDescription(raw_output=text)
    for name in ("short_description", "long_description", "picture_type", "overall_mood_of_image", "style_type"):
        match = re.search(rf'"{name}"\s*:\s*"([^"]*)"', text, re.IGNORECASE)
        if match:
            setattr(desc, name, match.group(1).strip())
    for name in ("has_nudity", "has_explicit_content"):
        match = re.search(rf'"{name}"\s*:\s*(true|false)', text, re.IGNORECASE)
        if match:
            setattr(desc, name, match.group(1).lower() == "true")
    kw_match = re.search(r'"keywords"\s*:\s*\[([^\]]*)\]', text, re.IGNORECASE | re.DOTALL)
    if kw_match:
        desc.keywords = normalize_keywords(re.findall(r'"([^"]+)"', kw_match.group(1)))

    if not desc.short_description:
        lines = [ln.strip() for ln in text.splitlines() if ln.strip() and not ln.strip().startswith(("{", "}", "```"))]
        desc.short_description = lines[0][:80] if lines else ""
        if not desc.long_description and len(lines) > 1:
            desc.long_description = " ".join(lines[1:4])
    if not desc.keywords and desc.short_description:
        desc.keywords = normalize_keywords([t for t in re.split(r"[\s,.;:]+", desc.short_description) if len(t) > 3])
    return desc


def _finalize(desc: ImageDescription, language: str) -> ImageDescription:
    if not desc.short_description and not desc.long_description and not desc.keywords:
        raise LLMServiceError("LLM returned an empty image description")
    desc.short_description = desc.short_description[:160]
    if not desc.long_description:
        desc.long_description = desc.short_description
    desc.language = language
    return desc


class LMStudioDescriber:
    """Describes images through an OpenAI-compatible chat completions endpoint (LM Studio)."""

    def __init__(self, cfg: IndexConfig | None = None, session: requests.Session | None = None):
        self.cfg = cfg or IndexConfig()
        self.session = session or requests.Session()

    def __enter__(self) -> "LMStudioDescriber":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.session.close()

    def describe(self, prepared: PreparedImage, language: str) -> ImageDescription:
        url = f"{self.cfg.llm_base_url.rstrip('/')}/v1/chat/completions"
        payload = {
            "model": self.cfg.llm_model,
            "temperature": 0.0,
            "max_tokens": self.cfg.llm_max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": build_prompt(language)},
                        {"type": "image_url", "image_url": {"url": image_data_url(prepared)}},
                    ],
                }
            ],
        }
        try:
            response = self.session.post(url, json=payload, timeout=self.cfg.llm_timeout)
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise LLMServiceError(f"LLM request to {url} failed: {exc}") from exc

        try:
            text = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMServiceError(f"Unexpected LLM response shape: {str(body)[:200]}") from exc
        return _finalize(parse_description(str(text or "")), language)


class MLXDescriber:
    """In-process describer on Apple silicon via mlx-vlm."""

    def __init__(self, cfg: IndexConfig | None = None):
        self.cfg = cfg or IndexConfig()
        self.model = None
        self.processor = None

    def load(self) -> None:
        try:
            from mlx_vlm import load
        except Exception as exc:
            raise RuntimeError("mlx-vlm is required for the mlx describer backend") from exc
        self.model, self.processor = load(self.cfg.mlx_model_name)

    def unload(self) -> None:
        self.model = None
        self.processor = None

    def __enter__(self) -> "MLXDescriber":
        self.load()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unload()

    def describe(self, prepared: PreparedImage, language: str) -> ImageDescription:
        if self.model is None or self.processor is None:
            raise RuntimeError("VLM model not loaded")

        from mlx_vlm import generate
        from mlx_vlm.prompt_utils import apply_chat_template
        from mlx_vlm.utils import load_image

        prompt = apply_chat_template(self.processor, self.model.config, build_prompt(language), num_images=1)
        raw = generate(
            self.model,
            self.processor,
            image=[load_image(str(prepared.source_path))],
            prompt=prompt,
            max_tokens=self.cfg.llm_max_tokens,
            temperature=0.0,
            top_p=1.0,
            repetition_penalty=1.05,
        )
        text = raw.text if hasattr(raw, "text") else str(raw)
        return _finalize(parse_description(text), language)


def make_describer(cfg: IndexConfig | None = None):
    cfg = cfg or IndexConfig()
    if cfg.llm_backend == "mlx":
        return MLXDescriber(cfg)
    if cfg.llm_backend == "lmstudio":
        return LMStudioDescriber(cfg)
    raise ValueError(f"Unknown LLM backend: {cfg.llm_backend}")


def list_models(cfg: IndexConfig | None = None) -> list[str]:
    cfg = cfg or IndexConfig()
    url = f"{cfg.llm_base_url.rstrip('/')}/v1/models"
    try:
        response = requests.get(url, timeout=30)
        response.raise_for_status()
        data = response.json().get("data", [])
    except (requests.RequestException, ValueError) as exc:
        raise LLMServiceError(f"Failed to get model list from {url}: {exc}") from exc
    return [str(m.get("id")) for m in data if isinstance(m, dict) and m.get("id")]


def list_loaded_models(cfg: IndexConfig | None = None) -> list[str]:
    cfg = cfg or IndexConfig()
    url = f"{cfg.llm_base_url.rstrip('/')}/api/v0/models"
    try:
        response = requests.get(url, timeout=30)
        response.raise_for_status()
        data = response.json().get("data", [])
    except (requests.RequestException, ValueError) as exc:
        raise LLMServiceError(f"Failed to get loaded models from {url}: {exc}") from exc
    return [str(m.get("id")) for m in data if isinstance(m, dict) and m.get("state") == "loaded"]
