from __future__ import annotations

from typing import Iterable, Optional


DEFAULT_MODEL = "gemini-3-flash-preview"
FALLBACK_MODELS: tuple[str, ...] = (
    "gemini-3-flash-preview",
    "gemini-3-pro-preview",
    "gemini-2.5-flash",
)
# Only this model accepts AUDIO response modality.
TTS_MODEL = "gemini-2.5-flash-preview-tts"
TTS_VOICE = "Kore"
TTS_SAMPLE_RATE = 24000
TTS_CHANNELS = 1
IMAGE_MODEL = "gemini-2.5-flash-image"
IMAGE_ASPECT_RATIOS = ("1:1", "3:4", "4:3", "9:16", "16:9")

MODEL_CATALOG: tuple[dict[str, str], ...] = (
    {
        "id": "gemini-3-flash-preview",
        "name": "Gemini 3 Flash",
        "description": "Fastest, fits most tasks",
        "badge": "Default",
    },
    {
        "id": "gemini-3-pro-preview",
        "name": "Gemini 3 Pro",
        "description": "Higher quality, deeper analysis",
        "badge": "Pro",
    },
    {
        "id": "gemini-2.5-flash",
        "name": "Gemini 2.5 Flash",
        "description": "Stable and quick",
        "badge": "Backup",
    },
)


def normalize_model_name(raw: object) -> str:
    token = str(raw or "").strip()
    if token.lower().startswith("models/"):
        token = token[7:]
    return token.strip()


def resolve_candidates(preferred: Optional[str], pool: Iterable[str] = FALLBACK_MODELS) -> list[str]:
    primary = normalize_model_name(preferred) or DEFAULT_MODEL
    others = [model for model in (normalize_model_name(item) for item in pool) if model and model != primary]
    return list(dict.fromkeys([primary, *others]))


def is_known_model(model_id: object) -> bool:
    normalized = normalize_model_name(model_id)
    return any(entry["id"] == normalized for entry in MODEL_CATALOG)
