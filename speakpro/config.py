from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from speakpro.models import (
    FALLBACK_MODELS,
    IMAGE_MODEL,
    TTS_MODEL,
    TTS_SAMPLE_RATE,
    TTS_VOICE,
    normalize_model_name,
)
from speakpro.orchestrator import DEFAULT_TIMEOUT_MS, RetryPolicy


DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]


def _env_bool(name: str, default: bool) -> bool:
    raw = str(os.getenv(name, "") or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = str(os.getenv(name, "") or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = str(os.getenv(name, "") or "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = str(os.getenv(name, "") or "").strip()
    if not raw:
        return list(default)
    values = [item.strip() for item in raw.split(",") if item.strip()]
    return values or list(default)


def default_settings_path() -> Path:
    return Path.home() / ".speakpro" / "settings.json"


@dataclass
class RuntimeConfig:
    request_timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_attempts_per_model: int = 1
    backoff_base_ms: int = 1500
    backoff_multiplier: float = 2.5
    fallback_models: list[str] = field(default_factory=lambda: list(FALLBACK_MODELS))
    tts_model: str = TTS_MODEL
    tts_voice: str = TTS_VOICE
    tts_sample_rate: int = TTS_SAMPLE_RATE
    image_model: str = IMAGE_MODEL
    feedback_language: str = "Vietnamese"
    strict_responses: bool = False
    settings_path: Path = field(default_factory=default_settings_path)
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts_per_model=self.max_attempts_per_model,
            initial_delay_ms=self.backoff_base_ms,
            multiplier=self.backoff_multiplier,
        )


def build_config() -> RuntimeConfig:
    settings_raw = str(os.getenv("SPEAKPRO_SETTINGS_PATH", "") or "").strip()
    cfg = RuntimeConfig(
        request_timeout_ms=_env_int("SPEAKPRO_REQUEST_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
        max_attempts_per_model=_env_int("SPEAKPRO_MAX_ATTEMPTS_PER_MODEL", 1),
        backoff_base_ms=_env_int("SPEAKPRO_BACKOFF_BASE_MS", 1500),
        backoff_multiplier=_env_float("SPEAKPRO_BACKOFF_MULTIPLIER", 2.5),
        fallback_models=_env_list("SPEAKPRO_FALLBACK_MODELS", list(FALLBACK_MODELS)),
        tts_model=normalize_model_name(os.getenv("SPEAKPRO_TTS_MODEL", TTS_MODEL)) or TTS_MODEL,
        tts_voice=str(os.getenv("SPEAKPRO_TTS_VOICE", TTS_VOICE) or "").strip() or TTS_VOICE,
        tts_sample_rate=_env_int("SPEAKPRO_TTS_SAMPLE_RATE", TTS_SAMPLE_RATE),
        image_model=normalize_model_name(os.getenv("SPEAKPRO_IMAGE_MODEL", IMAGE_MODEL)) or IMAGE_MODEL,
        feedback_language=str(os.getenv("SPEAKPRO_FEEDBACK_LANGUAGE", "Vietnamese") or "").strip() or "Vietnamese",
        strict_responses=_env_bool("SPEAKPRO_STRICT_RESPONSES", False),
        settings_path=Path(settings_raw).expanduser() if settings_raw else default_settings_path(),
        cors_origins=_env_list("SPEAKPRO_CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
    )

    if cfg.request_timeout_ms < 1000:
        cfg.request_timeout_ms = 1000
    if cfg.max_attempts_per_model < 1:
        cfg.max_attempts_per_model = 1
    if cfg.backoff_base_ms <= 0:
        cfg.backoff_base_ms = 1500
    if cfg.backoff_multiplier <= 1.0:
        cfg.backoff_multiplier = 2.5
    if cfg.tts_sample_rate <= 0:
        cfg.tts_sample_rate = TTS_SAMPLE_RATE
    cfg.fallback_models = [model for model in (normalize_model_name(item) for item in cfg.fallback_models) if model]
    if not cfg.fallback_models:
        cfg.fallback_models = list(FALLBACK_MODELS)

    return cfg
