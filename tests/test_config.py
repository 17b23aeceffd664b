from __future__ import annotations

import os
from pathlib import Path

from speakpro.config import build_config
from speakpro.env_loader import load_env_file, load_env_files
from speakpro.models import FALLBACK_MODELS


_CONFIG_VARS = (
    "SPEAKPRO_REQUEST_TIMEOUT_MS",
    "SPEAKPRO_MAX_ATTEMPTS_PER_MODEL",
    "SPEAKPRO_BACKOFF_BASE_MS",
    "SPEAKPRO_BACKOFF_MULTIPLIER",
    "SPEAKPRO_FALLBACK_MODELS",
    "SPEAKPRO_TTS_MODEL",
    "SPEAKPRO_TTS_VOICE",
    "SPEAKPRO_TTS_SAMPLE_RATE",
    "SPEAKPRO_IMAGE_MODEL",
    "SPEAKPRO_FEEDBACK_LANGUAGE",
    "SPEAKPRO_STRICT_RESPONSES",
    "SPEAKPRO_SETTINGS_PATH",
    "SPEAKPRO_CORS_ORIGINS",
)


def _clear_config_env(monkeypatch) -> None:
    for name in _CONFIG_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_match_retry_policy(monkeypatch) -> None:
    _clear_config_env(monkeypatch)
    cfg = build_config()
    policy = cfg.retry_policy()

    assert cfg.request_timeout_ms == 60000
    assert cfg.fallback_models == list(FALLBACK_MODELS)
    assert cfg.tts_voice == "Kore"
    assert cfg.tts_sample_rate == 24000
    assert cfg.feedback_language == "Vietnamese"
    assert cfg.strict_responses is False
    assert (policy.max_attempts_per_model, policy.initial_delay_ms, policy.multiplier) == (1, 1500, 2.5)


def test_env_overrides_are_bounded(monkeypatch, tmp_path: Path) -> None:
    _clear_config_env(monkeypatch)
    monkeypatch.setenv("SPEAKPRO_REQUEST_TIMEOUT_MS", "10")
    monkeypatch.setenv("SPEAKPRO_MAX_ATTEMPTS_PER_MODEL", "0")
    monkeypatch.setenv("SPEAKPRO_BACKOFF_BASE_MS", "0")
    monkeypatch.setenv("SPEAKPRO_BACKOFF_MULTIPLIER", "0.5")
    monkeypatch.setenv("SPEAKPRO_TTS_SAMPLE_RATE", "not-a-number")
    monkeypatch.setenv("SPEAKPRO_FALLBACK_MODELS", "models/gemini-2.5-flash, ,gemini-3-pro-preview")
    monkeypatch.setenv("SPEAKPRO_STRICT_RESPONSES", "yes")
    monkeypatch.setenv("SPEAKPRO_FEEDBACK_LANGUAGE", "English")
    monkeypatch.setenv("SPEAKPRO_SETTINGS_PATH", str(tmp_path / "s.json"))

    cfg = build_config()

    assert cfg.request_timeout_ms == 1000
    assert cfg.max_attempts_per_model == 1
    assert cfg.backoff_base_ms == 1500
    assert cfg.retry_policy().initial_delay_ms == 1500
    assert cfg.backoff_multiplier == 2.5
    assert cfg.tts_sample_rate == 24000
    assert cfg.fallback_models == ["gemini-2.5-flash", "gemini-3-pro-preview"]
    assert cfg.strict_responses is True
    assert cfg.feedback_language == "English"
    assert cfg.settings_path == tmp_path / "s.json"


def test_env_loader_fills_empty_values_and_keeps_non_empty(monkeypatch, tmp_path: Path) -> None:
    (tmp_path / ".env").write_text(
        "\n".join(
            [
                "# comment",
                "SPK_FOO=file_foo",
                "export SPK_BAR='file bar'",
                'SPK_QUOTED="two words # kept"',
                "SPK_COMMENTED=value # trailing",
                "not a pair",
                "1BAD=skipped",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("SPK_FOO", "external_non_empty")
    monkeypatch.setenv("SPK_BAR", "")
    monkeypatch.delenv("SPK_QUOTED", raising=False)
    monkeypatch.delenv("SPK_COMMENTED", raising=False)

    loaded = load_env_files(tmp_path)

    assert (tmp_path / ".env").resolve() in loaded
    assert os.environ.get("SPK_FOO") == "external_non_empty"
    assert os.environ.get("SPK_BAR") == "file bar"
    assert os.environ.get("SPK_QUOTED") == "two words # kept"
    assert os.environ.get("SPK_COMMENTED") == "value"
    assert "1BAD" not in os.environ
    assert load_env_file(tmp_path / ".env") == []


def test_missing_env_file_is_ignored(tmp_path: Path) -> None:
    assert load_env_file(tmp_path / "absent.env") == []
