from __future__ import annotations

import json
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from speakpro.errors import MissingCredentialError
from speakpro.models import DEFAULT_MODEL, normalize_model_name


GEMINI_API_KEY_PATTERN = re.compile(r"^AIza[A-Za-z0-9_-]{30,}$")
API_KEY_SETTING = "gemini_api_key"
MODEL_SETTING = "selected_model"


def looks_like_api_key(token: str) -> bool:
    return bool(GEMINI_API_KEY_PATTERN.match(str(token or "").strip()))


def api_key_fingerprint(api_key: str) -> str:
    token = str(api_key or "").strip()
    if not token:
        return "none"
    if len(token) <= 12:
        return token
    return f"{token[:8]}...{token[-4:]}"


def mask_api_key(api_key: str) -> str:
    token = str(api_key or "").strip()
    if not token:
        return ""
    if len(token) <= 10:
        return "•" * len(token)
    return f"{token[:6]}•••••••••{token[-4:]}"


@dataclass(frozen=True)
class Settings:
    api_key: str = ""
    model: str = DEFAULT_MODEL

    def require_api_key(self) -> str:
        token = str(self.api_key or "").strip()
        if not token:
            raise MissingCredentialError()
        return token

    @property
    def selected_model(self) -> str:
        return normalize_model_name(self.model) or DEFAULT_MODEL


class SettingsStore:
    """Key-value settings persisted as a small JSON file.

    The API key falls back to the ``GEMINI_API_KEY`` environment variable
    when nothing has been saved yet.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        return payload if isinstance(payload, dict) else {}

    def _write(self, payload: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".settings-", suffix=".json", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._read().get(key)
        if value is None:
            return default
        return str(value)

    def put(self, key: str, value: str) -> None:
        payload = self._read()
        payload[key] = str(value)
        self._write(payload)

    def get_api_key(self) -> str:
        token = str(self.get(API_KEY_SETTING) or "").strip()
        if not token:
            token = str(os.getenv("GEMINI_API_KEY") or "").strip()
        if not token:
            raise MissingCredentialError()
        return token

    def get_selected_model(self) -> str:
        return normalize_model_name(self.get(MODEL_SETTING)) or DEFAULT_MODEL

    def save(self, api_key: str, model: Optional[str] = None) -> Settings:
        token = str(api_key or "").strip()
        if not token:
            raise ValueError("API key must not be empty.")
        selected = normalize_model_name(model) or DEFAULT_MODEL
        payload = self._read()
        payload[API_KEY_SETTING] = token
        payload[MODEL_SETTING] = selected
        self._write(payload)
        return Settings(api_key=token, model=selected)

    def load(self) -> Settings:
        try:
            api_key = self.get_api_key()
        except MissingCredentialError:
            api_key = ""
        return Settings(api_key=api_key, model=self.get_selected_model())
