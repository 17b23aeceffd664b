from __future__ import annotations

import base64
import json
from typing import Any, Optional

from google import genai
from google.genai import types

from speakpro.errors import MalformedResponseError


def build_genai_client(api_key: str, timeout_ms: Optional[int] = None) -> genai.Client:
    if timeout_ms is None:
        return genai.Client(api_key=api_key)
    bounded_timeout = max(1000, int(timeout_ms))
    return genai.Client(api_key=api_key, http_options=types.HttpOptions(timeout=bounded_timeout))


def extract_text_content(response: object) -> str:
    primary = str(getattr(response, "text", "") or "").strip()
    if primary:
        return primary

    candidates = getattr(response, "candidates", None) or []
    for cand in candidates:
        content = getattr(cand, "content", None)
        parts = getattr(content, "parts", None) or []
        for part in parts:
            text_value = str(getattr(part, "text", "") or "").strip()
            if text_value:
                return text_value
    return ""


def extract_inline_data(response: object, mime_prefix: str = "") -> Optional[tuple[bytes, str]]:
    """Return ``(bytes, mime_type)`` of the first inline part matching ``mime_prefix``."""
    candidates = getattr(response, "candidates", None) or []
    for cand in candidates:
        content = getattr(cand, "content", None)
        parts = getattr(content, "parts", None) or []
        for part in parts:
            inline_data = getattr(part, "inline_data", None)
            if inline_data is None:
                continue
            data = getattr(inline_data, "data", None)
            if data is None:
                continue
            mime_type = str(getattr(inline_data, "mime_type", "") or "").strip()
            if mime_prefix and mime_type and not mime_type.lower().startswith(mime_prefix):
                continue
            if isinstance(data, bytes):
                return data, mime_type
            if isinstance(data, str):
                return base64.b64decode(data), mime_type
    return None


def parse_json_payload(text: str, *, strict: bool = False) -> Any:
    """Parse a JSON response body.

    Empty or unparseable text yields ``{}`` unless ``strict`` is set, in which
    case ``MalformedResponseError`` is raised.
    """
    raw = str(text or "").strip()
    if raw.startswith("```"):
        raw = raw.strip("`").strip()
        if raw.lower().startswith("json"):
            raw = raw[4:].strip()
    if not raw:
        if strict:
            raise MalformedResponseError("Model returned an empty response body.")
        return {}
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        if strict:
            raise MalformedResponseError(f"Model returned invalid JSON: {exc}") from exc
        return {}
    if strict and not isinstance(payload, dict):
        raise MalformedResponseError("Model returned JSON that is not an object.")
    return payload


def inline_part(data: bytes, mime_type: str) -> types.Part:
    return types.Part.from_bytes(data=data, mime_type=mime_type)


def text_part(text: str) -> types.Part:
    return types.Part.from_text(text=text)
