from __future__ import annotations

import json
import os
import re
import time
from typing import Dict, Iterable, Optional


ENGINE_NAME = "speakpro"
MAX_PUBLIC_SUMMARY_ITEMS = 3
MAX_PUBLIC_SUMMARY_CHARS = 220


def new_trace_id() -> str:
    return f"spk_{int(time.time() * 1000):x}_{os.urandom(3).hex()}"


def normalize_trace_id(value: Optional[str]) -> str:
    token = re.sub(r"[^a-zA-Z0-9._:-]", "", str(value or "").strip())
    if token:
        return token[:96]
    return new_trace_id()


def emit_event(trace_id: str, stage: str, status: str, detail: Optional[Dict[str, object]] = None) -> None:
    payload: Dict[str, object] = {
        "event": "orchestration_stage",
        "engine": ENGINE_NAME,
        "trace_id": trace_id,
        "stage": stage,
        "status": status,
        "ts": int(time.time() * 1000),
    }
    if detail:
        payload["detail"] = detail
    print(json.dumps(payload, ensure_ascii=True, default=str), flush=True)


def _normalize_summary_fragment(value: str) -> str:
    return re.sub(r"\s+", " ", str(value or "")).strip()


def truncate_summary(value: str, limit: int = MAX_PUBLIC_SUMMARY_CHARS) -> str:
    clean = _normalize_summary_fragment(value)
    if not clean:
        return ""
    if len(clean) <= limit:
        return clean
    if limit <= 3:
        return clean[:limit]
    return f"{clean[: max(0, limit - 3)].rstrip()}..."


def summarize_failures(model_errors: Iterable[str], default_summary: str) -> str:
    unique_fragments: list[str] = []
    seen: set[str] = set()
    for raw in model_errors:
        normalized = _normalize_summary_fragment(raw)
        if not normalized:
            continue
        key = normalized.lower()
        if key in seen:
            continue
        seen.add(key)
        unique_fragments.append(normalized)
    if not unique_fragments:
        return truncate_summary(default_summary)
    visible = unique_fragments[:MAX_PUBLIC_SUMMARY_ITEMS]
    omitted = max(0, len(unique_fragments) - len(visible))
    summary = " | ".join(visible)
    if omitted > 0:
        summary = f"{summary} (+{omitted} more)"
    return truncate_summary(summary)
