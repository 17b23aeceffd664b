from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, TypeVar

from speakpro.errors import (
    AllModelsExhaustedError,
    AttemptTimeoutError,
    MissingCredentialError,
    QuotaExceededError,
)
from speakpro.guard import with_timeout
from speakpro.telemetry import emit_event, new_trace_id, summarize_failures


T = TypeVar("T")

DEFAULT_TIMEOUT_MS = 60_000
ERROR_KIND_TIMEOUT = "timeout"
ERROR_KIND_QUOTA = "quota"
ERROR_KIND_CREDENTIAL = "credential"
ERROR_KIND_OTHER = "other"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts_per_model: int = 1
    initial_delay_ms: int = 1500
    multiplier: float = 2.5

    def __post_init__(self) -> None:
        if int(self.max_attempts_per_model) < 1:
            raise ValueError("max_attempts_per_model must be >= 1.")
        if int(self.initial_delay_ms) <= 0:
            raise ValueError("initial_delay_ms must be > 0.")
        if float(self.multiplier) <= 1.0:
            raise ValueError("multiplier must be > 1 so backoff grows between retries.")


def _error_text(exc: BaseException) -> str:
    return str(exc or "").strip() or repr(exc)


def _is_quota_error(exc: BaseException, message: str) -> bool:
    for attr in ("code", "status", "status_code"):
        value = getattr(exc, attr, None)
        if value == 429 or str(value or "").strip() in {"429", "RESOURCE_EXHAUSTED"}:
            return True
    lower = message.lower()
    return (
        re.search(r"\b429\b", lower) is not None
        or "quota" in lower
        or "resource_exhausted" in lower
        or "resource exhausted" in lower
        or "rate limit" in lower
        or "too many requests" in lower
    )


def _is_timeout_message(message: str) -> bool:
    lower = message.lower()
    return "timed out" in lower or "deadline exceeded" in lower


def classify_error(exc: BaseException) -> str:
    if isinstance(exc, MissingCredentialError):
        return ERROR_KIND_CREDENTIAL
    if isinstance(exc, (AttemptTimeoutError, asyncio.TimeoutError)):
        return ERROR_KIND_TIMEOUT
    if isinstance(exc, QuotaExceededError):
        return ERROR_KIND_QUOTA
    message = _error_text(exc)
    if _is_quota_error(exc, message):
        return ERROR_KIND_QUOTA
    if _is_timeout_message(message):
        return ERROR_KIND_TIMEOUT
    return ERROR_KIND_OTHER


async def call_with_retry(
    attempt: Callable[[str], Awaitable[T]],
    *,
    candidates: Sequence[str],
    policy: Optional[RetryPolicy] = None,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    label: Optional[str] = None,
    trace_id: Optional[str] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Run ``attempt(model)`` across ``candidates`` until one call succeeds.

    Models are tried strictly in order. Within one model, quota failures are
    retried after an exponentially growing delay while attempts remain; a
    timeout or any other failure moves straight to the next model. A missing
    credential is re-raised immediately. When every model is used up,
    ``AllModelsExhaustedError`` carries the last error seen.
    """
    retry_policy = policy or RetryPolicy()
    models = [str(model) for model in candidates if str(model or "").strip()]
    if not models:
        raise ValueError("At least one candidate model is required.")
    trace = trace_id or new_trace_id()
    max_attempts = int(retry_policy.max_attempts_per_model)

    last_error: Optional[BaseException] = None
    attempts: list[Dict[str, Any]] = []
    model_errors: list[str] = []

    for model in models:
        delay_ms = float(retry_policy.initial_delay_ms)
        for attempt_index in range(max_attempts):
            emit_event(
                trace,
                "orchestrator",
                "attempt",
                {"model": model, "attempt": attempt_index + 1, "maxAttempts": max_attempts, "label": label},
            )
            try:
                value = await with_timeout(attempt(model), timeout_ms, label or f"Model {model}")
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                kind = classify_error(exc)
                detail = _error_text(exc).replace("\n", " ")
                attempts.append(
                    {
                        "model": model,
                        "attempt": attempt_index + 1,
                        "kind": kind,
                        "error": detail[:200],
                    }
                )
                if kind == ERROR_KIND_CREDENTIAL:
                    raise
                model_errors.append(f"{model}: {detail[:160]}")

                if kind == ERROR_KIND_TIMEOUT:
                    emit_event(trace, "orchestrator", "timeout", {"model": model, "timeoutMs": int(timeout_ms)})
                    break
                if kind == ERROR_KIND_QUOTA and attempt_index < max_attempts - 1:
                    emit_event(
                        trace,
                        "orchestrator",
                        "quota_backoff",
                        {"model": model, "attempt": attempt_index + 1, "waitMs": int(delay_ms)},
                    )
                    await sleep(delay_ms / 1000.0)
                    delay_ms *= float(retry_policy.multiplier)
                    continue
                emit_event(trace, "orchestrator", "model_failed", {"model": model, "kind": kind, "error": detail[:160]})
                break
            else:
                emit_event(trace, "orchestrator", "succeeded", {"model": model, "attempt": attempt_index + 1})
                return value

    summary = summarize_failures(model_errors, default_summary=_error_text(last_error) if last_error else "")
    emit_event(
        trace,
        "orchestrator",
        "exhausted",
        {"models": models, "attemptsUsed": len(attempts), "summary": summary},
    )
    raise AllModelsExhaustedError(last_error, attempts=attempts, summary=summary) from last_error
