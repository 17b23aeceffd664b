from __future__ import annotations

from typing import Any, Dict, Optional


ERROR_CODE_API_KEY_MISSING = "SPEAKPRO_API_KEY_MISSING"
ERROR_CODE_ATTEMPT_TIMEOUT = "SPEAKPRO_ATTEMPT_TIMEOUT"
ERROR_CODE_QUOTA_EXCEEDED = "SPEAKPRO_QUOTA_EXCEEDED"
ERROR_CODE_UPSTREAM_FAILED = "SPEAKPRO_UPSTREAM_MODEL_FAILED"
ERROR_CODE_ALL_MODELS_EXHAUSTED = "SPEAKPRO_ALL_MODELS_EXHAUSTED"
ERROR_CODE_MALFORMED_RESPONSE = "SPEAKPRO_MALFORMED_RESPONSE"


class SpeakProError(Exception):
    error_code = ERROR_CODE_UPSTREAM_FAILED


class MissingCredentialError(SpeakProError):
    """No Gemini API key is configured; the caller should prompt for settings."""

    error_code = ERROR_CODE_API_KEY_MISSING

    def __init__(self, message: str = "Gemini API key is missing. Open Settings and enter an API key.") -> None:
        super().__init__(message)


class AttemptTimeoutError(SpeakProError):
    error_code = ERROR_CODE_ATTEMPT_TIMEOUT

    def __init__(self, label: str, timeout_ms: int) -> None:
        self.label = str(label or "API call")
        self.timeout_ms = int(timeout_ms)
        seconds = round(self.timeout_ms / 1000)
        super().__init__(f"{self.label} timed out after {seconds}s.")


class QuotaExceededError(SpeakProError):
    error_code = ERROR_CODE_QUOTA_EXCEEDED


class TransientServiceError(SpeakProError):
    error_code = ERROR_CODE_UPSTREAM_FAILED


class MalformedResponseError(SpeakProError):
    error_code = ERROR_CODE_MALFORMED_RESPONSE


class AllModelsExhaustedError(SpeakProError):
    """Every candidate model ran out of attempts.

    ``last_error`` is the most recent underlying failure and ``attempts`` holds
    one record per (model, attempt) pair in the order they were tried.
    """

    error_code = ERROR_CODE_ALL_MODELS_EXHAUSTED

    def __init__(
        self,
        last_error: Optional[BaseException],
        attempts: Optional[list[Dict[str, Any]]] = None,
        summary: str = "",
    ) -> None:
        self.last_error = last_error
        self.attempts = list(attempts or [])
        self.last_message = str(last_error or "").strip() or "no model attempt was made"
        self.summary = summary or self.last_message
        super().__init__(f"All models failed: {self.last_message}")
