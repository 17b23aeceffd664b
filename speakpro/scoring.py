from __future__ import annotations

import math
from datetime import date
from typing import Any, Mapping, Optional

from speakpro.schemas import (
    SCORE_DIMENSIONS,
    EvaluationResult,
    EvaluationScores,
    coerce_evaluation_payload,
)


MIN_SCORE = 0.0
MAX_SCORE = 10.0


def round_one_decimal(value: float) -> float:
    # Half-up, so 8.25 -> 8.3 rather than banker's rounding.
    return math.floor(float(value) * 10.0 + 0.5) / 10.0


def _to_float(raw: Any) -> float:
    if raw is None or isinstance(raw, bool):
        return 0.0
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    return value


def normalize_score(raw: Any) -> float:
    """Map a score of unknown scale (0-1, 0-10 or 0-100) onto 0-10 with one decimal."""
    value = _to_float(raw)
    if 0.0 < value < 1.0:
        value *= 10.0
    elif value > MAX_SCORE:
        value /= 10.0
    value = min(MAX_SCORE, max(MIN_SCORE, value))
    return round_one_decimal(value)


def aggregate_score(scores: EvaluationScores) -> float:
    values = [float(getattr(scores, name)) for name in SCORE_DIMENSIONS]
    return round_one_decimal(sum(values) / len(values))


def normalize_scores(raw: Mapping[str, Any]) -> EvaluationScores:
    source = raw if isinstance(raw, Mapping) else {}
    return EvaluationScores(**{name: normalize_score(source.get(name)) for name in SCORE_DIMENSIONS})


def build_evaluation_result(
    raw: object,
    *,
    level: str,
    evaluation_date: Optional[str] = None,
) -> EvaluationResult:
    payload = coerce_evaluation_payload(raw)
    scores = normalize_scores(payload)
    return EvaluationResult(
        **scores.model_dump(),
        score=aggregate_score(scores),
        transcript=payload["transcript"],
        feedback=payload["feedback"],
        teacherPraise=payload["teacherPraise"],
        mistakes=payload["mistakes"],
        suggestions=payload["suggestions"],
        perceivedLevel=str(level or ""),
        keyVocabulary=[],
        evaluationDate=evaluation_date or date.today().isoformat(),
    )
