from __future__ import annotations

import base64
import re
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, Field


SCORE_DIMENSIONS: tuple[str, ...] = (
    "pronunciation",
    "fluency",
    "intonation",
    "vocabulary",
    "grammar",
    "taskFulfillment",
)
MISTAKE_TYPES: tuple[str, ...] = ("mispronunciation", "omission", "hesitation")
DEFAULT_MISTAKE_TYPE = "mispronunciation"

MistakeType = Literal["mispronunciation", "omission", "hesitation"]


class VocabularyItem(BaseModel):
    word: str
    ipa: str = ""
    translation: str = ""
    icon: str = ""


class ScriptResult(BaseModel):
    intro: str = ""
    points: list[str] = Field(default_factory=list)
    conclusion: str = ""
    lessonVocab: list[VocabularyItem] = Field(default_factory=list)

    @property
    def full_script(self) -> str:
        parts = [self.intro, *self.points, self.conclusion]
        return " ".join(part.strip() for part in parts if part and part.strip())


class SpeakingMistake(BaseModel):
    word: str
    type: MistakeType = DEFAULT_MISTAKE_TYPE
    feedback: str = ""


class EvaluationScores(BaseModel):
    pronunciation: float = Field(default=0.0, ge=0.0, le=10.0)
    fluency: float = Field(default=0.0, ge=0.0, le=10.0)
    intonation: float = Field(default=0.0, ge=0.0, le=10.0)
    vocabulary: float = Field(default=0.0, ge=0.0, le=10.0)
    grammar: float = Field(default=0.0, ge=0.0, le=10.0)
    taskFulfillment: float = Field(default=0.0, ge=0.0, le=10.0)


class EvaluationResult(EvaluationScores):
    score: float = Field(default=0.0, ge=0.0, le=10.0)
    transcript: str = ""
    feedback: str = ""
    teacherPraise: str = ""
    mistakes: list[SpeakingMistake] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    perceivedLevel: str = ""
    keyVocabulary: list[VocabularyItem] = Field(default_factory=list)
    evaluationDate: str = Field(default_factory=lambda: date.today().isoformat())


class Illustration(BaseModel):
    mimeType: str = "image/png"
    data: bytes = b""

    @property
    def data_uri(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mimeType};base64,{encoded}"


def _clean_text(value: object) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return re.sub(r"\s+", " ", str(value)).strip()


def _clean_text_list(raw: object) -> list[str]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return []
    out: list[str] = []
    for item in raw:
        text = _clean_text(item)
        if text:
            out.append(text)
    return out


def coerce_vocabulary(raw: object) -> list[VocabularyItem]:
    if not isinstance(raw, list):
        return []
    out: list[VocabularyItem] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        word = _clean_text(item.get("word"))
        if not word:
            continue
        out.append(
            VocabularyItem(
                word=word,
                ipa=_clean_text(item.get("ipa")),
                translation=_clean_text(item.get("translation")),
                icon=_clean_text(item.get("icon")),
            )
        )
    return out


def coerce_script(raw: object) -> ScriptResult:
    payload = raw if isinstance(raw, dict) else {}
    return ScriptResult(
        intro=_clean_text(payload.get("intro")),
        points=_clean_text_list(payload.get("points")),
        conclusion=_clean_text(payload.get("conclusion")),
        lessonVocab=coerce_vocabulary(payload.get("lessonVocab")),
    )


def coerce_mistakes(raw: object) -> list[SpeakingMistake]:
    if not isinstance(raw, list):
        return []
    out: list[SpeakingMistake] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        word = _clean_text(item.get("word"))
        if not word:
            continue
        mistake_type = _clean_text(item.get("type")).lower()
        if mistake_type not in MISTAKE_TYPES:
            mistake_type = DEFAULT_MISTAKE_TYPE
        out.append(
            SpeakingMistake(
                word=word,
                type=mistake_type,
                feedback=_clean_text(item.get("feedback")),
            )
        )
    return out


def coerce_evaluation_payload(raw: object) -> dict[str, Any]:
    """Keep the free-text parts of an evaluation payload; scores are left raw."""
    payload = raw if isinstance(raw, dict) else {}
    coerced: dict[str, Any] = {name: payload.get(name) for name in SCORE_DIMENSIONS}
    coerced.update(
        {
            "transcript": _clean_text(payload.get("transcript")),
            "feedback": _clean_text(payload.get("feedback")),
            "teacherPraise": _clean_text(payload.get("teacherPraise")),
            "mistakes": coerce_mistakes(payload.get("mistakes")),
            "suggestions": _clean_text_list(payload.get("suggestions")),
        }
    )
    return coerced
