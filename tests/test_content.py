from __future__ import annotations

import asyncio
import json
import struct
from types import SimpleNamespace
from typing import Any, Callable

import pytest

from speakpro.config import RuntimeConfig
from speakpro.content import ContentStudio
from speakpro.errors import AllModelsExhaustedError, MissingCredentialError, TransientServiceError
from speakpro.models import TTS_MODEL
from speakpro.settings import Settings


API_KEY = "AIza" + "0" * 35


def _text_response(text: str) -> object:
    return SimpleNamespace(text=text, candidates=[])


def _inline_response(data: bytes, mime_type: str) -> object:
    part = SimpleNamespace(text=None, inline_data=SimpleNamespace(data=data, mime_type=mime_type))
    return SimpleNamespace(text=None, candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


class _DummyModels:
    def __init__(self, reply: Callable[[dict[str, Any]], object]) -> None:
        self._reply = reply
        self.calls: list[dict[str, Any]] = []

    async def generate_content(self, **kwargs: Any) -> object:
        self.calls.append(kwargs)
        return self._reply(kwargs)

    @property
    def models_called(self) -> list[str]:
        return [str(call["model"]) for call in self.calls]


class _DummyClientFactory:
    def __init__(self, reply: Callable[[dict[str, Any]], object]) -> None:
        self.models = _DummyModels(reply)
        self.keys: list[str] = []

    def __call__(self, api_key: str, timeout_ms: int | None = None) -> object:
        self.keys.append(api_key)
        return SimpleNamespace(aio=SimpleNamespace(models=self.models))


async def _no_sleep(_seconds: float) -> None:
    return None


def _studio(factory: _DummyClientFactory, *, api_key: str = API_KEY, **config: Any) -> ContentStudio:
    return ContentStudio(
        Settings(api_key=api_key),
        RuntimeConfig(**config),
        client_factory=factory,
        sleep=_no_sleep,
    )


def _prompt_text(call: dict[str, Any]) -> str:
    return str(call["contents"][-1].text)


def test_starters_script_end_to_end() -> None:
    payload = {
        "intro": "Hello everyone!",
        "points": ["This is a tiger.", "It has got stripes."],
        "conclusion": "I like tigers.",
        "lessonVocab": [{"word": "tiger", "ipa": "/ˈtaɪɡər/", "translation": "con hổ", "icon": "🐯"}],
    }
    factory = _DummyClientFactory(lambda _kwargs: _text_response(json.dumps(payload)))

    result = asyncio.run(
        _studio(factory).generate_script("A tiger in the jungle", "tiger, stripes", "Starters", "An")
    )

    assert result.intro == "Hello everyone!"
    assert result.points == ["This is a tiger.", "It has got stripes."]
    assert result.lessonVocab[0].word == "tiger"
    for item in result.lessonVocab:
        for value in (item.word, item.ipa, item.translation, item.icon):
            assert isinstance(value, str) and value
    assert (result.lessonVocab[0].ipa, result.lessonVocab[0].translation) == ("/ˈtaɪɡər/", "con hổ")
    assert result.full_script == "Hello everyone! This is a tiger. It has got stripes. I like tigers."
    assert factory.models.models_called == ["gemini-3-flash-preview"]
    prompt = _prompt_text(factory.models.calls[0])
    assert "25-30 words" in prompt
    assert "Vietnamese" in prompt
    assert factory.models.calls[0]["config"].response_mime_type == "application/json"


def test_unknown_level_uses_generic_instruction() -> None:
    factory = _DummyClientFactory(lambda _kwargs: _text_response("{}"))
    asyncio.run(_studio(factory).generate_script("A cat", "", "C2", "Mai"))
    assert "general CEFR guidance" in _prompt_text(factory.models.calls[0])


def test_malformed_script_response_falls_back_to_empty_result() -> None:
    factory = _DummyClientFactory(lambda _kwargs: _text_response("Sorry, I cannot help with that."))

    result = asyncio.run(_studio(factory).generate_script("A cat", "", "A1", "Mai"))

    assert result.intro == ""
    assert result.points == []
    assert result.lessonVocab == []
    assert len(factory.models.calls) == 1


def test_strict_mode_rotates_to_next_model_on_malformed_json() -> None:
    def reply(kwargs: dict[str, Any]) -> object:
        if kwargs["model"] == "gemini-3-flash-preview":
            return _text_response("not json")
        return _text_response(json.dumps({"intro": "Hi", "points": [], "conclusion": "Bye", "lessonVocab": []}))

    factory = _DummyClientFactory(reply)
    result = asyncio.run(
        _studio(factory, strict_responses=True).generate_script("A cat", "", "A1", "Mai")
    )

    assert result.intro == "Hi"
    assert factory.models.models_called == ["gemini-3-flash-preview", "gemini-3-pro-preview"]


def test_missing_api_key_fails_before_any_call() -> None:
    factory = _DummyClientFactory(lambda _kwargs: _text_response("unused"))

    with pytest.raises(MissingCredentialError):
        asyncio.run(_studio(factory, api_key="  ").generate_image_prompt("Jungle animals"))

    assert factory.keys == []
    assert factory.models.calls == []


def test_image_prompt_falls_back_to_default_text() -> None:
    factory = _DummyClientFactory(lambda _kwargs: _text_response(""))
    prompt = asyncio.run(_studio(factory).generate_image_prompt("Ocean life"))
    assert prompt == (
        "A professional cinematic 3D Pixar style illustration of Ocean life, high detail, vibrant colors."
    )


def test_selected_model_is_tried_first() -> None:
    factory = _DummyClientFactory(lambda _kwargs: _text_response("A prompt"))
    studio = ContentStudio(
        Settings(api_key=API_KEY, model="gemini-2.5-flash"),
        RuntimeConfig(),
        client_factory=factory,
        sleep=_no_sleep,
    )
    assert asyncio.run(studio.generate_image_prompt("Farm")) == "A prompt"
    assert factory.models.models_called == ["gemini-2.5-flash"]


def test_script_from_image_sends_inline_image() -> None:
    factory = _DummyClientFactory(
        lambda _kwargs: _text_response(json.dumps({"intro": "Today I will talk about my cat."}))
    )
    result = asyncio.run(
        _studio(factory).generate_script_from_image(b"\x89PNG fake", "image/png", "Movers", "Lan")
    )

    assert result.intro == "Today I will talk about my cat."
    contents = factory.models.calls[0]["contents"]
    assert contents[0].inline_data.data == b"\x89PNG fake"
    assert contents[0].inline_data.mime_type == "image/png"
    assert "verbatim" in contents[1].text


def test_voice_uses_only_tts_model_and_decodes_pcm() -> None:
    pcm = struct.pack("<2h", 16384, -16384)
    factory = _DummyClientFactory(lambda _kwargs: _inline_response(pcm, "audio/L16;codec=pcm;rate=24000"))

    payload = asyncio.run(_studio(factory).synthesize_voice("Hello everyone"))

    assert factory.models.models_called == [TTS_MODEL]
    assert payload.sample_rate == 24000
    assert payload.channel_data[0].tolist() == [0.5, -0.5]
    speech = factory.models.calls[0]["config"].speech_config
    assert speech.voice_config.prebuilt_voice_config.voice_name == "Kore"


def test_voice_without_audio_exhausts_tts_model_only() -> None:
    factory = _DummyClientFactory(lambda _kwargs: _text_response("no audio here"))

    with pytest.raises(AllModelsExhaustedError) as exc_info:
        asyncio.run(_studio(factory).synthesize_voice("Hello"))

    assert factory.models.models_called == [TTS_MODEL]
    assert isinstance(exc_info.value.last_error, TransientServiceError)


def test_evaluation_scores_are_normalized() -> None:
    raw = {
        "transcript": "Hello every one",
        "pronunciation": 0.8,
        "fluency": 85,
        "intonation": 7.3,
        "vocabulary": 9,
        "grammar": 8,
        "taskFulfillment": 9,
        "feedback": "Tốt lắm",
        "mistakes": [{"word": "everyone", "type": "omission", "feedback": "Nói liền"}],
        "suggestions": ["Read slowly"],
    }
    factory = _DummyClientFactory(lambda _kwargs: _text_response(json.dumps(raw)))

    result = asyncio.run(
        _studio(factory).evaluate_speech("Hello everyone", b"webm-bytes", "audio/webm", "Flyers")
    )

    assert (result.pronunciation, result.fluency, result.intonation) == (8.0, 8.5, 7.3)
    assert result.score == 8.3
    assert result.perceivedLevel == "Flyers"
    assert result.mistakes[0].type == "omission"
    contents = factory.models.calls[0]["contents"]
    assert contents[0].inline_data.mime_type == "audio/webm"
    assert "TRANSCRIBE FIRST" in contents[1].text


def test_illustration_rejects_unknown_aspect_ratio() -> None:
    factory = _DummyClientFactory(lambda _kwargs: _inline_response(b"png", "image/png"))
    with pytest.raises(ValueError):
        asyncio.run(_studio(factory).generate_illustration("A tiger", aspect_ratio="2:1"))
    assert factory.models.calls == []


def test_illustration_returns_inline_image() -> None:
    factory = _DummyClientFactory(lambda _kwargs: _inline_response(b"png-bytes", "image/png"))

    image = asyncio.run(_studio(factory).generate_illustration("A tiger", aspect_ratio="16:9"))

    assert image.data == b"png-bytes"
    assert image.data_uri.startswith("data:image/png;base64,")
    assert factory.models.models_called == ["gemini-2.5-flash-image"]
    assert factory.models.calls[0]["config"].image_config.aspect_ratio == "16:9"
