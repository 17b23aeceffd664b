from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

from google.genai import types

from speakpro.audio import AudioSamplePayload, decode_audio_data
from speakpro.config import RuntimeConfig
from speakpro.errors import MalformedResponseError, TransientServiceError
from speakpro.gemini import (
    build_genai_client,
    extract_inline_data,
    extract_text_content,
    inline_part,
    parse_json_payload,
    text_part,
)
from speakpro.models import IMAGE_ASPECT_RATIOS, TTS_CHANNELS, resolve_candidates
from speakpro.orchestrator import call_with_retry
from speakpro.prompts import (
    default_image_prompt,
    evaluation_request,
    evaluation_response_schema,
    image_prompt_request,
    script_from_image_request,
    script_request,
    script_response_schema,
)
from speakpro.schemas import EvaluationResult, Illustration, ScriptResult, coerce_script
from speakpro.scoring import build_evaluation_result
from speakpro.settings import Settings, api_key_fingerprint
from speakpro.telemetry import emit_event, new_trace_id


ClientFactory = Callable[..., Any]


def _build_speech_config(voice_name: str) -> types.SpeechConfig:
    return types.SpeechConfig(
        voice_config=types.VoiceConfig(
            prebuilt_voice_config=types.PrebuiltVoiceConfig(
                voice_name=voice_name,
            )
        ),
    )


class ContentStudio:
    """Caller-facing content operations for one learner session.

    Every call reads the API key from ``settings`` before touching the network
    and then runs through ``call_with_retry`` so timeouts, quota backoff and
    model fallback behave the same way for every operation.
    """

    def __init__(
        self,
        settings: Settings,
        config: Optional[RuntimeConfig] = None,
        client_factory: ClientFactory = build_genai_client,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.config = config or RuntimeConfig()
        self._client_factory = client_factory
        self._sleep = sleep

    def _text_candidates(self) -> list[str]:
        return resolve_candidates(self.settings.selected_model, self.config.fallback_models)

    async def _generate(
        self,
        *,
        candidates: list[str],
        contents: list[Any],
        label: str,
        trace_id: Optional[str],
        handle: Callable[[Any, str], Any],
        generation_config: Optional[types.GenerateContentConfig] = None,
    ) -> Any:
        api_key = self.settings.require_api_key()
        trace = trace_id or new_trace_id()
        emit_event(
            trace,
            "content",
            "start",
            {"label": label, "models": candidates, "keyFingerprint": api_key_fingerprint(api_key)},
        )

        async def attempt(model: str) -> Any:
            client = self._client_factory(api_key, timeout_ms=self.config.request_timeout_ms)
            response = await client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=generation_config,
            )
            return handle(response, model)

        return await call_with_retry(
            attempt,
            candidates=candidates,
            policy=self.config.retry_policy(),
            timeout_ms=self.config.request_timeout_ms,
            label=label,
            trace_id=trace,
            sleep=self._sleep,
        )

    def _parse_json(self, response: Any, model: str, trace_id: Optional[str], label: str) -> Any:
        text = extract_text_content(response)
        try:
            payload = parse_json_payload(text, strict=self.config.strict_responses)
        except MalformedResponseError as exc:
            emit_event(
                trace_id or "",
                "content",
                "malformed_response",
                {"label": label, "model": model, "strict": True, "error": str(exc)[:160]},
            )
            raise
        if not isinstance(payload, dict) or not payload:
            emit_event(
                trace_id or "",
                "content",
                "malformed_response",
                {"label": label, "model": model, "strict": False, "chars": len(text)},
            )
            return {}
        return payload

    async def generate_image_prompt(self, theme: str, trace_id: Optional[str] = None) -> str:
        theme_text = str(theme or "").strip()

        def handle(response: Any, model: str) -> str:
            return extract_text_content(response)

        text = await self._generate(
            candidates=self._text_candidates(),
            contents=[text_part(image_prompt_request(theme_text))],
            label="Image prompt",
            trace_id=trace_id,
            handle=handle,
        )
        return text or default_image_prompt(theme_text)

    def _script_config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=script_response_schema(),
        )

    async def generate_script(
        self,
        image_description: str,
        vocabulary_hints: str,
        level: str,
        learner_name: str,
        theme_label: str = "",
        trace_id: Optional[str] = None,
    ) -> ScriptResult:
        trace = trace_id or new_trace_id()
        prompt = script_request(
            image_description=str(image_description or "").strip(),
            vocabulary_hints=str(vocabulary_hints or "").strip(),
            level=str(level or "").strip(),
            learner_name=str(learner_name or "").strip(),
            translation_language=self.config.feedback_language,
            theme_label=theme_label,
        )

        def handle(response: Any, model: str) -> ScriptResult:
            return coerce_script(self._parse_json(response, model, trace, "Script"))

        return await self._generate(
            candidates=self._text_candidates(),
            contents=[text_part(prompt)],
            label="Script",
            trace_id=trace,
            handle=handle,
            generation_config=self._script_config(),
        )

    async def generate_script_from_image(
        self,
        image: bytes,
        mime_type: str,
        level: str,
        learner_name: str,
        trace_id: Optional[str] = None,
    ) -> ScriptResult:
        if not image:
            raise ValueError("Image payload is empty.")
        trace = trace_id or new_trace_id()
        prompt = script_from_image_request(
            level=str(level or "").strip(),
            learner_name=str(learner_name or "").strip(),
            translation_language=self.config.feedback_language,
        )

        def handle(response: Any, model: str) -> ScriptResult:
            return coerce_script(self._parse_json(response, model, trace, "Script from image"))

        return await self._generate(
            candidates=self._text_candidates(),
            contents=[inline_part(image, str(mime_type or "image/png")), text_part(prompt)],
            label="Script from image",
            trace_id=trace,
            handle=handle,
            generation_config=self._script_config(),
        )

    async def synthesize_voice(self, text: str, trace_id: Optional[str] = None) -> AudioSamplePayload:
        clean_text = str(text or "").strip()
        if not clean_text:
            raise ValueError("Text to synthesize is empty.")
        sample_rate = int(self.config.tts_sample_rate)

        def handle(response: Any, model: str) -> AudioSamplePayload:
            inline = extract_inline_data(response, mime_prefix="audio/")
            if inline is None or not inline[0]:
                raise TransientServiceError(f"Model {model} returned no audio data.")
            return decode_audio_data(inline[0], sample_rate=sample_rate, num_channels=TTS_CHANNELS)

        return await self._generate(
            candidates=[self.config.tts_model],
            contents=[text_part(clean_text)],
            label="Voice",
            trace_id=trace_id,
            handle=handle,
            generation_config=types.GenerateContentConfig(
                response_modalities=["AUDIO"],
                speech_config=_build_speech_config(self.config.tts_voice),
            ),
        )

    async def evaluate_speech(
        self,
        script: str,
        audio: bytes,
        mime_type: str,
        level: str,
        trace_id: Optional[str] = None,
    ) -> EvaluationResult:
        if not audio:
            raise ValueError("Audio payload is empty.")
        trace = trace_id or new_trace_id()
        level_tag = str(level or "").strip()
        prompt = evaluation_request(
            target_script=str(script or "").strip(),
            level=level_tag,
            feedback_language=self.config.feedback_language,
        )

        def handle(response: Any, model: str) -> EvaluationResult:
            return build_evaluation_result(self._parse_json(response, model, trace, "Evaluation"), level=level_tag)

        return await self._generate(
            candidates=self._text_candidates(),
            contents=[inline_part(audio, str(mime_type or "audio/webm")), text_part(prompt)],
            label="Evaluation",
            trace_id=trace,
            handle=handle,
            generation_config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=evaluation_response_schema(),
            ),
        )

    async def generate_illustration(
        self,
        prompt: str,
        aspect_ratio: str = "1:1",
        trace_id: Optional[str] = None,
    ) -> Illustration:
        ratio = str(aspect_ratio or "").strip()
        if ratio not in IMAGE_ASPECT_RATIOS:
            raise ValueError(f"Unsupported aspect ratio '{aspect_ratio}'. Use one of: {', '.join(IMAGE_ASPECT_RATIOS)}.")
        prompt_text = str(prompt or "").strip()
        if not prompt_text:
            raise ValueError("Illustration prompt is empty.")

        def handle(response: Any, model: str) -> Illustration:
            inline = extract_inline_data(response, mime_prefix="image/")
            if inline is None or not inline[0]:
                raise TransientServiceError(f"Model {model} returned no image data.")
            data, mime = inline
            return Illustration(mimeType=mime or "image/png", data=data)

        return await self._generate(
            candidates=[self.config.image_model],
            contents=[text_part(prompt_text)],
            label="Illustration",
            trace_id=trace_id,
            handle=handle,
            generation_config=types.GenerateContentConfig(
                response_modalities=["IMAGE"],
                image_config=types.ImageConfig(aspect_ratio=ratio),
            ),
        )
