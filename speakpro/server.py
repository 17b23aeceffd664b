from __future__ import annotations

import os
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from speakpro.audio import decode_base64
from speakpro.config import RuntimeConfig, build_config
from speakpro.content import ContentStudio
from speakpro.env_loader import load_env_files
from speakpro.errors import (
    ERROR_CODE_API_KEY_MISSING,
    AllModelsExhaustedError,
    MissingCredentialError,
)
from speakpro.gemini import build_genai_client
from speakpro.models import DEFAULT_MODEL, IMAGE_ASPECT_RATIOS, MODEL_CATALOG, is_known_model, normalize_model_name
from speakpro.settings import SettingsStore, looks_like_api_key, mask_api_key
from speakpro.telemetry import ENGINE_NAME, emit_event, normalize_trace_id, truncate_summary
from speakpro.voice_cache import InMemoryVoiceCache, cached_voice


APP_NAME = "speakpro-lab"
ERROR_CODE_INVALID_REQUEST = "SPEAKPRO_INVALID_REQUEST"


class SettingsUpdateRequest(BaseModel):
    apiKey: str = Field(min_length=1)
    model: Optional[str] = None


class ImagePromptRequest(BaseModel):
    theme: str = Field(min_length=1)
    trace_id: Optional[str] = None


class ScriptRequest(BaseModel):
    imageDescription: str = Field(min_length=1)
    vocabularyHints: str = ""
    level: str = Field(min_length=1)
    learnerName: str = ""
    themeLabel: str = ""
    trace_id: Optional[str] = None


class ScriptFromImageRequest(BaseModel):
    imageBase64: str = Field(min_length=1)
    mimeType: str = "image/png"
    level: str = Field(min_length=1)
    learnerName: str = ""
    trace_id: Optional[str] = None


class VoiceRequest(BaseModel):
    text: str = Field(min_length=1)
    trace_id: Optional[str] = None


class EvaluateRequest(BaseModel):
    script: str = ""
    audioBase64: str = Field(min_length=1)
    mimeType: str = "audio/webm"
    level: str = Field(min_length=1)
    trace_id: Optional[str] = None


class IllustrationRequest(BaseModel):
    prompt: str = Field(min_length=1)
    aspectRatio: str = "1:1"
    trace_id: Optional[str] = None


async def _run_mapped(trace_id: str, route: str, operation: Callable[[], Awaitable[Any]]) -> Any:
    try:
        return await operation()
    except MissingCredentialError as exc:
        detail: Dict[str, Any] = {
            "error": str(exc),
            "errorCode": ERROR_CODE_API_KEY_MISSING,
            "trace_id": trace_id,
        }
        emit_event(trace_id, "http", "failed", {"route": route, "errorCode": ERROR_CODE_API_KEY_MISSING})
        raise HTTPException(status_code=400, detail=detail) from exc
    except AllModelsExhaustedError as exc:
        detail = {
            "error": str(exc),
            "errorCode": exc.error_code,
            "summary": truncate_summary(exc.summary),
            "attempts": exc.attempts[-50:],
            "trace_id": trace_id,
        }
        emit_event(trace_id, "http", "failed", {"route": route, "errorCode": exc.error_code, "summary": detail["summary"]})
        raise HTTPException(status_code=502, detail=detail) from exc
    except ValueError as exc:
        detail = {
            "error": str(exc),
            "errorCode": ERROR_CODE_INVALID_REQUEST,
            "trace_id": trace_id,
        }
        emit_event(trace_id, "http", "failed", {"route": route, "errorCode": ERROR_CODE_INVALID_REQUEST})
        raise HTTPException(status_code=400, detail=detail) from exc


def create_app(
    config: Optional[RuntimeConfig] = None,
    store: Optional[SettingsStore] = None,
    client_factory: Callable[..., Any] = build_genai_client,
) -> FastAPI:
    cfg = config or build_config()
    settings_store = store or SettingsStore(cfg.settings_path)
    voice_cache = InMemoryVoiceCache()

    def studio() -> ContentStudio:
        # Settings are re-read on every request so a PUT takes effect immediately.
        return ContentStudio(settings_store.load(), cfg, client_factory=client_factory)

    app = FastAPI(title=APP_NAME)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.cors_origins),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> JSONResponse:
        settings = settings_store.load()
        return JSONResponse(
            {
                "ok": True,
                "engine": ENGINE_NAME,
                "apiKeyConfigured": bool(settings.api_key),
                "model": settings.selected_model,
                "fallbackModels": list(cfg.fallback_models),
                "ttsModel": cfg.tts_model,
                "imageModel": cfg.image_model,
                "strictResponses": cfg.strict_responses,
                "voiceCacheEntries": len(voice_cache),
            }
        )

    @app.get("/v1/models")
    def list_models() -> JSONResponse:
        return JSONResponse(
            {
                "defaultModel": DEFAULT_MODEL,
                "models": [dict(entry) for entry in MODEL_CATALOG],
                "aspectRatios": list(IMAGE_ASPECT_RATIOS),
            }
        )

    @app.get("/v1/settings")
    def read_settings() -> JSONResponse:
        settings = settings_store.load()
        return JSONResponse(
            {
                "hasApiKey": bool(settings.api_key),
                "maskedKey": mask_api_key(settings.api_key),
                "model": settings.selected_model,
            }
        )

    @app.put("/v1/settings")
    def update_settings(payload: SettingsUpdateRequest) -> JSONResponse:
        try:
            saved = settings_store.save(payload.apiKey, normalize_model_name(payload.model) or None)
        except ValueError as exc:
            raise HTTPException(
                status_code=400,
                detail={"error": str(exc), "errorCode": ERROR_CODE_INVALID_REQUEST},
            ) from exc
        return JSONResponse(
            {
                "hasApiKey": True,
                "maskedKey": mask_api_key(saved.api_key),
                "model": saved.selected_model,
                "keyLooksValid": looks_like_api_key(saved.api_key),
                "modelKnown": is_known_model(saved.selected_model),
            }
        )

    @app.post("/v1/image-prompt")
    async def image_prompt(payload: ImagePromptRequest) -> JSONResponse:
        trace_id = normalize_trace_id(payload.trace_id)
        prompt = await _run_mapped(
            trace_id,
            "image-prompt",
            lambda: studio().generate_image_prompt(payload.theme, trace_id=trace_id),
        )
        return JSONResponse({"prompt": prompt, "trace_id": trace_id})

    @app.post("/v1/script")
    async def script(payload: ScriptRequest) -> JSONResponse:
        trace_id = normalize_trace_id(payload.trace_id)
        result = await _run_mapped(
            trace_id,
            "script",
            lambda: studio().generate_script(
                payload.imageDescription,
                payload.vocabularyHints,
                payload.level,
                payload.learnerName,
                theme_label=payload.themeLabel,
                trace_id=trace_id,
            ),
        )
        return JSONResponse({**result.model_dump(), "fullScript": result.full_script, "trace_id": trace_id})

    @app.post("/v1/script-from-image")
    async def script_from_image(payload: ScriptFromImageRequest) -> JSONResponse:
        trace_id = normalize_trace_id(payload.trace_id)

        async def run() -> Any:
            image = decode_base64(payload.imageBase64)
            return await studio().generate_script_from_image(
                image,
                payload.mimeType,
                payload.level,
                payload.learnerName,
                trace_id=trace_id,
            )

        result = await _run_mapped(trace_id, "script-from-image", run)
        return JSONResponse({**result.model_dump(), "fullScript": result.full_script, "trace_id": trace_id})

    @app.post("/v1/voice")
    async def voice(payload: VoiceRequest) -> Response:
        trace_id = normalize_trace_id(payload.trace_id)
        text = payload.text.strip()
        if not text:
            emit_event(trace_id, "http", "failed", {"route": "voice", "errorCode": ERROR_CODE_INVALID_REQUEST})
            raise HTTPException(
                status_code=400,
                detail={"error": "Text is empty.", "errorCode": ERROR_CODE_INVALID_REQUEST, "trace_id": trace_id},
            )

        async def synthesize(value: str) -> Any:
            return await studio().synthesize_voice(value, trace_id=trace_id)

        audio = await _run_mapped(trace_id, "voice", lambda: cached_voice(voice_cache, text, synthesize))
        return Response(
            content=audio.to_wav_bytes(),
            media_type="audio/wav",
            headers={
                "X-SpeakPro-Trace-Id": trace_id,
                "X-SpeakPro-Duration-Seconds": f"{audio.duration_seconds:.3f}",
            },
        )

    @app.post("/v1/evaluate")
    async def evaluate(payload: EvaluateRequest) -> JSONResponse:
        trace_id = normalize_trace_id(payload.trace_id)

        async def run() -> Any:
            audio = decode_base64(payload.audioBase64)
            return await studio().evaluate_speech(
                payload.script,
                audio,
                payload.mimeType,
                payload.level,
                trace_id=trace_id,
            )

        result = await _run_mapped(trace_id, "evaluate", run)
        return JSONResponse({**result.model_dump(), "trace_id": trace_id})

    @app.post("/v1/illustration")
    async def illustration(payload: IllustrationRequest) -> JSONResponse:
        trace_id = normalize_trace_id(payload.trace_id)
        result = await _run_mapped(
            trace_id,
            "illustration",
            lambda: studio().generate_illustration(payload.prompt, payload.aspectRatio, trace_id=trace_id),
        )
        return JSONResponse({"mimeType": result.mimeType, "dataUri": result.data_uri, "trace_id": trace_id})

    return app


load_env_files()
app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("SPEAKPRO_PORT", "8790"))
    uvicorn.run(app, host="127.0.0.1", port=port)
