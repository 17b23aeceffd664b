from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from io import BytesIO

import numpy as np
import soundfile as sf

from speakpro.models import TTS_CHANNELS, TTS_SAMPLE_RATE


PCM16_SCALE = 32768.0


@dataclass
class AudioSamplePayload:
    pcm: bytes
    sample_rate: int = TTS_SAMPLE_RATE
    num_channels: int = TTS_CHANNELS
    channel_data: list[np.ndarray] = field(default_factory=list)

    @property
    def frame_count(self) -> int:
        if not self.channel_data:
            return 0
        return int(self.channel_data[0].shape[0])

    @property
    def duration_seconds(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frame_count / float(self.sample_rate)

    def to_wav_bytes(self) -> bytes:
        if self.frame_count == 0:
            frames = np.zeros((0, max(1, self.num_channels)), dtype=np.float32)
        else:
            frames = np.stack(self.channel_data, axis=1)
        out = BytesIO()
        sf.write(out, frames, self.sample_rate, format="WAV", subtype="PCM_16")
        return out.getvalue()


def decode_base64(payload: str | bytes) -> bytes:
    if isinstance(payload, bytes):
        payload = payload.decode("ascii", errors="ignore")
    token = str(payload or "").strip()
    if token.startswith("data:") and "," in token:
        token = token.split(",", 1)[1]
    try:
        return base64.b64decode(token, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base64 payload: {exc}") from exc


def decode_audio_data(pcm: bytes, sample_rate: int = TTS_SAMPLE_RATE, num_channels: int = TTS_CHANNELS) -> AudioSamplePayload:
    """Split interleaved little-endian int16 PCM into per-channel floats in [-1.0, 1.0)."""
    if len(pcm) % 2 != 0:
        raise ValueError("Audio payload has invalid PCM length.")
    if int(num_channels) < 1:
        raise ValueError("num_channels must be >= 1.")
    if int(sample_rate) <= 0:
        raise ValueError("sample_rate must be > 0.")

    samples = np.frombuffer(pcm, dtype="<i2")
    frame_count = samples.shape[0] // num_channels
    frames = samples[: frame_count * num_channels].reshape(frame_count, num_channels)
    scaled = frames.astype(np.float32) / PCM16_SCALE
    channel_data = [np.ascontiguousarray(scaled[:, channel]) for channel in range(num_channels)]
    return AudioSamplePayload(
        pcm=bytes(pcm),
        sample_rate=int(sample_rate),
        num_channels=int(num_channels),
        channel_data=channel_data,
    )


def decode_base64_audio(payload: str | bytes, sample_rate: int = TTS_SAMPLE_RATE, num_channels: int = TTS_CHANNELS) -> AudioSamplePayload:
    return decode_audio_data(decode_base64(payload), sample_rate=sample_rate, num_channels=num_channels)
