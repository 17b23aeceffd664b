from __future__ import annotations

from typing import Awaitable, Callable, Dict, Optional, Protocol

from speakpro.audio import AudioSamplePayload


class VoiceCache(Protocol):
    def get(self, key: str) -> Optional[AudioSamplePayload]: ...

    def put(self, key: str, value: AudioSamplePayload) -> None: ...


class InMemoryVoiceCache:
    """Process-local cache keyed by the exact text; entries are never evicted."""

    def __init__(self) -> None:
        self._entries: Dict[str, AudioSamplePayload] = {}

    def get(self, key: str) -> Optional[AudioSamplePayload]:
        return self._entries.get(key)

    def put(self, key: str, value: AudioSamplePayload) -> None:
        self._entries[key] = value

    def __len__(self) -> int:
        return len(self._entries)


async def cached_voice(
    cache: VoiceCache,
    text: str,
    synthesize: Callable[[str], Awaitable[AudioSamplePayload]],
) -> AudioSamplePayload:
    cached = cache.get(text)
    if cached is not None:
        return cached
    payload = await synthesize(text)
    cache.put(text, payload)
    return payload
