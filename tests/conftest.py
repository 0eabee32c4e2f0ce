"""Pytest configuration and fixtures for voxbank tests."""

import asyncio
import io
import sys
import tempfile
from collections.abc import Generator
from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voxbank.audio.format import PCM_FORMAT
from voxbank.cache.manager import WordBankCache
from voxbank.cache.models import CacheKey, WordClip
from voxbank.providers.base import TTSProvider


def make_pcm(seconds: float, fill: int = 0) -> bytes:
    """Frame-aligned PCM of the given length, every byte set to ``fill``."""
    frames = round(seconds * PCM_FORMAT.sample_rate_hz)
    return bytes([fill]) * (frames * PCM_FORMAT.frame_bytes)


def fill_for(word: str) -> int:
    """Distinct non-zero byte per word so clips can be located in a buffer."""
    return sum(word.encode()) % 250 + 1


class FakeProvider(TTSProvider):
    """In-memory provider returning raw PCM.

    Pair it with an identity decoder. Records every call and the peak
    number of overlapping calls.
    """

    name = "fake"

    def __init__(
        self,
        durations: dict[str, float] | None = None,
        default_duration: float = 0.1,
        delay: float = 0.0,
        failures: dict[str, Exception] | None = None,
    ) -> None:
        self.durations = durations or {}
        self.default_duration = default_duration
        self.delay = delay
        self.failures = failures or {}
        self.calls: list[tuple[str, str]] = []
        self.active = 0
        self.max_active = 0

    async def synthesize(self, text: str, voice: str) -> bytes:
        self.calls.append((text, voice))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if text in self.failures:
                raise self.failures[text]
            duration = self.durations.get(text, self.default_duration)
            return make_pcm(duration, fill_for(text))
        finally:
            self.active -= 1

    async def list_voices(self) -> list[dict]:
        return [{"id": "fake-voice", "name": "Fake Voice", "provider": self.name}]

    def call_count(self, word: str) -> int:
        return sum(1 for text, _ in self.calls if text == word)


def make_wav(
    seconds: float, sample_rate: int = 48000, channels: int = 2, freq: float = 440.0
) -> bytes:
    """Sine tone encoded as a 16-bit WAV file."""
    t = np.arange(round(seconds * sample_rate)) / sample_rate
    tone = 0.3 * np.sin(2 * np.pi * freq * t)
    frames = np.repeat(tone[:, None], channels, axis=1)
    buffer = io.BytesIO()
    sf.write(buffer, frames, sample_rate, format="WAV", subtype="PCM_16")
    return buffer.getvalue()


class WavProvider(FakeProvider):
    """FakeProvider that returns WAV files, for use with the real decoder."""

    name = "fake-wav"

    def __init__(self, sample_rate: int = 48000, channels: int = 2, **kwargs) -> None:
        super().__init__(**kwargs)
        self.sample_rate = sample_rate
        self.channels = channels

    async def synthesize(self, text: str, voice: str) -> bytes:
        await super().synthesize(text, voice)
        duration = self.durations.get(text, self.default_duration)
        return make_wav(duration, self.sample_rate, self.channels)


def identity_decoder(data: bytes) -> bytes:
    return data


async def seed(
    cache: WordBankCache,
    durations: dict[str, float],
    scope_id: str = "test-scope",
    voice_id: str = "fake-voice",
) -> None:
    """Store clips for words directly in the word bank."""
    for word, seconds in durations.items():
        key = CacheKey(scope_id=scope_id, word=word, voice_id=voice_id)
        await cache.put(WordClip.from_pcm(key, make_pcm(seconds, fill_for(word))))


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch) -> Generator[Path]:
    """Point cache and config at a throwaway directory and reset shared state."""
    import voxbank.config as config_module
    from voxbank.providers import ProviderRegistry

    with tempfile.TemporaryDirectory() as temp_dir:
        home = Path(temp_dir)
        monkeypatch.setenv("VOXBANK_CACHE_DIR", str(home / "cache"))
        for name in ("VOXBANK_PROVIDER", "VOXBANK_VOICE", "VOXBANK_SCOPE", "VOXBANK_CONCURRENCY"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setattr(config_module, "CONFIG_PATH", home / "config" / "config.toml")
        monkeypatch.setattr(config_module, "_cached_config", None)
        ProviderRegistry.clear_instances()

        yield home

        ProviderRegistry.clear_instances()


@pytest.fixture
def cache() -> Generator[WordBankCache]:
    """Empty word bank in a temporary directory."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield WordBankCache(Path(temp_dir))


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
