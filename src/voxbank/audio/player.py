"""Local playback and file output for assembled announcements."""

# ruff: noqa: E402
import os

# Suppress pygame's welcome message BEFORE any pygame import
os.environ["PYGAME_HIDE_SUPPORT_PROMPT"] = "1"

import warnings

# Suppress pygame's pkg_resources deprecation warning spam
warnings.filterwarnings("ignore", category=UserWarning, module="pygame.pkgdata")

import asyncio
import io
from pathlib import Path

import numpy as np
import pygame
import soundfile as sf

from .format import PCM_FORMAT, PCMFormat


def pcm_to_wav(pcm: bytes, fmt: PCMFormat = PCM_FORMAT) -> bytes:
    """Wrap raw PCM in a 16-bit WAV container."""
    frames = np.frombuffer(pcm, dtype=fmt.sample_dtype).reshape(-1, fmt.channels)
    buffer = io.BytesIO()
    sf.write(buffer, frames, fmt.sample_rate_hz, format="WAV", subtype="PCM_16")
    return buffer.getvalue()


def save_pcm(pcm: bytes, filepath: str | Path, fmt: PCMFormat = PCM_FORMAT) -> Path:
    """Save a PCM buffer to disk.

    A .wav suffix writes a WAV container; anything else writes the raw
    PCM bytes unchanged.

    Raises:
        ValueError: If no audio data provided.
        OSError: If file cannot be written.
    """
    if not pcm:
        raise ValueError("No audio data provided")

    filepath = Path(filepath)
    data = pcm_to_wav(pcm, fmt) if filepath.suffix.lower() == ".wav" else pcm

    try:
        # Create parent directories if they don't exist
        filepath.parent.mkdir(parents=True, exist_ok=True)
        filepath.write_bytes(data)
    except OSError as e:
        raise OSError(f"Failed to save audio to {filepath}: {e}") from e

    return filepath


class AudioPlayer:
    """Plays announcement buffers through pygame's mixer.

    Buffers are raw PCM in the system format; they are wrapped as WAV
    before being handed to the mixer.
    """

    def __init__(self, fmt: PCMFormat = PCM_FORMAT) -> None:
        """Initialize the mixer for the system PCM format.

        Raises:
            RuntimeError: If pygame mixer fails to initialize.
        """
        self.fmt = fmt
        try:
            pygame.mixer.init(frequency=fmt.sample_rate_hz, size=-16, channels=fmt.channels)
        except pygame.error as e:
            raise RuntimeError(f"Failed to initialize pygame audio mixer: {e}") from e

    def play_pcm(self, pcm: bytes) -> None:
        """Play a PCM buffer through system speakers (blocking).

        Raises:
            ValueError: If the buffer is empty.
            RuntimeError: If audio playback fails.
        """
        if not pcm:
            raise ValueError("No audio data provided")

        try:
            pygame.mixer.music.load(io.BytesIO(pcm_to_wav(pcm, self.fmt)))
            pygame.mixer.music.play()

            # Wait for playback to complete
            while pygame.mixer.music.get_busy():
                pygame.time.Clock().tick(10)

        except pygame.error as e:
            raise RuntimeError(f"Failed to play audio: {e}") from e

    async def play_pcm_async(self, pcm: bytes) -> None:
        """Play a PCM buffer without blocking the event loop."""
        if not pcm:
            raise ValueError("No audio data provided")

        # Run pygame operations in thread to avoid blocking event loop
        await asyncio.to_thread(self.play_pcm, pcm)
