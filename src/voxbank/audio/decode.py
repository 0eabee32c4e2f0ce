"""Decode provider audio into the canonical PCM format.

Providers return whatever container they produce (MP3 from ElevenLabs,
WAV from system engines); every clip in the word bank is raw 48 kHz
stereo s16le, so decoding, resampling and channel mapping happen once
at generation time.
"""

import io
import logging
from math import gcd

import numpy as np
import soundfile as sf
from scipy import signal

from .format import PCM_FORMAT, PCMFormat

logger = logging.getLogger(__name__)


def decode_to_pcm(audio_data: bytes, fmt: PCMFormat = PCM_FORMAT) -> bytes:
    """Decode an encoded audio payload to raw PCM bytes.

    Args:
        audio_data: Encoded audio (any container libsndfile reads: WAV, MP3, FLAC, OGG)
        fmt: Target PCM format

    Returns:
        Frame-aligned PCM bytes in the target format

    Raises:
        ValueError: If the payload is empty or cannot be decoded
    """
    if not audio_data:
        raise ValueError("No audio data provided")

    try:
        samples, sample_rate = sf.read(io.BytesIO(audio_data), dtype="float32", always_2d=True)
    except (RuntimeError, TypeError) as e:
        # soundfile.LibsndfileError derives from RuntimeError
        raise ValueError(f"Failed to decode provider audio: {e}") from e

    if samples.shape[0] == 0:
        raise ValueError("Decoded audio contains no samples")

    samples = _match_channels(samples, fmt.channels)

    if sample_rate != fmt.sample_rate_hz:
        divisor = gcd(sample_rate, fmt.sample_rate_hz)
        samples = signal.resample_poly(
            samples, fmt.sample_rate_hz // divisor, sample_rate // divisor, axis=0
        )
        logger.debug(f"Resampled audio from {sample_rate} Hz to {fmt.sample_rate_hz} Hz")

    return float_to_pcm(samples, fmt)


def _match_channels(samples: np.ndarray, channels: int) -> np.ndarray:
    if samples.shape[1] == channels:
        return samples
    # Mix down to mono, then spread across the target channels
    mono = samples.mean(axis=1, keepdims=True)
    return np.repeat(mono, channels, axis=1)


def pcm_to_float(pcm: bytes, fmt: PCMFormat = PCM_FORMAT) -> np.ndarray:
    """Convert PCM bytes to float32 frames in [-1, 1], shaped (frames, channels)."""
    samples = np.frombuffer(pcm, dtype=fmt.sample_dtype).astype(np.float32) / 32768.0
    return samples.reshape(-1, fmt.channels)


def float_to_pcm(samples: np.ndarray, fmt: PCMFormat = PCM_FORMAT) -> bytes:
    """Convert float frames in [-1, 1] to PCM bytes, clipping out-of-range values."""
    scaled = np.clip(samples, -1.0, 1.0) * 32767.0
    return np.round(scaled).astype(fmt.sample_dtype).tobytes()
