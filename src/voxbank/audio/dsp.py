"""Default radio-style effects chain built on numpy and scipy.signal."""

import logging
from typing import TYPE_CHECKING

import numpy as np
from scipy import signal

if TYPE_CHECKING:
    from .filters import CustomFilterSettings

logger = logging.getLogger(__name__)

FILTER_ORDER = 4
COMPRESSOR_THRESHOLD_DB = -20.0


class EffectsChain:
    """Highpass, lowpass, static compressor and tanh distortion, in that order.

    Every stage preserves the frame count, so the filtered buffer has the
    same length as the input.
    """

    def process(
        self, samples: np.ndarray, sample_rate: int, settings: "CustomFilterSettings"
    ) -> np.ndarray:
        """Run the chain over float frames shaped (frames, channels)."""
        nyquist = sample_rate / 2
        out = samples.astype(np.float64)

        if settings.highpass_hz > 0:
            sos = signal.butter(
                FILTER_ORDER, settings.highpass_hz, btype="highpass", fs=sample_rate, output="sos"
            )
            out = signal.sosfilt(sos, out, axis=0)

        if settings.lowpass_hz < nyquist:
            sos = signal.butter(
                FILTER_ORDER, settings.lowpass_hz, btype="lowpass", fs=sample_rate, output="sos"
            )
            out = signal.sosfilt(sos, out, axis=0)

        if settings.compression_ratio > 1.0:
            out = compress(out, settings.compression_ratio)

        if settings.distortion > 0:
            out = distort(out, settings.distortion)

        logger.debug(
            f"Effects chain applied: hp={settings.highpass_hz}Hz lp={settings.lowpass_hz}Hz "
            f"ratio={settings.compression_ratio} drive={settings.distortion}"
        )
        return np.clip(out, -1.0, 1.0).astype(np.float32)


def compress(
    samples: np.ndarray, ratio: float, threshold_db: float = COMPRESSOR_THRESHOLD_DB
) -> np.ndarray:
    """Static per-sample compressor: levels above the threshold are scaled by 1/ratio in dB."""
    threshold = 10 ** (threshold_db / 20.0)
    level = np.abs(samples)
    over = level > threshold
    gain = np.ones_like(samples)
    gain[over] = (threshold * (level[over] / threshold) ** (1.0 / ratio)) / level[over]
    return samples * gain


def distort(samples: np.ndarray, amount: float) -> np.ndarray:
    """Blend in tanh saturation; amount 0 is clean, 1 is fully driven."""
    drive = 1.0 + amount * 9.0
    saturated = np.tanh(samples * drive) / np.tanh(drive)
    return (1.0 - amount) * samples + amount * saturated
