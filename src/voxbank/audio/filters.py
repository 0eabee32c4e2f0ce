"""Post-processing filters applied to an assembled announcement."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import numpy as np

from ..tts.errors import FilterError
from .decode import float_to_pcm, pcm_to_float
from .dsp import EffectsChain
from .format import PCM_FORMAT, PCMFormat

logger = logging.getLogger(__name__)

MAX_FILTER_HZ = PCM_FORMAT.sample_rate_hz / 2


class FilterPreset(str, Enum):
    """Named filter settings."""

    OFF = "off"
    LIGHT = "light"
    HEAVY = "heavy"


@dataclass(frozen=True)
class CustomFilterSettings:
    """Explicit filter parameters.

    Attributes:
        highpass_hz: Highpass cutoff, 0 disables the stage
        lowpass_hz: Lowpass cutoff, Nyquist disables the stage
        compression_ratio: Compressor ratio, 1.0 disables the stage
        distortion: Saturation amount between 0 and 1
    """

    highpass_hz: float
    lowpass_hz: float
    compression_ratio: float = 1.0
    distortion: float = 0.0

    def __post_init__(self) -> None:
        """Validate filter parameters."""
        if not 0 <= self.highpass_hz < self.lowpass_hz <= MAX_FILTER_HZ:
            raise ValueError(
                f"Filter cutoffs must satisfy 0 <= highpass < lowpass <= {MAX_FILTER_HZ:g} Hz, "
                f"got highpass={self.highpass_hz}, lowpass={self.lowpass_hz}"
            )
        if self.compression_ratio < 1.0:
            raise ValueError("compression_ratio must be at least 1.0")
        if not 0.0 <= self.distortion <= 1.0:
            raise ValueError("distortion must be between 0 and 1")


FilterSpec = FilterPreset | CustomFilterSettings

PRESETS: dict[FilterPreset, CustomFilterSettings] = {
    FilterPreset.LIGHT: CustomFilterSettings(
        highpass_hz=300, lowpass_hz=3400, compression_ratio=2.0, distortion=0.1
    ),
    FilterPreset.HEAVY: CustomFilterSettings(
        highpass_hz=500, lowpass_hz=2500, compression_ratio=4.0, distortion=0.35
    ),
}


class AudioProcessor(Protocol):
    """DSP backend that transforms float frames shaped (frames, channels)."""

    def process(
        self, samples: np.ndarray, sample_rate: int, settings: CustomFilterSettings
    ) -> np.ndarray: ...


def parse_filter_spec(value: str) -> FilterPreset:
    """Resolve a preset name such as "light" (case-insensitive)."""
    try:
        return FilterPreset(value.strip().lower())
    except ValueError:
        choices = ", ".join(preset.value for preset in FilterPreset)
        raise ValueError(f"Unknown filter preset '{value}'. Choose from: {choices}") from None


class FilterEngine:
    """Applies a FilterSpec to a PCM buffer through an AudioProcessor."""

    def __init__(
        self, processor: AudioProcessor | None = None, fmt: PCMFormat = PCM_FORMAT
    ) -> None:
        self.processor = processor or EffectsChain()
        self.fmt = fmt

    @staticmethod
    def resolve(spec: FilterSpec) -> CustomFilterSettings | None:
        """Map a spec to concrete settings; None means passthrough."""
        if isinstance(spec, CustomFilterSettings):
            return spec
        preset = FilterPreset(spec)
        if preset is FilterPreset.OFF:
            return None
        return PRESETS[preset]

    def apply(self, buffer: bytes, spec: FilterSpec) -> bytes:
        """Filter a PCM buffer.

        Args:
            buffer: PCM bytes in the system format
            spec: Preset or custom settings

        Returns:
            Filtered PCM bytes of the same length; the input itself for OFF

        Raises:
            FilterError: If the buffer is malformed or the DSP chain fails
        """
        settings = self.resolve(spec)
        if settings is None or not buffer:
            return buffer

        if not self.fmt.is_aligned(len(buffer)):
            raise FilterError(
                f"Buffer of {len(buffer)} bytes is not aligned to "
                f"{self.fmt.frame_bytes}-byte frames"
            )

        try:
            samples = pcm_to_float(buffer, self.fmt)
            processed = np.asarray(
                self.processor.process(samples, self.fmt.sample_rate_hz, settings)
            )
        except Exception as e:
            raise FilterError(f"Filter processing failed: {e}", e) from e

        if processed.shape != samples.shape:
            raise FilterError(
                f"Filter changed frame layout from {samples.shape} to {processed.shape}"
            )
        if not np.all(np.isfinite(processed)):
            raise FilterError("Filter produced non-finite samples")

        output = float_to_pcm(processed, self.fmt)
        logger.info(f"VOX_FILTER_APPLIED: {spec!r} over {len(buffer)} bytes")
        return output
