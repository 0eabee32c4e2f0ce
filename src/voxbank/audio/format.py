"""Fixed PCM format shared by every clip and assembled buffer.

All audio handled by voxbank is raw signed 16-bit little-endian PCM at
48 kHz with two interleaved channels. Clips in any other format are
converted on the way into the word bank (see ``decode.py``), so nothing
downstream ever has to reconcile mixed formats.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class PCMFormat:
    """Description of a raw PCM layout.

    Attributes:
        sample_rate_hz: Frames per second
        bytes_per_sample: Width of one sample for one channel
        channels: Interleaved channel count
    """

    sample_rate_hz: int
    bytes_per_sample: int
    channels: int

    @property
    def frame_bytes(self) -> int:
        """Bytes in one frame (one sample for every channel)."""
        return self.bytes_per_sample * self.channels

    @property
    def bytes_per_second(self) -> int:
        return self.sample_rate_hz * self.frame_bytes

    @property
    def sample_dtype(self) -> str:
        """numpy dtype string for one sample."""
        return f"<i{self.bytes_per_sample}"

    def silence_bytes(self, duration_ms: int) -> int:
        """Number of zero bytes needed for ``duration_ms`` of silence.

        Computed as ``duration_ms * sample_rate * bytes_per_sample * channels / 1000``.
        For the system format this is exactly ``duration_ms * 192``.

        Raises:
            ValueError: If duration_ms is negative
        """
        if duration_ms < 0:
            raise ValueError(f"duration_ms must be non-negative, got {duration_ms}")
        return (
            duration_ms
            * self.sample_rate_hz
            * self.bytes_per_sample
            * self.channels
            // 1000
        )

    def silence(self, duration_ms: int) -> bytes:
        """Zero-amplitude audio lasting ``duration_ms``."""
        return bytes(self.silence_bytes(duration_ms))

    def duration_seconds(self, size_bytes: int) -> float:
        return size_bytes / self.bytes_per_second

    def is_aligned(self, size_bytes: int) -> bool:
        """Whether a byte count holds a whole number of frames."""
        return size_bytes % self.frame_bytes == 0


# 48kHz, 16-bit, stereo
PCM_FORMAT = PCMFormat(sample_rate_hz=48000, bytes_per_sample=2, channels=2)
