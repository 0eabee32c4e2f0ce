"""Audio package for voxbank.

PCM format math, decoding, concatenation, filtering and playback. The
pygame-backed AudioPlayer is imported lazily so headless use never
initializes pygame.
"""

from .format import PCM_FORMAT, PCMFormat

__all__ = ["PCM_FORMAT", "PCMFormat", "AudioPlayer"]


def __getattr__(name: str):
    if name == "AudioPlayer":
        from .player import AudioPlayer

        return AudioPlayer
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
