"""VOX pipeline package for voxbank.

Word generation, in-flight coalescing, progress reporting and the
orchestrating VoxPipeline. Only errors and progress types are imported
eagerly; heavier modules load on first attribute access.
"""

from .errors import (
    ArchiveError,
    ConcatenationError,
    FilterError,
    TTSAPIError,
    TTSAuthError,
    TTSError,
    ValidationError,
    VoxError,
    ZeroMatchError,
)
from .progress import PipelineStage, ProgressEvent, QueueProgress

__all__ = [
    "ArchiveError",
    "ConcatenationError",
    "ConcurrentGenerator",
    "FilterError",
    "GenerationResult",
    "GenerationStatus",
    "PipelineStage",
    "ProgressEvent",
    "QueueProgress",
    "SynthesisResult",
    "TTSAPIError",
    "TTSAuthError",
    "TTSError",
    "ValidationError",
    "VoxError",
    "VoxPipeline",
    "ZeroMatchError",
]

_LAZY = {
    "ConcurrentGenerator": ".generator",
    "GenerationResult": ".generator",
    "GenerationStatus": ".generator",
    "SynthesisResult": ".pipeline",
    "VoxPipeline": ".pipeline",
}


def __getattr__(name: str):
    if name in _LAZY:
        import importlib

        return getattr(importlib.import_module(_LAZY[name], __name__), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
