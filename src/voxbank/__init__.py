"""voxbank - word-bank announcement synthesis from cached voice clips."""

__version__ = "0.1.0"
__all__ = ["synthesize"]


def __getattr__(name: str):  # type: ignore[no-untyped-def]
    if name == "synthesize":
        from .api import synthesize

        return synthesize
    raise AttributeError(f"module 'voxbank' has no attribute {name!r}")
