"""Word bank cache for voxbank clips."""

import os
from pathlib import Path


def get_cache_dir() -> Path:
    """Get or create the voxbank cache directory.

    Uses $VOXBANK_CACHE_DIR when set, otherwise ~/.cache/voxbank/, and
    creates the audio/ subdirectory for clip payloads.

    Returns:
        Path to the cache directory
    """
    override = os.getenv("VOXBANK_CACHE_DIR")
    cache_dir = Path(override) if override else Path.home() / ".cache" / "voxbank"
    cache_dir.mkdir(parents=True, exist_ok=True)

    # Create audio subdirectory for clip files
    audio_dir = cache_dir / "audio"
    audio_dir.mkdir(exist_ok=True)

    return cache_dir
