"""High-level API for voxbank library usage."""

from pathlib import Path

from .audio.filters import FilterSpec, parse_filter_spec
from .cache.manager import WordBankCache
from .config import VoxConfig
from .core import create_pipeline
from .tts.pipeline import SynthesisResult
from .tts.progress import ProgressCallback

DEFAULT_SCOPE = "default"


async def synthesize(
    text: str,
    voice: str,
    scope: str = DEFAULT_SCOPE,
    provider: str = "elevenlabs",
    filter_spec: str | FilterSpec = "off",
    word_gap_ms: int | None = None,
    generate_missing: bool = True,
    cache: WordBankCache | None = None,
    cache_dir: str | Path | None = None,
    progress: ProgressCallback | None = None,
    vox: VoxConfig | None = None,
) -> SynthesisResult:
    """Build an announcement buffer from the word bank.

    Args:
        text: Announcement text
        voice: Voice ID every word is spoken in
        scope: Word bank scope
        provider: Provider for words missing from the word bank
        filter_spec: Preset name or FilterSpec
        word_gap_ms: Silence between words (20-200)
        generate_missing: Synthesize missing words instead of skipping them
        cache: Shared word bank (created from cache_dir when omitted)
        cache_dir: Word bank directory (defaults to ~/.cache/voxbank)
        progress: Optional progress callback
        vox: Pipeline settings

    Returns:
        SynthesisResult; check ``success`` and ``error``

    Raises:
        KeyError: If provider not found
        TTSAuthError: If the provider cannot authenticate
        ValueError: If the filter preset name is unknown
    """
    if isinstance(filter_spec, str):
        filter_spec = parse_filter_spec(filter_spec)
    pipeline = create_pipeline(
        provider if generate_missing else None,
        vox,
        cache=cache,
        cache_dir=Path(cache_dir) if cache_dir else None,
    )
    return await pipeline.synthesize(
        text,
        voice_id=voice,
        scope_id=scope,
        filter_spec=filter_spec,
        word_gap_ms=word_gap_ms,
        progress=progress,
        generate_missing=generate_missing,
    )
