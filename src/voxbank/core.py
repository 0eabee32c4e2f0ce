"""Core functionality for voxbank: builds pipelines and runs announcements."""

import logging
from pathlib import Path

from .audio.filters import FilterEngine, parse_filter_spec
from .cache.manager import WordBankCache
from .config import VoxConfig
from .providers import ProviderRegistry
from .text.tokenizer import Tokenizer, TokenizerOptions
from .tts.errors import TTSAPIError, TTSAuthError
from .tts.pipeline import SynthesisResult, VoxPipeline
from .tts.progress import ProgressCallback

logger = logging.getLogger(__name__)


async def list_available_voices(provider: str = "elevenlabs") -> None:
    """Print a provider's voices in "Name: voice_id" format.

    Raises:
        TTSAuthError: If API key is not configured
        TTSAPIError: If API call fails
        KeyError: If provider not found
    """
    try:
        provider_instance = ProviderRegistry.get_instance(provider)
        voices = await provider_instance.list_voices()
    except (TTSAuthError, TTSAPIError, KeyError):
        raise
    except Exception as e:
        raise TTSAPIError(f"Failed to list voices: {e}", None, e) from e

    for voice in voices:
        print(f"{voice['name']}: {voice['id']}")


def create_pipeline(
    provider: str | None,
    vox: VoxConfig | None = None,
    cache: WordBankCache | None = None,
    cache_dir: Path | None = None,
) -> VoxPipeline:
    """Build a VoxPipeline from configuration.

    Args:
        provider: Registered provider name, or None for a cache-only pipeline
        vox: Pipeline settings (defaults when omitted)
        cache: Existing word bank to share
        cache_dir: Word bank directory when no cache is given

    Raises:
        KeyError: If provider not found
        TTSAuthError: If the provider cannot authenticate
    """
    vox = vox or VoxConfig()
    tokenizer = Tokenizer(
        TokenizerOptions(
            max_word_length=vox.max_word_length,
            expand_numbers=vox.expand_numbers,
            contractions=vox.contractions,
        )
    )
    return VoxPipeline(
        cache or WordBankCache(cache_dir),
        ProviderRegistry.get_instance(provider) if provider else None,
        tokenizer=tokenizer,
        filter_engine=FilterEngine(),
        word_gap_ms=vox.word_gap_ms,
        pause_mode=vox.pause_mode,
        max_message_length=vox.max_message_length,
        max_words=vox.max_words,
        generate_missing=vox.generate_missing,
        max_concurrency=vox.concurrency,
        max_attempts=vox.max_attempts,
    )


async def announce(
    text: str,
    voice_id: str,
    scope_id: str,
    provider: str = "elevenlabs",
    output_file: str | Path | None = None,
    filter_name: str | None = None,
    word_gap_ms: int | None = None,
    generate_missing: bool | None = None,
    play: bool = True,
    vox: VoxConfig | None = None,
    cache_dir: Path | None = None,
    progress: ProgressCallback | None = None,
) -> SynthesisResult:
    """Synthesize an announcement, then save or play it.

    Args:
        text: Announcement text
        voice_id: Voice to speak in
        scope_id: Word bank scope
        provider: Provider name for missing words
        output_file: Save here instead of playing (.wav or raw .pcm)
        filter_name: Filter preset name, defaults to the configured one
        word_gap_ms: Silence between words
        generate_missing: Synthesize missing words (defaults to config)
        play: Play through speakers when no output file is given
        vox: Pipeline settings
        cache_dir: Word bank directory

    Returns:
        The successful SynthesisResult

    Raises:
        VoxError: The pipeline's fatal error, if it failed
        RuntimeError: If audio playback fails
        OSError: If file save fails
    """
    vox = vox or VoxConfig()
    generate = vox.generate_missing if generate_missing is None else generate_missing
    pipeline = create_pipeline(provider if generate else None, vox, cache_dir=cache_dir)
    filter_spec = parse_filter_spec(filter_name or vox.filter)

    result = await pipeline.synthesize(
        text,
        voice_id=voice_id,
        scope_id=scope_id,
        filter_spec=filter_spec,
        word_gap_ms=word_gap_ms,
        progress=progress,
        generate_missing=generate,
    )
    if not result.success:
        raise result.error

    if result.skipped_words:
        logger.warning(f"Skipped words: {', '.join(result.skipped_words)}")

    if output_file or play:
        # Imported here so headless synthesis never loads pygame
        from .audio.player import AudioPlayer, save_pcm

        if output_file:
            save_pcm(result.buffer, output_file)
        else:
            await AudioPlayer().play_pcm_async(result.buffer)

    return result
