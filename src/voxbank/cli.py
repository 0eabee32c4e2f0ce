"""Typer CLI definition for voxbank."""

import asyncio
import logging
import sys
from pathlib import Path

import typer

from .cache.manager import WordBankCache
from .cache.models import CacheKey
from .config import VoxbankConfig, load_config
from .core import announce, create_pipeline, list_available_voices
from .tts.errors import TTSAPIError, TTSAuthError, VoxError

app = typer.Typer(help="Assemble spoken announcements from a cached word bank")

DebugOption = typer.Option(False, "--debug", help="Show verbose errors and pipeline activity")
ScopeOption = typer.Option(None, "-s", "--scope", help="Word bank scope (from config if omitted)")
VoiceOption = typer.Option(None, "-v", "--voice", help="Voice ID (from config if omitted)")


def _setup(debug: bool) -> VoxbankConfig:
    """Configure logging for debug mode and load configuration."""
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
    return load_config()


def _fail(debug: bool, message: str, error: BaseException) -> None:
    if debug:
        typer.echo(f"Debug - {message}: {error!r}", err=True)
    else:
        typer.echo(f"Error: {message}: {error}", err=True)
    raise typer.Exit(1) from None


def _read_text(text: str | None, file: Path | None, debug: bool) -> str:
    """Get text from argument, file, or stdin (in priority order)."""
    if text is not None:
        return text
    if file:
        try:
            return file.read_text()
        except (OSError, UnicodeDecodeError) as e:
            _fail(debug, f"Unable to read {file}", e)
    if not sys.stdin.isatty():
        return sys.stdin.read().strip()
    typer.echo("Error: No text provided", err=True)
    raise typer.Exit(1)


def _cache(config: VoxbankConfig) -> WordBankCache:
    return WordBankCache(config.cache.dir)


@app.command()
def say(
    text: str | None = typer.Argument(None, help="Announcement text"),
    file: Path | None = typer.Option(None, "-f", "--file", help="Read text from file"),
    output: Path | None = typer.Option(
        None, "-o", "--output", help="Save to .wav or raw .pcm instead of playing"
    ),
    voice: str | None = VoiceOption,
    scope: str | None = ScopeOption,
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="Provider for missing words (from config if omitted)"
    ),
    filter_name: str | None = typer.Option(
        None, "--filter", help="Filter preset: off, light or heavy"
    ),
    gap: int | None = typer.Option(None, "--gap", help="Silence between words in ms (20-200)"),
    cached_only: bool = typer.Option(
        False, "--cached-only", help="Skip words not already in the word bank"
    ),
    debug: bool = DebugOption,
) -> None:
    """Synthesize an announcement and play or save it."""
    config = _setup(debug)
    message = _read_text(text, file, debug)

    try:
        result = asyncio.run(
            announce(
                message,
                voice_id=voice or config.tts.voice,
                scope_id=scope or config.cache.scope,
                provider=provider or config.tts.provider,
                output_file=output,
                filter_name=filter_name,
                word_gap_ms=gap,
                generate_missing=False if cached_only else None,
                vox=config.vox,
                cache_dir=config.cache.dir,
            )
        )
    except VoxError as e:
        _fail(debug, f"Announcement failed ({e.kind})", e)
    except TTSAuthError as e:
        _fail(debug, "Authentication failed", e)
    except (TTSAPIError, KeyError, ValueError, RuntimeError, OSError) as e:
        _fail(debug, "Announcement failed", e)

    if result.skipped_words:
        typer.echo(f"Skipped: {', '.join(result.skipped_words)}", err=True)
    if output:
        typer.echo(f"Saved {result.duration_estimate:.2f}s to {output}")


@app.command()
def preview(
    text: str | None = typer.Argument(None, help="Announcement text"),
    file: Path | None = typer.Option(None, "-f", "--file", help="Read text from file"),
    voice: str | None = VoiceOption,
    scope: str | None = ScopeOption,
    gap: int | None = typer.Option(None, "--gap", help="Silence between words in ms (20-200)"),
    debug: bool = DebugOption,
) -> None:
    """Show which words are in the word bank and the expected duration."""
    config = _setup(debug)
    message = _read_text(text, file, debug)

    async def _preview():
        pipeline = create_pipeline(None, config.vox, cache=_cache(config))
        return await pipeline.preview(
            message, voice or config.tts.voice, scope or config.cache.scope, gap
        )

    try:
        result = asyncio.run(_preview())
    except (VoxError, RuntimeError) as e:
        _fail(debug, "Preview failed", e)

    for status in result.tokens:
        if status.token.is_word:
            mark = "✓" if status.available else "✗"
            typer.echo(f"{mark} {status.token.word} ({status.duration_seconds:.2f}s)")
        else:
            typer.echo(f"  [{status.token.word} {status.token.pause_duration_ms}ms]")
    for invalid in result.invalid_words:
        typer.echo(f"! {invalid.word}: {invalid.reason}")
    typer.echo(
        f"\n{result.matched_count} available, {len(result.missing_words)} missing, "
        f"~{result.estimated_duration:.2f}s"
    )


@app.command()
def clips(
    query: str | None = typer.Argument(None, help="Search for words containing this text"),
    voice: str | None = VoiceOption,
    scope: str | None = ScopeOption,
    limit: int = typer.Option(25, "--limit", help="Maximum search results"),
    debug: bool = DebugOption,
) -> None:
    """List or search the clips in a word bank."""
    config = _setup(debug)
    scope_id = scope or config.cache.scope
    voice_id = voice or config.tts.voice

    try:
        cache = _cache(config)
        if query:
            found = asyncio.run(cache.search(scope_id, voice_id, query, limit))
        else:
            found = asyncio.run(cache.list_clips(scope_id, voice_id))
    except RuntimeError as e:
        _fail(debug, "Failed to read word bank", e)

    for info in found:
        typer.echo(f"{info.key.word}\t{info.duration_seconds:.2f}s\t{info.size_bytes} bytes")
    typer.echo(f"{len(found)} clips", err=True)


@app.command()
def stats(scope: str | None = ScopeOption, debug: bool = DebugOption) -> None:
    """Show word count, size and voices of a word bank scope."""
    config = _setup(debug)
    scope_id = scope or config.cache.scope

    try:
        result = asyncio.run(_cache(config).stats(scope_id))
    except RuntimeError as e:
        _fail(debug, "Failed to read word bank", e)

    typer.echo(f"=== Word bank: {scope_id} ===")
    typer.echo(f"Words: {result.total_words}")
    typer.echo(f"Size: {result.total_bytes / 1_048_576:.2f} MiB")
    typer.echo(f"Voices: {', '.join(result.voices_used) or 'none'}")


@app.command()
def purge(
    word: str | None = typer.Argument(None, help="Remove only this word"),
    voice: str | None = typer.Option(None, "-v", "--voice", help="Restrict to one voice"),
    scope: str | None = ScopeOption,
    yes: bool = typer.Option(False, "-y", "--yes", help="Do not ask for confirmation"),
    debug: bool = DebugOption,
) -> None:
    """Remove clips: one word, one voice, or the whole scope."""
    config = _setup(debug)
    scope_id = scope or config.cache.scope
    cache = _cache(config)

    if word:
        key = CacheKey(scope_id=scope_id, word=word.lower(), voice_id=voice or config.tts.voice)
        removed = 1 if asyncio.run(cache.delete(key)) else 0
    else:
        target = f"voice {voice} in scope {scope_id}" if voice else f"scope {scope_id}"
        if not yes:
            typer.confirm(f"Remove all clips for {target}?", abort=True)
        removed = asyncio.run(cache.purge(scope_id, voice))

    typer.echo(f"Removed {removed} clips")


@app.command("export")
def export_command(
    output: Path = typer.Argument(..., help="Archive file to write (.zip)"),
    voice: str | None = typer.Option(None, "-v", "--voice", help="Export only this voice"),
    scope: str | None = ScopeOption,
    debug: bool = DebugOption,
) -> None:
    """Export a word bank scope as a ZIP archive."""
    config = _setup(debug)
    scope_id = scope or config.cache.scope

    try:
        data = asyncio.run(_cache(config).export(scope_id, voice))
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(data)
    except (RuntimeError, OSError) as e:
        _fail(debug, "Export failed", e)

    typer.echo(f"Exported {len(data)} bytes to {output}")


@app.command("import")
def import_command(
    archive: Path = typer.Argument(..., help="Archive file to import"),
    voice: str | None = typer.Option(
        None, "-v", "--voice", help="Store all clips under this voice"
    ),
    scope: str | None = ScopeOption,
    debug: bool = DebugOption,
) -> None:
    """Import clips from a ZIP archive into a scope."""
    config = _setup(debug)
    scope_id = scope or config.cache.scope

    try:
        report = asyncio.run(_cache(config).import_archive(scope_id, archive, voice))
    except (VoxError, RuntimeError) as e:
        _fail(debug, "Import failed", e)

    typer.echo(
        f"Imported {report.imported} clips into {scope_id} "
        f"({report.overwritten} overwritten, {len(report.rejected)} rejected)"
    )
    for rejected in report.rejected:
        typer.echo(f"  rejected {rejected.word or '?'} ({rejected.voice_id}): {rejected.reason}")


@app.command()
def voices(
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="Provider to list (from config if omitted)"
    ),
    debug: bool = DebugOption,
) -> None:
    """List available voices."""
    config = _setup(debug)
    try:
        asyncio.run(list_available_voices(provider or config.tts.provider))
    except Exception as e:
        _fail(debug, "Failed to list voices", e)
