"""ZIP export and import of word bank clips.

An archive holds a manifest.json describing every clip plus one raw PCM
payload per clip under clips/. Imports validate every entry before any
clip is written, so a rejected entry never leaves the scope half-updated.
"""

import asyncio
import io
import json
import logging
import zipfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..audio.format import PCM_FORMAT
from ..text.tokenizer import validate_word
from ..tts.errors import ArchiveError
from .models import CacheKey, ImportReport, RejectedEntry, WordClip

if TYPE_CHECKING:
    from .manager import WordBankCache

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
MANIFEST_NAME = "manifest.json"


@dataclass(frozen=True)
class _PendingClip:
    clip: WordClip
    overwrite: bool


def _audio_format() -> dict[str, Any]:
    return {
        "encoding": "s16le",
        "sample_rate_hz": PCM_FORMAT.sample_rate_hz,
        "channels": PCM_FORMAT.channels,
    }


async def export_archive(
    cache: "WordBankCache", scope_id: str, voice_id: str | None = None
) -> bytes:
    """Build a ZIP archive of a scope's clips.

    Args:
        cache: Word bank to read from
        scope_id: Scope to export
        voice_id: Restrict the export to one voice

    Returns:
        Archive bytes
    """
    infos = await cache.list_clips(scope_id, voice_id)

    entries: list[dict[str, Any]] = []
    payloads: list[tuple[str, bytes]] = []
    for info in infos:
        clip = await cache.get(info.key)
        if clip is None:
            logger.warning(f"Skipping '{info.key.word}' in export: clip unreadable")
            continue

        file_name = f"clips/{len(payloads) + 1:05d}.pcm"
        payloads.append((file_name, clip.audio_bytes))
        entries.append(
            {
                "word": clip.key.word,
                "voice": clip.key.voice_id,
                "file": file_name,
                "size_bytes": clip.size_bytes,
                "duration_seconds": clip.duration_seconds,
                "created_at": clip.created_at.isoformat(),
            }
        )

    manifest = {
        "format_version": FORMAT_VERSION,
        "exported_at": datetime.now().isoformat(),
        "scope_id": scope_id,
        "voice_id": voice_id,
        "total_clips": len(entries),
        "total_size_bytes": sum(entry["size_bytes"] for entry in entries),
        "audio_format": _audio_format(),
        "clips": entries,
    }

    def _write() -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for file_name, data in payloads:
                archive.writestr(file_name, data)
            archive.writestr(MANIFEST_NAME, json.dumps(manifest, indent=2))
        return buffer.getvalue()

    data = await asyncio.to_thread(_write)
    logger.info(
        f"Exported {len(entries)} clips from scope {scope_id} ({len(data)} bytes)"
    )
    return data


def _read_archive(archive: bytes | Path) -> tuple[dict[str, Any], dict[str, bytes]]:
    """Open an archive and return its manifest plus the referenced payloads."""
    try:
        source = io.BytesIO(archive) if isinstance(archive, bytes) else archive
        with zipfile.ZipFile(source) as zf:
            try:
                manifest = json.loads(zf.read(MANIFEST_NAME))
            except KeyError:
                raise ArchiveError(f"Archive has no {MANIFEST_NAME}") from None

            if not isinstance(manifest, dict):
                raise ArchiveError("Manifest must be a JSON object")
            if manifest.get("format_version") != FORMAT_VERSION:
                raise ArchiveError(
                    f"Unsupported archive format version: {manifest.get('format_version')!r}"
                )
            if manifest.get("audio_format") != _audio_format():
                raise ArchiveError(
                    f"Unsupported audio format: {manifest.get('audio_format')!r}"
                )
            clips = manifest.get("clips")
            if not isinstance(clips, list):
                raise ArchiveError("Manifest 'clips' must be a list")
            _check_totals(manifest, clips)

            names = set(zf.namelist())
            payloads = {}
            for entry in clips:
                file_name = entry.get("file") if isinstance(entry, dict) else None
                if isinstance(file_name, str) and file_name in names:
                    payloads[file_name] = zf.read(file_name)
    except (zipfile.BadZipFile, json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ArchiveError(f"Invalid archive: {e}", e) from e
    except OSError as e:
        raise ArchiveError(f"Failed to read archive: {e}", e) from e

    return manifest, payloads


def _check_totals(manifest: dict[str, Any], clips: list[Any]) -> None:
    """Compare the manifest summary counts with its clip list, when present."""
    total_clips = manifest.get("total_clips")
    if total_clips is not None and total_clips != len(clips):
        raise ArchiveError(
            f"Manifest total_clips is {total_clips!r} but it lists {len(clips)} clips"
        )

    total_size = manifest.get("total_size_bytes")
    listed_size = sum(
        entry.get("size_bytes", 0)
        for entry in clips
        if isinstance(entry, dict) and isinstance(entry.get("size_bytes"), int)
    )
    if total_size is not None and total_size != listed_size:
        raise ArchiveError(
            f"Manifest total_size_bytes is {total_size!r} but its clips sum to {listed_size}"
        )


def _validate_entry(
    entry: Any, scope_id: str, voice_id: str | None, payloads: dict[str, bytes]
) -> WordClip | RejectedEntry:
    if not isinstance(entry, dict):
        return RejectedEntry(word="", voice_id=voice_id or "", reason="entry is not an object")

    word = str(entry.get("word", "")).strip().lower()
    voice = voice_id or str(entry.get("voice", "")).strip()

    if not voice:
        return RejectedEntry(word=word, voice_id=voice, reason="missing voice")
    reason = validate_word(word) if word else "missing word"
    if reason is not None:
        return RejectedEntry(word=word, voice_id=voice, reason=reason)

    file_name = entry.get("file")
    data = payloads.get(file_name) if isinstance(file_name, str) else None
    if data is None:
        return RejectedEntry(word=word, voice_id=voice, reason="payload missing from archive")
    if entry.get("size_bytes") != len(data):
        return RejectedEntry(
            word=word,
            voice_id=voice,
            reason=f"size mismatch: manifest {entry.get('size_bytes')}, payload {len(data)}",
        )

    created_at = None
    if entry.get("created_at"):
        try:
            created_at = datetime.fromisoformat(entry["created_at"])
        except (TypeError, ValueError):
            return RejectedEntry(word=word, voice_id=voice, reason="invalid created_at")

    try:
        clip = WordClip.from_pcm(
            CacheKey(scope_id=scope_id, word=word, voice_id=voice), data, created_at
        )
    except ValueError as e:
        return RejectedEntry(word=word, voice_id=voice, reason=str(e))

    # Listed durations may be rounded, but never by more than one frame
    duration = entry.get("duration_seconds")
    if duration is not None:
        if isinstance(duration, bool) or not isinstance(duration, (int, float)):
            return RejectedEntry(word=word, voice_id=voice, reason="invalid duration_seconds")
        if abs(duration - clip.duration_seconds) > 1 / PCM_FORMAT.sample_rate_hz:
            return RejectedEntry(
                word=word,
                voice_id=voice,
                reason=(
                    f"duration mismatch: manifest {duration}s, "
                    f"payload {clip.duration_seconds}s"
                ),
            )
    return clip


async def import_archive(
    cache: "WordBankCache",
    scope_id: str,
    archive: bytes | Path,
    voice_id: str | None = None,
) -> ImportReport:
    """Load an archive's clips into a scope.

    Manifest totals must agree with the clip list. Every entry is validated
    first (word, payload presence, size, frame alignment and duration); only
    then are the valid entries written. Existing clips with the same key are
    overwritten. Duplicate entries keep the last one.

    Args:
        cache: Word bank to write into
        scope_id: Destination scope
        archive: Archive bytes or path
        voice_id: Store every clip under this voice instead of the manifest's

    Returns:
        ImportReport with counts and rejected entries

    Raises:
        ArchiveError: If the archive or its manifest cannot be used at all
    """
    manifest, payloads = await asyncio.to_thread(_read_archive, archive)
    report = ImportReport(scope_id=scope_id)

    # Validation phase: nothing is written until every entry has been checked
    valid: dict[CacheKey, WordClip] = {}
    for entry in manifest["clips"]:
        outcome = _validate_entry(entry, scope_id, voice_id, payloads)
        if isinstance(outcome, RejectedEntry):
            logger.warning(
                f"Rejected archive entry '{outcome.word}' ({outcome.voice_id}): {outcome.reason}"
            )
            report.rejected.append(outcome)
        else:
            valid[outcome.key] = outcome

    pending = [
        _PendingClip(clip=clip, overwrite=await cache.get_info(key) is not None)
        for key, clip in valid.items()
    ]

    # Commit phase
    for item in pending:
        await cache.put(item.clip)
        report.imported += 1
        if item.overwrite:
            report.overwritten += 1

    logger.info(
        f"Imported {report.imported} clips into scope {scope_id} "
        f"({report.overwritten} overwritten, {len(report.rejected)} rejected)"
    )
    return report
