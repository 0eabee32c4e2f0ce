"""Word bank cache manager.

Coordinates ClipStorage (SQLite metadata index) with one-file-per-clip
PCM payloads on disk. Exactly one clip exists per (scope, voice, word);
writers replace it atomically and readers never see a half-written file.
"""

import asyncio
import hashlib
import logging
import os
import uuid
from pathlib import Path

from . import get_cache_dir
from .models import CacheKey, CacheStats, ClipInfo, ImportReport, WordClip
from .storage import ClipStorage

logger = logging.getLogger(__name__)


class WordBankCache:
    """Persistent per-scope, per-voice store of synthesized word clips.

    Constructed once and shared by reference between pipelines; all disk
    work runs in worker threads so lookups and writes do not block the
    event loop.

    Example:
        cache = WordBankCache()
        key = CacheKey(scope_id="guild-1", word="alert", voice_id="rachel")

        clip = await cache.get(key)
        if clip is None:
            pcm = await synthesize_to_pcm("alert", "rachel")
            clip = await cache.put(WordClip.from_pcm(key, pcm))
    """

    def __init__(self, cache_dir: Path | None = None) -> None:
        """Initialize the word bank at a cache directory.

        Args:
            cache_dir: Directory for index and clip files (defaults to ~/.cache/voxbank)

        Raises:
            RuntimeError: If the index cannot be initialized
        """
        self.cache_dir = cache_dir or get_cache_dir()
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        self.audio_dir = self.cache_dir / "audio"
        self.audio_dir.mkdir(exist_ok=True)

        try:
            self.storage = ClipStorage(self.cache_dir)
        except Exception as e:
            raise RuntimeError(f"Failed to initialize word bank cache: {e}") from e

        logger.info(f"WordBankCache initialized at {self.cache_dir}")

    async def get(self, key: CacheKey) -> WordClip | None:
        """Look up a clip by key.

        Args:
            key: Cache key to look up

        Returns:
            The cached clip, or None on a miss. Rows whose payload is missing
            or has the wrong size are reported as misses.
        """
        return await asyncio.to_thread(self._get_sync, key)

    def _get_sync(self, key: CacheKey) -> WordClip | None:
        info = self.storage.get(key)
        if info is None:
            logger.debug(f"Cache miss: '{key.word}' ({key.scope_id}/{key.voice_id})")
            return None

        try:
            audio_bytes = info.audio_path.read_bytes()
        except FileNotFoundError:
            logger.warning(
                f"Cache corruption: metadata exists but audio file missing: {info.audio_path}"
            )
            return None

        if len(audio_bytes) != info.size_bytes:
            logger.warning(
                f"Cache corruption: {info.audio_path} is {len(audio_bytes)} bytes, "
                f"index says {info.size_bytes}"
            )
            return None

        logger.debug(f"Cache hit: '{key.word}' ({key.scope_id}/{key.voice_id})")
        return WordClip(
            key=info.key,
            audio_bytes=audio_bytes,
            duration_seconds=info.duration_seconds,
            size_bytes=info.size_bytes,
            created_at=info.created_at,
        )

    async def get_info(self, key: CacheKey) -> ClipInfo | None:
        """Look up clip metadata without reading the audio payload."""
        return await asyncio.to_thread(self.storage.get, key)

    async def put(self, clip: WordClip) -> WordClip:
        """Store a clip, replacing any existing clip for the same key.

        The payload is written under a fresh file name and renamed into
        place before the index row is switched over, then the superseded
        payload is removed. Concurrent writers to one key converge on the
        last committed clip.

        Args:
            clip: Clip to store

        Returns:
            The stored clip

        Raises:
            RuntimeError: If writing the payload or the index row fails
        """
        await asyncio.to_thread(self._put_sync, clip)
        return clip

    def _put_sync(self, clip: WordClip) -> None:
        audio_path = None
        try:
            filename = f"{self._generate_clip_hash(clip.key)}-{uuid.uuid4().hex[:8]}.pcm"
            audio_path = self.audio_dir / filename
            tmp_path = audio_path.with_suffix(".tmp")

            tmp_path.write_bytes(clip.audio_bytes)
            os.replace(tmp_path, audio_path)

            previous = self.storage.upsert(
                ClipInfo(
                    key=clip.key,
                    audio_path=audio_path,
                    size_bytes=clip.size_bytes,
                    duration_seconds=clip.duration_seconds,
                    created_at=clip.created_at,
                )
            )
        except Exception as e:
            # Clean up partial state if caching failed
            if audio_path is not None:
                for path in (audio_path, audio_path.with_suffix(".tmp")):
                    try:
                        path.unlink(missing_ok=True)
                    except OSError as cleanup_error:
                        logger.warning(
                            f"Failed to clean up partial clip file: {cleanup_error}"
                        )
            raise RuntimeError(f"Failed to cache clip '{clip.key.word}': {e}") from e

        if previous is not None and previous != audio_path:
            self._unlink_quietly(previous)

        logger.debug(
            f"Cached '{clip.key.word}' ({clip.key.scope_id}/{clip.key.voice_id}), "
            f"{clip.size_bytes} bytes"
        )

    async def delete(self, key: CacheKey) -> bool:
        """Remove a single clip.

        Returns:
            True if a clip was removed
        """
        info = await asyncio.to_thread(self.storage.delete, key)
        if info is None:
            return False
        await asyncio.to_thread(self._unlink_quietly, info.audio_path)
        logger.info(f"Deleted clip '{key.word}' ({key.scope_id}/{key.voice_id})")
        return True

    async def purge(self, scope_id: str, voice_id: str | None = None) -> int:
        """Remove all clips of one voice in a scope, or the whole scope.

        Args:
            scope_id: Scope to purge
            voice_id: Restrict the purge to this voice

        Returns:
            Number of clips removed
        """
        removed = await asyncio.to_thread(self.storage.delete_scope, scope_id, voice_id)
        for info in removed:
            await asyncio.to_thread(self._unlink_quietly, info.audio_path)

        logger.info(
            f"Purged {len(removed)} clips from scope {scope_id}"
            + (f" (voice {voice_id})" if voice_id else "")
        )
        return len(removed)

    async def stats(self, scope_id: str) -> CacheStats:
        """Word count, byte total and voices in use for a scope."""
        return await asyncio.to_thread(self.storage.stats, scope_id)

    async def list_clips(self, scope_id: str, voice_id: str | None = None) -> list[ClipInfo]:
        """List clip metadata for a scope, optionally restricted to one voice."""
        return await asyncio.to_thread(self.storage.list_clips, scope_id, voice_id)

    async def search(
        self, scope_id: str, voice_id: str, query: str, max_results: int = 25
    ) -> list[ClipInfo]:
        """Find clips whose word contains the query.

        Prefix matches come first, then other substring matches, each group
        in alphabetical order.
        """
        query = query.strip().lower()
        if not query or max_results <= 0:
            return []

        clips = await self.list_clips(scope_id, voice_id)
        prefix = [clip for clip in clips if clip.key.word.startswith(query)]
        substring = [
            clip
            for clip in clips
            if query in clip.key.word and not clip.key.word.startswith(query)
        ]
        return (prefix + substring)[:max_results]

    async def export(self, scope_id: str, voice_id: str | None = None) -> bytes:
        """Package a scope's clips (optionally one voice) as a ZIP archive."""
        from .archive import export_archive

        return await export_archive(self, scope_id, voice_id)

    async def import_archive(
        self, scope_id: str, archive: bytes | Path, voice_id: str | None = None
    ) -> ImportReport:
        """Load clips from an archive into a scope.

        Args:
            scope_id: Destination scope
            archive: Archive bytes or path to an archive file
            voice_id: Store every clip under this voice instead of the manifest's

        Returns:
            Report of imported, overwritten and rejected entries
        """
        from .archive import import_archive

        return await import_archive(self, scope_id, archive, voice_id)

    def _generate_clip_hash(self, key: CacheKey) -> str:
        """Generate a deterministic file name prefix for a cache key.

        Scope and voice ids are arbitrary strings, so they never appear in
        file names directly.

        Returns:
            16-character hex hash string
        """
        input_string = f"{key.scope_id}:{key.voice_id}:{key.word}"
        return hashlib.sha256(input_string.encode("utf-8")).hexdigest()[:16]

    @staticmethod
    def _unlink_quietly(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to remove clip file {path}: {e}")
