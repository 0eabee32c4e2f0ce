"""Bounded-concurrency generation of missing word clips."""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from ..audio.decode import decode_to_pcm
from ..cache.manager import WordBankCache
from ..cache.models import CacheKey, WordClip
from ..providers.base import TTSProvider
from ..text.models import Token
from .errors import TTSAPIError
from .inflight import InflightRegistry
from .progress import PipelineStage, ProgressCallback, ProgressEvent, emit

logger = logging.getLogger(__name__)


class GenerationStatus(str, Enum):
    """How a word was resolved."""

    CACHED = "cached"
    GENERATED = "generated"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class GenerationResult:
    """Resolution of one word.

    Attributes:
        word: The word
        status: Outcome
        clip: Resolved clip for CACHED and GENERATED
        reason: Why the word failed or was skipped
        attempts: Provider calls made for this word by this request
    """

    word: str
    status: GenerationStatus
    clip: WordClip | None = None
    reason: str | None = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.status in (GenerationStatus.CACHED, GenerationStatus.GENERATED)


@dataclass
class _Tally:
    total: int
    cached: int = 0
    generated: int = 0
    failed: int = 0

    def event(self, word: str | None = None) -> ProgressEvent:
        return ProgressEvent(
            stage=PipelineStage.GENERATING,
            total_words=self.total,
            cached=self.cached,
            generated=self.generated,
            failed=self.failed,
            word=word,
        )


def unique_words(words_or_tokens: Iterable[str | Token]) -> list[str]:
    """Distinct words in first-occurrence order; pause tokens are ignored."""
    words: list[str] = []
    for item in words_or_tokens:
        if isinstance(item, Token):
            if not item.is_word:
                continue
            item = item.word
        words.append(item)
    return list(dict.fromkeys(words))


async def partition(
    cache: WordBankCache, words: Iterable[str | Token], voice_id: str, scope_id: str
) -> tuple[dict[str, WordClip], list[str]]:
    """Split unique words into cached clips and missing words.

    Returns:
        Mapping of cached word to clip, and missing words in first-occurrence order
    """
    cached: dict[str, WordClip] = {}
    missing: list[str] = []
    for word in unique_words(words):
        clip = await cache.get(CacheKey(scope_id=scope_id, word=word, voice_id=voice_id))
        if clip is None:
            missing.append(word)
        else:
            cached[word] = clip
    return cached, missing


class ConcurrentGenerator:
    """Resolves words to clips, synthesizing cache misses through a provider.

    Provider calls are gated by one semaphore per generator, so sharing a
    generator between requests bounds the total load on the provider.
    A word that fails never cancels its siblings; it is reported as a
    FAILED result instead.
    """

    def __init__(
        self,
        cache: WordBankCache,
        provider: TTSProvider,
        max_concurrency: int = 3,
        max_attempts: int = 1,
        retry_delay: float = 0.5,
        decoder: Callable[[bytes], bytes] = decode_to_pcm,
        inflight: InflightRegistry | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.cache = cache
        self.provider = provider
        self.max_concurrency = max_concurrency
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.decoder = decoder
        self.inflight = inflight if inflight is not None else InflightRegistry()
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def partition(
        self, words: Iterable[str | Token], voice_id: str, scope_id: str
    ) -> tuple[dict[str, WordClip], list[str]]:
        """Split unique words into cached clips and missing words."""
        return await partition(self.cache, words, voice_id, scope_id)

    async def generate_missing(
        self,
        words_or_tokens: Iterable[str | Token],
        voice_id: str,
        scope_id: str,
        progress: ProgressCallback | None = None,
    ) -> dict[str, GenerationResult]:
        """Resolve every unique word, generating the ones not in the word bank.

        Args:
            words_or_tokens: Words or tokens of a request
            voice_id: Voice to synthesize with
            scope_id: Word bank scope

        Returns:
            Result per unique word, in first-occurrence order
        """
        cached, missing = await self.partition(words_or_tokens, voice_id, scope_id)
        logger.info(
            f"VOX_CACHE_CHECKED: {len(cached)} cached, {len(missing)} missing "
            f"(scope {scope_id}, voice {voice_id})"
        )

        results = {
            word: GenerationResult(word=word, status=GenerationStatus.CACHED, clip=clip)
            for word, clip in cached.items()
        }
        await emit(
            progress,
            ProgressEvent(
                stage=PipelineStage.CHECKING_CACHE,
                total_words=len(cached) + len(missing),
                cached=len(cached),
            ),
        )

        if missing:
            generated = await self.generate(
                missing, voice_id, scope_id, progress, already_cached=len(cached)
            )
            results.update(generated)

        # Reorder to first-occurrence order of the request
        return {word: results[word] for word in unique_words(words_or_tokens)}

    async def generate(
        self,
        words: Iterable[str],
        voice_id: str,
        scope_id: str,
        progress: ProgressCallback | None = None,
        already_cached: int = 0,
    ) -> dict[str, GenerationResult]:
        """Generate clips for words concurrently, bounded by max_concurrency.

        Progress counts include ``already_cached`` words resolved earlier by
        the caller. Cancellation of the caller cancels every worker; clips already
        written to the word bank stay there.
        """
        words = unique_words(words)
        tally = _Tally(total=len(words) + already_cached, cached=already_cached)
        results: dict[str, GenerationResult] = {}

        async def worker(word: str) -> None:
            result = await self._resolve(word, voice_id, scope_id)
            results[word] = result
            if result.status is GenerationStatus.GENERATED:
                tally.generated += 1
            elif result.status is GenerationStatus.CACHED:
                tally.cached += 1
            else:
                tally.failed += 1
            await emit(progress, tally.event(word))

        async with asyncio.TaskGroup() as group:
            for word in words:
                group.create_task(worker(word))

        logger.info(
            f"VOX_GENERATION_COMPLETED: {tally.generated} generated, {tally.failed} failed"
        )
        return {word: results[word] for word in words}

    async def _resolve(self, word: str, voice_id: str, scope_id: str) -> GenerationResult:
        key = CacheKey(scope_id=scope_id, word=word, voice_id=voice_id)
        try:
            (clip, status, attempts), joined = await self.inflight.run(
                key, lambda: self._produce(key)
            )
        except Exception as e:
            logger.warning(f"Generation failed for '{word}': {e}")
            return GenerationResult(
                word=word, status=GenerationStatus.FAILED, reason=str(e) or type(e).__name__
            )

        if joined:
            # Another caller produced this clip; it was cached by the time we saw it
            return GenerationResult(word=word, status=GenerationStatus.CACHED, clip=clip)
        return GenerationResult(word=word, status=status, clip=clip, attempts=attempts)

    async def _produce(self, key: CacheKey) -> tuple[WordClip, GenerationStatus, int]:
        async with self._semaphore:
            # Another request may have finished this word since partitioning
            clip = await self.cache.get(key)
            if clip is not None:
                return clip, GenerationStatus.CACHED, 0

            attempt = 0
            while True:
                attempt += 1
                try:
                    encoded = await self.provider.synthesize(key.word, key.voice_id)
                    break
                except TTSAPIError as e:
                    if not e.retryable or attempt >= self.max_attempts:
                        raise
                    logger.warning(
                        f"Retryable provider error for '{key.word}' "
                        f"(attempt {attempt}/{self.max_attempts}): {e}"
                    )
                    await asyncio.sleep(self.retry_delay * attempt)

        pcm = await asyncio.to_thread(self.decoder, encoded)
        clip = await self.cache.put(WordClip.from_pcm(key, pcm))
        logger.debug(f"Generated '{key.word}': {clip.size_bytes} bytes after {attempt} attempt(s)")
        return clip, GenerationStatus.GENERATED, attempt
