"""VOX announcement pipeline.

Coordinates the Tokenizer, WordBankCache, ConcurrentGenerator,
ConcatenationEngine and FilterEngine into one request flow:

    TOKENIZING -> CHECKING_CACHE -> GENERATING -> CONCATENATING -> FILTERING -> DONE

Any fatal error moves the request to FAILED. Per-word problems are not
fatal; they are collected in the result's skipped words.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from ..audio.concat import PAUSE_MODES, AssembledAudio, Composition, ConcatenationEngine, Segment
from ..audio.filters import FilterEngine, FilterPreset, FilterSpec
from ..audio.format import PCM_FORMAT
from ..cache.manager import WordBankCache
from ..cache.models import CacheKey
from ..providers.base import TTSProvider
from ..text.models import InvalidWord, Token, TokenizeResult
from ..text.tokenizer import Tokenizer, validate_word
from .errors import ValidationError, VoxError, ZeroMatchError
from .generator import (
    ConcurrentGenerator,
    GenerationResult,
    GenerationStatus,
    partition,
    unique_words,
)
from .progress import PipelineStage, ProgressCallback, ProgressEvent, emit

logger = logging.getLogger(__name__)

MIN_WORD_GAP_MS = 20
MAX_WORD_GAP_MS = 200
DEFAULT_WORD_GAP_MS = 50
DEFAULT_MAX_MESSAGE_LENGTH = 500
DEFAULT_MAX_WORDS = 50


@dataclass
class SynthesisResult:
    """Outcome of one announcement request.

    Attributes:
        success: Whether a buffer was produced
        buffer: Final PCM audio (empty on failure)
        matched_words: Words present in the buffer, in token order with repeats
        skipped_words: Invalid, failed or unavailable words, in first-occurrence order
        duration_estimate: Buffer length in seconds
        stage: Last stage reached (DONE or FAILED when finished)
        failed_stage: Stage that raised the fatal error
        error: The fatal error, if any
        word_results: Resolution of each unique valid word
        invalid_words: Words rejected by tokenization
        segments: Layout of the buffer
    """

    success: bool = False
    buffer: bytes = field(default=b"", repr=False)
    matched_words: list[str] = field(default_factory=list)
    skipped_words: list[str] = field(default_factory=list)
    duration_estimate: float = 0.0
    stage: PipelineStage = PipelineStage.TOKENIZING
    failed_stage: PipelineStage | None = None
    error: VoxError | None = None
    word_results: dict[str, GenerationResult] = field(default_factory=dict)
    invalid_words: list[InvalidWord] = field(default_factory=list)
    segments: list[Segment] = field(default_factory=list)


@dataclass(frozen=True)
class TokenStatus:
    """Availability of one token's clip."""

    token: Token
    available: bool
    duration_seconds: float = 0.0


@dataclass
class TokenPreview:
    """What an announcement would sound like, without synthesizing anything."""

    tokens: list[TokenStatus]
    invalid_words: list[InvalidWord]
    missing_words: list[str]
    estimated_duration: float

    @property
    def matched_count(self) -> int:
        return sum(1 for status in self.tokens if status.token.is_word and status.available)


class VoxPipeline:
    """Turns announcement text into one PCM buffer from cached word clips.

    Components are created once and reused across requests; the cache and
    the generator (with its provider concurrency limit) are shared state.

    Example:
        cache = WordBankCache()
        pipeline = VoxPipeline(cache, ProviderRegistry.get_instance("elevenlabs"))

        result = await pipeline.synthesize(
            "Warning. Security breach", voice_id="rachel", scope_id="guild-1"
        )
        if result.success:
            player.play_pcm(result.buffer)
    """

    def __init__(
        self,
        cache: WordBankCache,
        provider: TTSProvider | None,
        *,
        tokenizer: Tokenizer | None = None,
        generator: ConcurrentGenerator | None = None,
        concatenator: ConcatenationEngine | None = None,
        filter_engine: FilterEngine | None = None,
        word_gap_ms: int = DEFAULT_WORD_GAP_MS,
        pause_mode: str = "additive",
        max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
        max_words: int = DEFAULT_MAX_WORDS,
        generate_missing: bool = True,
        max_concurrency: int = 3,
        max_attempts: int = 1,
    ) -> None:
        self.cache = cache
        self.provider = provider
        self.tokenizer = tokenizer or Tokenizer()
        if generator is None and provider is not None:
            generator = ConcurrentGenerator(
                cache, provider, max_concurrency=max_concurrency, max_attempts=max_attempts
            )
        self.generator = generator
        self.concatenator = concatenator or ConcatenationEngine()
        self.filter_engine = filter_engine or FilterEngine()
        self.word_gap_ms = self._check_gap(word_gap_ms)
        if pause_mode not in PAUSE_MODES:
            raise ValueError(f"pause_mode must be one of {PAUSE_MODES}, got {pause_mode!r}")
        self.pause_mode = pause_mode
        self.max_message_length = max_message_length
        self.max_words = max_words
        self.generate_missing = generate_missing

        logger.debug(
            f"VoxPipeline initialized with provider={provider.name if provider else None}, "
            f"gap={word_gap_ms}ms, pause_mode={pause_mode}"
        )

    async def synthesize(
        self,
        text: str | Sequence[Token],
        voice_id: str,
        scope_id: str,
        filter_spec: FilterSpec = FilterPreset.OFF,
        word_gap_ms: int | None = None,
        progress: ProgressCallback | None = None,
        generate_missing: bool | None = None,
    ) -> SynthesisResult:
        """Produce an announcement buffer.

        Args:
            text: Announcement text, or already tokenized input
            voice_id: Voice every word is spoken in
            scope_id: Word bank scope
            filter_spec: Post-processing preset or custom settings
            word_gap_ms: Silence between words (20-200), defaults to the pipeline's
            progress: Optional sync or async callback receiving ProgressEvent
            generate_missing: Synthesize words not yet in the word bank;
                when False they are skipped

        Returns:
            SynthesisResult; fatal errors are reported in it rather than raised.
            Task cancellation is never converted and propagates to the caller.
        """
        result = SynthesisResult()
        gap = self.word_gap_ms if word_gap_ms is None else word_gap_ms
        generate = self.generate_missing if generate_missing is None else generate_missing

        try:
            # === TOKENIZING ===
            await self._enter(result, PipelineStage.TOKENIZING, progress)
            self._check_gap(gap)
            tokenized = self._tokenize(text)
            result.invalid_words = list(tokenized.invalid)
            for invalid in tokenized.invalid:
                logger.warning(f"Skipping invalid word '{invalid.word}': {invalid.reason}")

            words = unique_words(tokenized.tokens)
            if not words:
                raise ZeroMatchError("No content to synthesize: no valid words in request")

            # === CHECKING_CACHE ===
            await self._enter(result, PipelineStage.CHECKING_CACHE, progress, len(words))
            cached, missing = await partition(self.cache, words, voice_id, scope_id)
            word_results = {
                word: GenerationResult(word=word, status=GenerationStatus.CACHED, clip=clip)
                for word, clip in cached.items()
            }
            logger.info(
                f"VOX_CACHE_CHECKED: {len(cached)} cached, {len(missing)} missing "
                f"(scope {scope_id}, voice {voice_id})"
            )

            # === GENERATING ===
            await self._enter(
                result, PipelineStage.GENERATING, progress, len(words), cached=len(cached)
            )
            if missing and generate and self.generator is not None:
                word_results.update(
                    await self.generator.generate(
                        missing, voice_id, scope_id, progress, already_cached=len(cached)
                    )
                )
            else:
                for word in missing:
                    word_results[word] = GenerationResult(
                        word=word,
                        status=GenerationStatus.SKIPPED,
                        reason="not in word bank" if not generate else "no provider configured",
                    )

            result.word_results = {word: word_results[word] for word in words}
            result.matched_words = [
                token.word
                for token in tokenized.tokens
                if token.is_word and result.word_results[token.word].ok
            ]
            result.skipped_words = list(
                dict.fromkeys(
                    [invalid.word for invalid in tokenized.invalid]
                    + [word for word, res in result.word_results.items() if not res.ok]
                )
            )
            for res in result.word_results.values():
                if not res.ok:
                    logger.warning(f"Skipping '{res.word}' ({res.status.value}): {res.reason}")

            if not result.matched_words:
                raise ZeroMatchError(
                    "No content to synthesize: none of the requested words are available"
                )

            # === CONCATENATING ===
            await self._enter(result, PipelineStage.CONCATENATING, progress, len(words))
            assembled: AssembledAudio = self.concatenator.concatenate(
                Composition(
                    tokens=tokenized.tokens,
                    clips={
                        word: res.clip.audio_bytes
                        for word, res in result.word_results.items()
                        if res.ok and res.clip is not None
                    },
                ),
                gap,
                self.pause_mode,
            )
            result.segments = assembled.segments

            # === FILTERING ===
            await self._enter(result, PipelineStage.FILTERING, progress, len(words))
            result.buffer = self.filter_engine.apply(assembled.buffer, filter_spec)
            result.duration_estimate = PCM_FORMAT.duration_seconds(len(result.buffer))

            result.success = True
            await self._enter(result, PipelineStage.DONE, progress, len(words))
            logger.info(
                f"VOX_SYNTHESIS_COMPLETED: {len(result.matched_words)} words, "
                f"{len(result.skipped_words)} skipped, {result.duration_estimate:.3f}s"
            )

        except Exception as e:
            if isinstance(e, VoxError):
                error = e
            else:
                error = VoxError(f"{result.stage.value} failed: {e}", e)
            result.failed_stage = result.stage
            result.stage = PipelineStage.FAILED
            result.error = error
            result.success = False
            result.buffer = b""
            result.duration_estimate = 0.0
            logger.error(
                f"VOX_SYNTHESIS_FAILED at {result.failed_stage.value} ({error.kind}): {error}"
            )
            await emit(progress, ProgressEvent(stage=PipelineStage.FAILED))

        return result

    async def preview(
        self,
        text: str | Sequence[Token],
        voice_id: str,
        scope_id: str,
        word_gap_ms: int | None = None,
    ) -> TokenPreview:
        """Report clip availability per token and the expected duration.

        Only the word bank index is consulted; no audio is read or generated.

        Raises:
            ValidationError: If the request would be rejected by synthesize()
        """
        gap = self._check_gap(self.word_gap_ms if word_gap_ms is None else word_gap_ms)
        tokenized = self._tokenize(text)

        sizes: dict[str, int] = {}
        for word in unique_words(tokenized.tokens):
            info = await self.cache.get_info(
                CacheKey(scope_id=scope_id, word=word, voice_id=voice_id)
            )
            if info is not None:
                sizes[word] = info.size_bytes

        statuses = []
        for token in tokenized.tokens:
            if token.is_word:
                size = sizes.get(token.word, 0)
            else:
                size = PCM_FORMAT.silence_bytes(token.pause_duration_ms)
            statuses.append(
                TokenStatus(
                    token=token,
                    available=not token.is_word or token.word in sizes,
                    duration_seconds=PCM_FORMAT.duration_seconds(size),
                )
            )
        segments = self.concatenator.layout(tokenized.tokens, sizes, gap, self.pause_mode)
        total_bytes = sum(segment.length for segment in segments)

        return TokenPreview(
            tokens=statuses,
            invalid_words=list(tokenized.invalid),
            missing_words=[
                word for word in unique_words(tokenized.tokens) if word not in sizes
            ],
            estimated_duration=PCM_FORMAT.duration_seconds(total_bytes),
        )

    def _tokenize(self, text: str | Sequence[Token]) -> TokenizeResult:
        if isinstance(text, str):
            if not text.strip():
                raise ValidationError("Message cannot be empty")
            if len(text) > self.max_message_length:
                raise ValidationError(
                    f"Message is {len(text)} characters, maximum is {self.max_message_length}"
                )
            tokenized = self.tokenizer.tokenize(text)
        else:
            tokenized = TokenizeResult()
            max_length = self.tokenizer.options.max_word_length
            for token in text:
                reason = validate_word(token.word, max_length) if token.is_word else None
                if reason is None:
                    tokenized.tokens.append(token)
                else:
                    tokenized.invalid.append(InvalidWord(word=token.word, reason=reason))

        word_count = len(tokenized.words)
        if word_count > self.max_words:
            raise ValidationError(f"Message has {word_count} words, maximum is {self.max_words}")
        return tokenized

    @staticmethod
    def _check_gap(word_gap_ms: int) -> int:
        if not MIN_WORD_GAP_MS <= word_gap_ms <= MAX_WORD_GAP_MS:
            raise ValidationError(
                f"Word gap must be between {MIN_WORD_GAP_MS} and {MAX_WORD_GAP_MS} ms, "
                f"got {word_gap_ms}"
            )
        return word_gap_ms

    @staticmethod
    async def _enter(
        result: SynthesisResult,
        stage: PipelineStage,
        progress: ProgressCallback | None,
        total_words: int = 0,
        cached: int = 0,
    ) -> None:
        result.stage = stage
        logger.debug(f"VOX stage -> {stage.value}")
        await emit(progress, ProgressEvent(stage=stage, total_words=total_words, cached=cached))
