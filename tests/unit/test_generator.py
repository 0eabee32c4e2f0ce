"""Unit tests for concurrent word generation and in-flight coalescing."""

import asyncio
import sys
from pathlib import Path

import pytest

# Add src to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from conftest import FakeProvider, fill_for, identity_decoder, make_pcm, seed

from voxbank.cache.manager import WordBankCache
from voxbank.cache.models import CacheKey
from voxbank.text import tokenize
from voxbank.tts.errors import TTSAPIError, TTSAuthError
from voxbank.tts.generator import ConcurrentGenerator, GenerationStatus, unique_words
from voxbank.tts.inflight import InflightRegistry
from voxbank.tts.progress import PipelineStage, ProgressEvent

SCOPE = "test-scope"
VOICE = "fake-voice"


def generator_for(
    cache: WordBankCache, provider: FakeProvider, **kwargs
) -> ConcurrentGenerator:
    kwargs.setdefault("retry_delay", 0)
    return ConcurrentGenerator(cache, provider, decoder=identity_decoder, **kwargs)


class TestInflightRegistry:
    """Test coalescing of identical concurrent work."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_run(self) -> None:
        """Test that callers for the same key share a single producer run."""
        registry: InflightRegistry[str] = InflightRegistry()
        runs = 0

        async def producer() -> str:
            nonlocal runs
            runs += 1
            await asyncio.sleep(0.02)
            return "clip"

        results = await asyncio.gather(*(registry.run("alert", producer) for _ in range(5)))

        assert runs == 1
        assert [value for value, _ in results] == ["clip"] * 5
        assert sorted(joined for _, joined in results) == [False, True, True, True, True]
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_errors_reach_every_caller(self) -> None:
        """Test that a producer failure is raised to the owner and all waiters."""
        registry: InflightRegistry[str] = InflightRegistry()

        async def producer() -> str:
            await asyncio.sleep(0.01)
            raise TTSAPIError("provider down", 503)

        results = await asyncio.gather(
            *(registry.run("alert", producer) for _ in range(3)), return_exceptions=True
        )

        assert all(isinstance(result, TTSAPIError) for result in results)
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_waiter_takes_over_after_owner_cancelled(self) -> None:
        """Test that cancelling the owner lets a waiter run the producer itself."""
        registry: InflightRegistry[str] = InflightRegistry()
        started = asyncio.Event()
        runs = 0

        async def producer() -> str:
            nonlocal runs
            runs += 1
            started.set()
            await asyncio.sleep(0.05)
            return f"run-{runs}"

        owner = asyncio.create_task(registry.run("alert", producer))
        await started.wait()
        waiter = asyncio.create_task(registry.run("alert", producer))
        await asyncio.sleep(0)
        owner.cancel()

        value, joined = await waiter

        assert owner.cancelled()
        assert (value, joined) == ("run-2", False)
        assert runs == 2

    @pytest.mark.asyncio
    async def test_different_keys_run_independently(self) -> None:
        """Test that distinct keys do not share results."""
        registry: InflightRegistry[str] = InflightRegistry()

        async def make(value: str):
            async def producer() -> str:
                await asyncio.sleep(0.01)
                return value

            return await registry.run(value, producer)

        results = await asyncio.gather(make("a"), make("b"))

        assert results == [("a", False), ("b", False)]


class TestConcurrentGenerator:
    """Test cache partitioning, bounded generation and failure isolation."""

    def test_invalid_limits(self, cache: WordBankCache, provider: FakeProvider) -> None:
        """Test that concurrency and attempts must be positive."""
        with pytest.raises(ValueError, match="max_concurrency"):
            ConcurrentGenerator(cache, provider, max_concurrency=0)
        with pytest.raises(ValueError, match="max_attempts"):
            ConcurrentGenerator(cache, provider, max_attempts=0)

    def test_unique_words_from_tokens(self) -> None:
        """Test that unique_words keeps first-occurrence order and ignores pauses."""
        tokens = tokenize("alert. all clear, alert").tokens

        assert unique_words(tokens) == ["alert", "all", "clear"]

    @pytest.mark.asyncio
    async def test_cached_words_are_not_generated(
        self, cache: WordBankCache, provider: FakeProvider
    ) -> None:
        """Test that only missing words reach the provider."""
        await seed(cache, {"alpha": 0.1})
        generator = generator_for(cache, provider)

        results = await generator.generate_missing(["alpha", "bravo"], VOICE, SCOPE)

        assert results["alpha"].status is GenerationStatus.CACHED
        assert results["bravo"].status is GenerationStatus.GENERATED
        assert provider.calls == [("bravo", VOICE)]

    @pytest.mark.asyncio
    async def test_generated_clip_is_cached_before_reported(
        self, cache: WordBankCache, provider: FakeProvider
    ) -> None:
        """Test that a GENERATED word is already readable from the word bank."""
        generator = generator_for(cache, provider)

        results = await generator.generate_missing(["bravo"], VOICE, SCOPE)

        clip = await cache.get(CacheKey(scope_id=SCOPE, word="bravo", voice_id=VOICE))
        assert clip is not None
        assert clip.audio_bytes == results["bravo"].clip.audio_bytes
        assert clip.audio_bytes == make_pcm(0.1, fill_for("bravo"))

    @pytest.mark.asyncio
    async def test_results_follow_first_occurrence_order(
        self, cache: WordBankCache
    ) -> None:
        """Test that results are ordered by the request, not by completion."""
        provider = FakeProvider(delay=0.01)
        generator = generator_for(cache, provider)
        await seed(cache, {"charlie": 0.1})

        results = await generator.generate_missing(
            ["delta", "charlie", "alpha", "delta", "bravo"], VOICE, SCOPE
        )

        assert list(results) == ["delta", "charlie", "alpha", "bravo"]

    @pytest.mark.asyncio
    async def test_repeated_requests_are_idempotent(
        self, cache: WordBankCache, provider: FakeProvider
    ) -> None:
        """Test that a word is synthesized once across repeated requests."""
        generator = generator_for(cache, provider)

        for _ in range(3):
            await generator.generate_missing(["alpha", "bravo", "alpha"], VOICE, SCOPE)

        assert provider.call_count("alpha") == 1
        assert provider.call_count("bravo") == 1

    @pytest.mark.asyncio
    async def test_concurrent_requests_coalesce(self, cache: WordBankCache) -> None:
        """Test that overlapping requests for the same word call the provider once."""
        provider = FakeProvider(delay=0.05)
        generator = generator_for(cache, provider)

        outcomes = await asyncio.gather(
            *(generator.generate_missing(["alert"], VOICE, SCOPE) for _ in range(4))
        )

        assert provider.call_count("alert") == 1
        statuses = sorted(outcome["alert"].status.value for outcome in outcomes)
        assert statuses == ["cached", "cached", "cached", "generated"]

    @pytest.mark.parametrize("limit", [1, 2, 3, 5])
    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, cache: WordBankCache, limit: int) -> None:
        """Test that no more than max_concurrency provider calls overlap."""
        provider = FakeProvider(delay=0.02)
        generator = generator_for(cache, provider, max_concurrency=limit)
        words = [f"word{i}" for i in range(10)]

        results = await generator.generate_missing(words, VOICE, SCOPE)

        assert provider.max_active == limit
        assert all(result.ok for result in results.values())

    @pytest.mark.asyncio
    async def test_shared_generator_bounds_across_requests(self, cache: WordBankCache) -> None:
        """Test that two requests sharing a generator share its limit."""
        provider = FakeProvider(delay=0.02)
        generator = generator_for(cache, provider, max_concurrency=2)

        await asyncio.gather(
            generator.generate_missing([f"a{i}" for i in range(5)], VOICE, SCOPE),
            generator.generate_missing([f"b{i}" for i in range(5)], VOICE, SCOPE),
        )

        assert provider.max_active == 2

    @pytest.mark.asyncio
    async def test_one_failure_does_not_cancel_siblings(self, cache: WordBankCache) -> None:
        """Test that one failing word out of five leaves the other four generated."""
        provider = FakeProvider(
            delay=0.01, failures={"charlie": TTSAPIError("voice not found", 404)}
        )
        generator = generator_for(cache, provider)

        results = await generator.generate_missing(
            ["alpha", "bravo", "charlie", "delta", "echo"], VOICE, SCOPE
        )

        assert results["charlie"].status is GenerationStatus.FAILED
        assert "voice not found" in results["charlie"].reason
        assert [word for word, result in results.items() if result.ok] == [
            "alpha",
            "bravo",
            "delta",
            "echo",
        ]

    @pytest.mark.asyncio
    async def test_decode_failure_is_reported(self, cache: WordBankCache) -> None:
        """Test that a payload that cannot be decoded fails only its word."""
        provider = FakeProvider()

        def decoder(data: bytes) -> bytes:
            raise ValueError("Failed to decode provider audio: garbage")

        generator = ConcurrentGenerator(cache, provider, decoder=decoder)
        results = await generator.generate_missing(["alpha"], VOICE, SCOPE)

        assert results["alpha"].status is GenerationStatus.FAILED
        assert "garbage" in results["alpha"].reason
        assert await cache.get(CacheKey(scope_id=SCOPE, word="alpha", voice_id=VOICE)) is None


class TestRetries:
    """Test retry behavior for transient provider errors."""

    @pytest.mark.asyncio
    async def test_single_attempt_by_default(self, cache: WordBankCache) -> None:
        """Test that retryable errors are not retried unless configured."""
        provider = FakeProvider(failures={"alert": TTSAPIError("Rate limit exceeded", 429)})
        generator = generator_for(cache, provider)

        results = await generator.generate_missing(["alert"], VOICE, SCOPE)

        assert results["alert"].status is GenerationStatus.FAILED
        assert provider.call_count("alert") == 1

    @pytest.mark.asyncio
    async def test_retryable_error_retried(self, cache: WordBankCache) -> None:
        """Test that a transient 503 is retried and then succeeds."""

        class Flaky(FakeProvider):
            async def synthesize(self, text: str, voice: str) -> bytes:
                if not self.calls:
                    self.calls.append((text, voice))
                    raise TTSAPIError("Server error", 503)
                return await super().synthesize(text, voice)

        provider = Flaky()
        generator = generator_for(cache, provider, max_attempts=3)

        results = await generator.generate_missing(["alert"], VOICE, SCOPE)

        assert results["alert"].status is GenerationStatus.GENERATED
        assert results["alert"].attempts == 2

    @pytest.mark.asyncio
    async def test_non_retryable_error_not_retried(self, cache: WordBankCache) -> None:
        """Test that client errors and auth errors fail on the first attempt."""
        provider = FakeProvider(
            failures={
                "alpha": TTSAPIError("Bad request", 400),
                "bravo": TTSAuthError("Authentication failed"),
            }
        )
        generator = generator_for(cache, provider, max_attempts=3)

        results = await generator.generate_missing(["alpha", "bravo"], VOICE, SCOPE)

        assert all(result.status is GenerationStatus.FAILED for result in results.values())
        assert provider.call_count("alpha") == 1
        assert provider.call_count("bravo") == 1

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, cache: WordBankCache) -> None:
        """Test that a persistent 429 stops after max_attempts."""
        provider = FakeProvider(failures={"alert": TTSAPIError("Rate limit exceeded", 429)})
        generator = generator_for(cache, provider, max_attempts=3)

        results = await generator.generate_missing(["alert"], VOICE, SCOPE)

        assert results["alert"].status is GenerationStatus.FAILED
        assert provider.call_count("alert") == 3

    @pytest.mark.parametrize(
        ("status", "retryable"),
        [(400, False), (401, False), (404, False), (408, True), (429, True), (500, True)],
    )
    def test_retryable_status_codes(self, status: int, retryable: bool) -> None:
        """Test which provider status codes count as transient."""
        assert TTSAPIError("x", status).retryable is retryable

    def test_timeout_without_status_is_retryable(self) -> None:
        """Test that a raw timeout is transient."""
        assert TTSAPIError("x", original_error=TimeoutError()).retryable
        assert not TTSAPIError("x").retryable


class TestProgress:
    """Test incremental progress reporting."""

    @pytest.mark.asyncio
    async def test_progress_counts(self, cache: WordBankCache) -> None:
        """Test that events report cached, generated and failed counts."""
        await seed(cache, {"alpha": 0.1})
        provider = FakeProvider(failures={"charlie": TTSAPIError("boom", 400)})
        generator = generator_for(cache, provider, max_concurrency=1)
        events: list[ProgressEvent] = []

        await generator.generate_missing(
            ["alpha", "bravo", "charlie"], VOICE, SCOPE, progress=events.append
        )

        assert events[0].stage is PipelineStage.CHECKING_CACHE
        assert (events[0].total_words, events[0].cached) == (3, 1)
        generating = events[1:]
        assert sorted(event.word for event in generating) == ["bravo", "charlie"]
        assert [event.completed for event in generating] == [2, 3]
        final = generating[-1]
        assert (final.cached, final.generated, final.failed) == (1, 1, 1)

    @pytest.mark.asyncio
    async def test_async_progress_callback(self, cache: WordBankCache) -> None:
        """Test that coroutine callbacks are awaited."""
        provider = FakeProvider()
        generator = generator_for(cache, provider)
        seen: list[str] = []

        async def progress(event: ProgressEvent) -> None:
            seen.append(event.stage.value)

        await generator.generate_missing(["alpha"], VOICE, SCOPE, progress=progress)

        assert seen == ["checking_cache", "generating"]

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_break_generation(
        self, cache: WordBankCache
    ) -> None:
        """Test that callback exceptions are logged and ignored."""
        provider = FakeProvider()
        generator = generator_for(cache, provider)

        def progress(event: ProgressEvent) -> None:
            raise RuntimeError("display went away")

        results = await generator.generate_missing(["alpha"], VOICE, SCOPE, progress=progress)

        assert results["alpha"].ok
