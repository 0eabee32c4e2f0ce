"""Interface for word synthesis providers."""

from abc import ABC, abstractmethod


class TTSProvider(ABC):
    """Abstract base class for synthesis providers.

    A provider turns a single word into encoded audio (any container the
    decoder understands); the word bank decodes it to system PCM once and
    never calls the provider for that word again.

    Voice Dictionary Structure:
        Each voice returned by list_voices() follows this structure:
        {
            "id": str,       # Voice identifier used in cache keys
            "name": str,     # Human-readable name for the voice
            "provider": str  # Provider name (e.g., "elevenlabs", "system")
        }
    """

    name: str = "base"

    @abstractmethod
    async def synthesize(self, text: str, voice: str) -> bytes:
        """Synthesize text with the given voice.

        Args:
            text: Word (or short phrase) to speak
            voice: Provider voice identifier

        Returns:
            Encoded audio bytes (MP3 or WAV)

        Raises:
            TTSAPIError: For provider failures; rate limits, timeouts and 5xx
                responses are marked retryable
            TTSAuthError: For credential problems
        """

    @abstractmethod
    async def list_voices(self) -> list[dict]:
        """Return available voices for this provider."""
