"""ElevenLabs synthesis provider."""

import asyncio
import logging
import os

from elevenlabs.client import ElevenLabs

from ..tts.errors import TTSAPIError, TTSAuthError, TTSError
from ..tts.models import VoiceSettings
from .base import TTSProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL_ID = "eleven_turbo_v2_5"
DEFAULT_OUTPUT_FORMAT = "mp3_44100_128"


def _map_error(e: Exception, action: str) -> TTSError:
    """Translate an SDK or transport exception into the TTS error hierarchy."""
    status = getattr(e, "status_code", None)
    message = str(e)
    if status is None:
        for code in (401, 429):
            if str(code) in message:
                status = code
                break

    if status == 401 or "unauthorized" in message.lower():
        return TTSAuthError(f"Authentication failed: {e}", e)
    if status == 429:
        return TTSAPIError(f"Rate limit exceeded: {e}", 429, e)
    if isinstance(e, TimeoutError) or "timed out" in message.lower():
        return TTSAPIError(f"Request timed out: {e}", 408, e)
    if isinstance(status, int) and status >= 500:
        return TTSAPIError(f"Server error: {e}", status, e)
    return TTSAPIError(f"{action} failed: {e}", status if isinstance(status, int) else None, e)


class ElevenLabsProvider(TTSProvider):
    """ElevenLabs provider; the blocking SDK client runs in worker threads."""

    name = "elevenlabs"

    def __init__(
        self,
        api_key: str | None = None,
        model_id: str = DEFAULT_MODEL_ID,
        voice_settings: VoiceSettings | None = None,
    ) -> None:
        """Initialize the ElevenLabs client.

        Args:
            api_key: API key, defaults to $ELEVENLABS_API_KEY
            model_id: ElevenLabs model used for every clip
            voice_settings: Generation settings

        Raises:
            TTSAuthError: If API key is not provided or the client cannot start
        """
        self._api_key = api_key or os.getenv("ELEVENLABS_API_KEY")
        if not self._api_key:
            raise TTSAuthError(
                "ElevenLabs API key not found. Set ELEVENLABS_API_KEY environment "
                "variable or provide api_key parameter."
            )

        try:
            self._client = ElevenLabs(api_key=self._api_key)
        except Exception as e:
            raise TTSAuthError(f"Failed to initialize ElevenLabs client: {e}", e) from e

        self.model_id = model_id
        self.voice_settings = voice_settings or VoiceSettings()
        self._voices_cache: list[dict] | None = None

    async def synthesize(self, text: str, voice: str) -> bytes:
        """Synthesize one word as MP3.

        Raises:
            ValueError: If text or voice is empty
            TTSAPIError: If the API call fails
            TTSAuthError: If authentication fails
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")
        if not voice:
            raise ValueError("Voice cannot be empty")

        def _sync_convert() -> bytes:
            audio_stream = self._client.text_to_speech.convert(
                voice_id=voice,
                text=text.strip(),
                model_id=self.model_id,
                output_format=DEFAULT_OUTPUT_FORMAT,
                voice_settings=self.voice_settings.to_dict(),
            )
            return b"".join(audio_stream)

        try:
            audio_bytes = await asyncio.to_thread(_sync_convert)
        except Exception as e:
            raise _map_error(e, "Synthesis") from e

        if not audio_bytes:
            raise TTSAPIError("No audio data received from API")

        logger.debug(
            f"ElevenLabs synthesized '{text}' with voice {voice}: {len(audio_bytes)} bytes"
        )
        return audio_bytes

    async def list_voices(self) -> list[dict]:
        """List account voices, cached after the first call.

        Raises:
            TTSAPIError: If the API call fails
            TTSAuthError: If authentication fails
        """
        if self._voices_cache is not None:
            return self._voices_cache

        def _sync_get_voices() -> list[dict]:
            response = self._client.voices.get_all()
            return [
                {"id": voice.voice_id, "name": voice.name, "provider": self.name}
                for voice in response.voices
            ]

        try:
            self._voices_cache = await asyncio.to_thread(_sync_get_voices)
        except Exception as e:
            raise _map_error(e, "Listing voices") from e

        return self._voices_cache
