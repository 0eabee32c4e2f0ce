"""Data models for word bank storage."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from ..audio.format import PCM_FORMAT


@dataclass(frozen=True)
class CacheKey:
    """Identity of one cached clip.

    Attributes:
        scope_id: Tenant namespace (e.g. a guild id) isolating word banks
        word: Normalized word the clip speaks
        voice_id: Provider voice used for synthesis
    """

    scope_id: str
    word: str
    voice_id: str

    def __post_init__(self) -> None:
        """Validate key parts."""
        if not self.scope_id or not self.scope_id.strip():
            raise ValueError("scope_id cannot be empty")
        if not self.word or not self.word.strip():
            raise ValueError("word cannot be empty")
        if not self.voice_id or not self.voice_id.strip():
            raise ValueError("voice_id cannot be empty")


@dataclass(frozen=True)
class WordClip:
    """Cached audio for a single word in the system PCM format.

    Attributes:
        key: Cache key of this clip
        audio_bytes: Raw PCM payload
        duration_seconds: Playback length derived from the payload size
        size_bytes: Payload size
        created_at: When the clip entered the word bank
    """

    key: CacheKey
    audio_bytes: bytes = field(repr=False)
    duration_seconds: float
    size_bytes: int
    created_at: datetime

    @classmethod
    def from_pcm(
        cls, key: CacheKey, audio_bytes: bytes, created_at: datetime | None = None
    ) -> "WordClip":
        """Build a clip from PCM bytes, deriving size and duration.

        Raises:
            ValueError: If the payload is empty or not frame aligned
        """
        if not audio_bytes:
            raise ValueError(f"Clip for '{key.word}' has no audio data")
        if not PCM_FORMAT.is_aligned(len(audio_bytes)):
            raise ValueError(
                f"Clip for '{key.word}' is {len(audio_bytes)} bytes, "
                f"not a multiple of the {PCM_FORMAT.frame_bytes}-byte frame"
            )
        return cls(
            key=key,
            audio_bytes=audio_bytes,
            duration_seconds=PCM_FORMAT.duration_seconds(len(audio_bytes)),
            size_bytes=len(audio_bytes),
            created_at=created_at or datetime.now(),
        )


@dataclass(frozen=True)
class ClipInfo:
    """Clip metadata as stored in the index, without the audio payload."""

    key: CacheKey
    audio_path: Path
    size_bytes: int
    duration_seconds: float
    created_at: datetime


@dataclass(frozen=True)
class CacheStats:
    """Aggregate figures for one scope's word bank."""

    total_words: int
    total_bytes: int
    voices_used: list[str]


@dataclass(frozen=True)
class RejectedEntry:
    """Archive entry that failed validation during import."""

    word: str
    voice_id: str
    reason: str


@dataclass
class ImportReport:
    """Outcome of importing a word bank archive into a scope."""

    scope_id: str
    imported: int = 0
    overwritten: int = 0
    rejected: list[RejectedEntry] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.imported + len(self.rejected)
