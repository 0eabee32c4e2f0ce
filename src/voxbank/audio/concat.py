"""Assembly of word clips and silences into one announcement buffer."""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum

from ..text.models import Token
from ..tts.errors import ConcatenationError
from .format import PCM_FORMAT, PCMFormat

logger = logging.getLogger(__name__)

PAUSE_MODES = ("additive", "replace")


class SegmentKind(str, Enum):
    """What a span of the assembled buffer contains."""

    WORD = "word"
    GAP = "gap"
    PAUSE = "pause"


@dataclass(frozen=True)
class Segment:
    """One appended piece of the output buffer.

    Attributes:
        kind: Word clip, default word gap or explicit pause
        word: Word for clips, punctuation mark for pauses, empty for gaps
        offset: Byte offset in the buffer
        length: Byte length
    """

    kind: SegmentKind
    word: str
    offset: int
    length: int


@dataclass(frozen=True)
class Composition:
    """Ordered tokens plus the resolved clip bytes for their words.

    Word tokens without an entry in ``clips`` were skipped upstream and
    are left out of the output.
    """

    tokens: Sequence[Token]
    clips: Mapping[str, bytes] = field(default_factory=dict)


@dataclass(frozen=True)
class AssembledAudio:
    """Concatenation output."""

    buffer: bytes
    segments: list[Segment]

    @property
    def duration_seconds(self) -> float:
        return PCM_FORMAT.duration_seconds(len(self.buffer))


class ConcatenationEngine:
    """Joins clips in token order with deterministic silences.

    Between consecutive words ``word_gap_ms`` of silence is inserted and
    every pause token contributes its own silence. In "additive" mode the
    word gap stays at boundaries that also carry a pause; in "replace"
    mode the pause stands in for the gap. Pauses before the first word or
    after the last word are dropped.
    """

    def __init__(self, fmt: PCMFormat = PCM_FORMAT) -> None:
        self.fmt = fmt

    def layout(
        self,
        tokens: Sequence[Token],
        clip_sizes: Mapping[str, int],
        word_gap_ms: int,
        pause_mode: str = "additive",
    ) -> list[Segment]:
        """Compute the segment layout for tokens without touching audio.

        Args:
            tokens: Ordered tokens
            clip_sizes: Byte size of each available word's clip
            word_gap_ms: Silence between consecutive words
            pause_mode: "additive" or "replace"

        Returns:
            Segments in output order

        Raises:
            ValueError: If the gap is negative or the pause mode unknown
        """
        if word_gap_ms < 0:
            raise ValueError("word_gap_ms must be non-negative")
        if pause_mode not in PAUSE_MODES:
            raise ValueError(f"pause_mode must be one of {PAUSE_MODES}, got {pause_mode!r}")

        segments: list[Segment] = []
        offset = 0

        def append(kind: SegmentKind, word: str, length: int) -> None:
            nonlocal offset
            if length <= 0:
                return
            segments.append(Segment(kind=kind, word=word, offset=offset, length=length))
            offset += length

        # Words without a clip are left out; pauses keep their position
        pending_pauses: list[Token] = []
        first_word = True
        for token in tokens:
            if not token.is_word:
                if not first_word:
                    pending_pauses.append(token)
                continue
            if token.word not in clip_sizes:
                continue

            if not first_word:
                if pause_mode == "additive" or not pending_pauses:
                    append(SegmentKind.GAP, "", self.fmt.silence_bytes(word_gap_ms))
                for pause in pending_pauses:
                    append(
                        SegmentKind.PAUSE,
                        pause.word,
                        self.fmt.silence_bytes(pause.pause_duration_ms),
                    )
            pending_pauses = []

            append(SegmentKind.WORD, token.word, clip_sizes[token.word])
            first_word = False

        # Pauses after the last word were never flushed
        return segments

    def concatenate(
        self,
        composition: Composition,
        word_gap_ms: int,
        pause_mode: str = "additive",
    ) -> AssembledAudio:
        """Assemble a composition into a single PCM buffer.

        Args:
            composition: Ordered tokens and their clips
            word_gap_ms: Silence between consecutive words
            pause_mode: "additive" or "replace"

        Returns:
            AssembledAudio with the buffer and its segment layout

        Raises:
            ConcatenationError: If a clip is empty or not frame aligned
            ValueError: If the gap is negative or the pause mode unknown
        """
        for token in composition.tokens:
            if token.is_word and token.word in composition.clips:
                self._check_clip(token.word, composition.clips[token.word])

        clip_sizes = {word: len(data) for word, data in composition.clips.items()}
        segments = self.layout(composition.tokens, clip_sizes, word_gap_ms, pause_mode)

        buffer = b"".join(
            composition.clips[segment.word]
            if segment.kind is SegmentKind.WORD
            else bytes(segment.length)
            for segment in segments
        )
        word_count = sum(1 for segment in segments if segment.kind is SegmentKind.WORD)
        logger.info(
            f"VOX_CONCATENATION_COMPLETED: {word_count} words, "
            f"{len(buffer)} bytes ({self.fmt.duration_seconds(len(buffer)):.3f}s)"
        )
        return AssembledAudio(buffer=buffer, segments=segments)

    def _check_clip(self, word: str, data: bytes) -> None:
        if not data:
            raise ConcatenationError(f"Clip for '{word}' is empty")
        if not self.fmt.is_aligned(len(data)):
            raise ConcatenationError(
                f"Clip for '{word}' is {len(data)} bytes, "
                f"not a multiple of the {self.fmt.frame_bytes}-byte frame"
            )
