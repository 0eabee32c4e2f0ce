"""Token data models produced by the tokenizer."""

from dataclasses import dataclass, field
from enum import Enum


class TokenKind(str, Enum):
    """Kind of token in an announcement."""

    WORD = "word"
    PAUSE = "pause"


@dataclass(frozen=True)
class Token:
    """One element of a tokenized announcement.

    Attributes:
        word: Normalized word, or the punctuation mark for a pause
        kind: Whether this token is spoken or silent
        pause_duration_ms: Silence length for pause tokens, 0 for words
    """

    word: str
    kind: TokenKind = TokenKind.WORD
    pause_duration_ms: int = 0

    def __post_init__(self) -> None:
        """Validate token fields."""
        if self.kind is TokenKind.WORD and not self.word:
            raise ValueError("word tokens cannot be empty")
        if self.pause_duration_ms < 0:
            raise ValueError("pause_duration_ms must be non-negative")
        if self.kind is TokenKind.WORD and self.pause_duration_ms:
            raise ValueError("word tokens cannot carry a pause duration")

    @classmethod
    def pause(cls, mark: str, duration_ms: int) -> "Token":
        return cls(word=mark, kind=TokenKind.PAUSE, pause_duration_ms=duration_ms)

    @property
    def is_word(self) -> bool:
        return self.kind is TokenKind.WORD


@dataclass(frozen=True)
class InvalidWord:
    """A word rejected by validation, reported back to the caller."""

    word: str
    reason: str


@dataclass
class TokenizeResult:
    """Output of tokenization: ordered tokens plus rejected words."""

    tokens: list[Token] = field(default_factory=list)
    invalid: list[InvalidWord] = field(default_factory=list)

    @property
    def words(self) -> list[str]:
        """Word tokens in order, duplicates included."""
        return [token.word for token in self.tokens if token.is_word]

    @property
    def unique_words(self) -> list[str]:
        """Distinct words in order of first occurrence."""
        return list(dict.fromkeys(self.words))
