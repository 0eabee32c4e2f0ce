"""Announcement tokenizer.

Splits free-form text into an ordered list of word and pause tokens.
Punctuation becomes explicit pause tokens at the position it appeared,
and words that cannot name a clip are reported instead of dropped.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

from .models import InvalidWord, Token, TokenizeResult

logger = logging.getLogger(__name__)

PERIOD = "_period"
COMMA = "_comma"
ELLIPSIS = "_ellipsis"
DASH = "_dash"

DEFAULT_PAUSES_MS: dict[str, int] = {
    PERIOD: 200,
    COMMA: 150,
    ELLIPSIS: 250,
    DASH: 100,
}

# Single punctuation characters and the pause class they map to
_MARK_CLASSES = {
    ".": PERIOD,
    "!": PERIOD,
    "?": PERIOD,
    ",": COMMA,
    ";": COMMA,
    ":": COMMA,
    "-": DASH,
    "–": DASH,
    "—": DASH,
}

_CHUNK_RE = re.compile(r"^(?P<lead>\W*?)(?P<core>\w.*?\w|\w)?(?P<trail>\W*)$", re.DOTALL)
_VALID_WORD_RE = re.compile(r"^[a-z0-9]+(?:[-_][a-z0-9]+)*$")
_ELLIPSIS_RE = re.compile(r"\.\.\.|…")
_INTEGER_RE = re.compile(r"^\d{1,9}$")

CONTRACTIONS: dict[str, str] = {
    "ain't": "is not",
    "aren't": "are not",
    "can't": "can not",
    "couldn't": "could not",
    "didn't": "did not",
    "doesn't": "does not",
    "don't": "do not",
    "hadn't": "had not",
    "hasn't": "has not",
    "haven't": "have not",
    "he's": "he is",
    "i'd": "i would",
    "i'll": "i will",
    "i'm": "i am",
    "i've": "i have",
    "isn't": "is not",
    "it's": "it is",
    "let's": "let us",
    "shouldn't": "should not",
    "she's": "she is",
    "that's": "that is",
    "there's": "there is",
    "they're": "they are",
    "wasn't": "was not",
    "we're": "we are",
    "weren't": "were not",
    "what's": "what is",
    "won't": "will not",
    "wouldn't": "would not",
    "you're": "you are",
}

_ONES = [
    "zero", "one", "two", "three", "four", "five", "six", "seven", "eight",
    "nine", "ten", "eleven", "twelve", "thirteen", "fourteen", "fifteen",
    "sixteen", "seventeen", "eighteen", "nineteen",
]
_TENS = [
    "", "", "twenty", "thirty", "forty", "fifty", "sixty", "seventy",
    "eighty", "ninety",
]
_SCALES = [(1_000_000, "million"), (1_000, "thousand")]


def number_to_words(value: int) -> list[str]:
    """Spell out a non-negative integer below one billion.

    Args:
        value: Integer in range 0-999,999,999

    Returns:
        Words in speaking order, e.g. 1042 -> ["one", "thousand", "forty", "two"]

    Raises:
        ValueError: If value is out of range
    """
    if not 0 <= value < 1_000_000_000:
        raise ValueError(f"value must be between 0 and 999999999, got {value}")
    if value == 0:
        return ["zero"]

    words: list[str] = []
    for scale, name in _SCALES:
        if value >= scale:
            words.extend(_below_thousand(value // scale))
            words.append(name)
            value %= scale
    if value:
        words.extend(_below_thousand(value))
    return words


def _below_thousand(value: int) -> list[str]:
    words: list[str] = []
    if value >= 100:
        words.extend([_ONES[value // 100], "hundred"])
        value %= 100
    if value >= 20:
        words.append(_TENS[value // 10])
        value %= 10
        if value:
            words.append(_ONES[value])
    elif value or not words:
        words.append(_ONES[value])
    return words


@dataclass(frozen=True)
class TokenizerOptions:
    """Tokenizer behavior switches.

    Attributes:
        max_word_length: Longest accepted word
        expand_numbers: Spell integers out as separate words
        contractions: "expand" rewrites known contractions, "join" drops apostrophes
        pauses_ms: Pause duration per punctuation class
    """

    max_word_length: int = 30
    expand_numbers: bool = False
    contractions: str = "expand"
    pauses_ms: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_PAUSES_MS))

    def __post_init__(self) -> None:
        """Validate option values."""
        if self.max_word_length < 1:
            raise ValueError("max_word_length must be at least 1")
        if self.contractions not in ("expand", "join"):
            raise ValueError(
                f"contractions must be 'expand' or 'join', got {self.contractions!r}"
            )
        unknown = set(self.pauses_ms) - set(DEFAULT_PAUSES_MS)
        if unknown:
            raise ValueError(f"Unknown pause classes: {', '.join(sorted(unknown))}")
        if any(duration < 0 for duration in self.pauses_ms.values()):
            raise ValueError("pause durations must be non-negative")


class Tokenizer:
    """Stateless text tokenizer; one instance can be shared across requests."""

    def __init__(self, options: TokenizerOptions | None = None) -> None:
        self.options = options or TokenizerOptions()
        self._pauses = {**DEFAULT_PAUSES_MS, **self.options.pauses_ms}

    def tokenize(self, text: str) -> TokenizeResult:
        """Split text into ordered word and pause tokens.

        Args:
            text: Free-form announcement text

        Returns:
            TokenizeResult with tokens in text order and rejected words
        """
        result = TokenizeResult()
        for chunk in text.split():
            match = _CHUNK_RE.match(chunk)
            if match is None:
                continue

            self._append_pause(result, match.group("lead"))
            core = match.group("core")
            if core:
                for word in self._expand(core.strip().lower()):
                    self._append_word(result, word)
            self._append_pause(result, match.group("trail"))

        logger.debug(
            f"Tokenized {len(text)} chars into {len(result.tokens)} tokens "
            f"({len(result.invalid)} invalid)"
        )
        return result

    def _expand(self, core: str) -> list[str]:
        if "'" in core or "’" in core:
            core = core.replace("’", "'")
            if self.options.contractions == "expand" and core in CONTRACTIONS:
                return CONTRACTIONS[core].split()
            core = core.replace("'", "")

        if self.options.expand_numbers and _INTEGER_RE.match(core):
            return number_to_words(int(core))

        return [core]

    def _append_word(self, result: TokenizeResult, word: str) -> None:
        if not word:
            return
        reason = validate_word(word, self.options.max_word_length)
        if reason is not None:
            result.invalid.append(InvalidWord(word, reason))
            return
        result.tokens.append(Token(word=word))

    def _append_pause(self, result: TokenizeResult, punctuation: str) -> None:
        mark = self._pause_class(punctuation)
        if mark is not None:
            result.tokens.append(Token.pause(mark, self._pauses[mark]))

    def _pause_class(self, punctuation: str) -> str | None:
        """Pick the longest pause among the marks in a punctuation run."""
        if not punctuation:
            return None

        classes: set[str] = set()
        if _ELLIPSIS_RE.search(punctuation):
            classes.add(ELLIPSIS)
            punctuation = _ELLIPSIS_RE.sub("", punctuation)
        classes.update(_MARK_CLASSES[ch] for ch in punctuation if ch in _MARK_CLASSES)

        if not classes:
            return None
        return max(classes, key=lambda mark: self._pauses[mark])


def validate_word(word: str, max_length: int = 30) -> str | None:
    """Check that a normalized word can name a clip.

    Returns:
        Rejection reason, or None if the word is valid
    """
    if len(word) > max_length:
        return f"exceeds maximum length of {max_length} characters"
    if not _VALID_WORD_RE.match(word):
        return "contains unsupported characters"
    return None


def tokenize(text: str, options: TokenizerOptions | None = None) -> TokenizeResult:
    """Tokenize text with default or given options."""
    return Tokenizer(options).tokenize(text)
