"""Text handling for voxbank: tokenization of announcements."""

from .models import InvalidWord, Token, TokenizeResult, TokenKind
from .tokenizer import (
    Tokenizer,
    TokenizerOptions,
    number_to_words,
    tokenize,
    validate_word,
)

__all__ = [
    "InvalidWord",
    "Token",
    "TokenKind",
    "TokenizeResult",
    "Tokenizer",
    "TokenizerOptions",
    "number_to_words",
    "tokenize",
    "validate_word",
]
