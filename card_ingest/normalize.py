"""Word normalization and request validation."""

from typing import Iterable, List

from .config import MAX_WORDS, MIN_WORDS, SUPPORTED_CARD_TYPES
from .errors import ValidationError
from .models import BulkAddRequest


def normalize_words(raw: Iterable[str]) -> List[str]:
    """Trim every entry and drop the blank ones, preserving order."""
    return [word.strip() for word in raw if word and word.strip()]


def match_key(word: str) -> str:
    """Key used to compare words for duplicates: case and whitespace insensitive."""
    return " ".join(word.split()).lower()


def validate_request(request: BulkAddRequest) -> List[str]:
    """Return the request's normalized words or raise ``ValidationError``."""
    words = normalize_words(request.words)
    if len(words) < MIN_WORDS:
        raise ValidationError(f"At least {MIN_WORDS} words are required")
    if len(words) > MAX_WORDS:
        raise ValidationError(f"Maximum {MAX_WORDS} words allowed")

    if request.card_type not in SUPPORTED_CARD_TYPES:
        raise ValidationError(
            f"Card type must be one of {', '.join(SUPPORTED_CARD_TYPES)}, got {request.card_type!r}"
        )
    return words
