"""Duplicate detection against already stored cards."""

from dataclasses import dataclass, field
from typing import Iterable, List

import structlog

from .collaborators import CardStore
from .models import Card
from .normalize import match_key
from .retry import RetryPolicy

log = structlog.get_logger()


@dataclass
class DuplicateCheck:
    duplicates: List[str] = field(default_factory=list)  # original casing, for display
    new_words: List[str] = field(default_factory=list)


def partition_words(words: Iterable[str], existing_cards: Iterable[Card]) -> DuplicateCheck:
    """Split ``words`` into those already stored and those that are new.

    Words are only compared with stored cards, never with each other: a new
    word listed twice is reported as new twice.
    """
    existing = {match_key(card.text) for card in existing_cards if card.text and card.text.strip()}

    check = DuplicateCheck()
    for word in words:
        key = match_key(word)
        if not key:
            continue
        if key in existing:
            check.duplicates.append(word)
        else:
            check.new_words.append(word)
    return check


class DuplicateDetector:
    """Loads the stored cards once and partitions a word list against them."""

    def __init__(self, store: CardStore, retry_policy: RetryPolicy):
        self.store = store
        self.retry_policy = retry_policy

    async def check(self, words: List[str]) -> DuplicateCheck:
        cards = await self.retry_policy.call_checked(self.store.load_all, what="load cards")
        existing = [c if isinstance(c, Card) else Card.model_validate(c) for c in cards or []]
        check = partition_words(words, existing)
        log.info(
            "Duplicate check completed",
            stored_cards=len(existing),
            duplicates=len(check.duplicates),
            new_words=len(check.new_words),
        )
        return check
