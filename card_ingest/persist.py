"""Building card records and writing them through the card store."""

from typing import List, Optional

import structlog

from .collaborators import CardStore
from .models import Card, ImageOutcome, TranslationOutcome
from .retry import RetryPolicy
from .utils import generate_card_id

log = structlog.get_logger()

DEFAULT_TAGS = {"word": ["Word"], "phrase": ["Phrase"]}


def build_card(
    word: str,
    card_type: str,
    translation: Optional[TranslationOutcome],
    image: Optional[ImageOutcome],
    category_ids: List[str],
    instruction_level_id: Optional[str] = None,
) -> Card:
    """Merge a normalized word with its stage outputs into a new card.

    A failed (or missing) stage leaves the corresponding field empty.
    """
    translated = translation.value if translation and translation.success else None
    return Card(
        id=generate_card_id(),
        type=card_type,
        text=word.strip(),
        translation=translated,
        pronunciation=translation.pronunciation if translated else None,
        image_url=image.value if image and image.success else None,
        tags=list(DEFAULT_TAGS.get(card_type, [])),
        category_ids=list(category_ids),
        instruction_level_id=instruction_level_id,
    )


def _as_card(item) -> Card:
    return item if isinstance(item, Card) else Card.model_validate(item)


class Persister:
    """Card writes, each one retried on transient failures."""

    def __init__(self, store: CardStore, retry_policy: RetryPolicy):
        self.store = store
        self.retry_policy = retry_policy

    async def save_batch(self, cards: List[Card]) -> List[Card]:
        """Upsert all cards in a single call. Raises once retries are exhausted."""
        saved = await self.retry_policy.call_checked(self.store.batch_upsert, cards, what="save cards")
        saved_cards = [_as_card(item) for item in saved or []]
        log.info("Cards saved", submitted=len(cards), saved=len(saved_cards))
        return saved_cards

    async def save_one(self, card: Card) -> Card:
        saved = await self.retry_policy.call_checked(self.store.upsert_one, card, what="save card")
        return _as_card(saved) if saved is not None else card

    async def apply_tags(self, cards: List[Card], tag_ids: List[str]) -> int:
        """Associate every card with ``tag_ids``. Best effort: returns the number of failures."""
        if not cards or not tag_ids:
            return 0

        failures = 0
        for card in cards:
            try:
                await self.retry_policy.call_checked(
                    self.store.set_tag_associations, card.id, list(tag_ids), what="save card categories"
                )
            except Exception as e:
                failures += 1
                log.error("Error saving card categories", card_id=card.id, error=str(e))
        return failures
