"""Contracts for the external services the pipelines drive.

The pipelines only ever talk to these interfaces. Replies carry a
``success`` flag instead of raising, mirroring the remote services they wrap;
implementations may still raise on transport errors and the callers cope
with both.
"""

from abc import ABC, abstractmethod
from typing import List

from .models import Card, ImageResult, StoreResult, TagResult, TranslateResult


class CardStore(ABC):
    """Persistence collaborator for cards."""

    @abstractmethod
    async def load_all(self) -> StoreResult:
        """Return every stored card in ``data``."""

    @abstractmethod
    async def batch_upsert(self, cards: List[Card]) -> StoreResult:
        """Insert or replace many cards; ``data`` holds the saved cards."""

    @abstractmethod
    async def upsert_one(self, card: Card) -> StoreResult:
        """Insert or replace a single card; ``data`` holds the saved card."""

    @abstractmethod
    async def set_tag_associations(self, card_id: str, tag_ids: List[str]) -> StoreResult:
        """Replace the tags associated with a card."""


class TagStore(ABC):
    """Category/tag collaborator."""

    @abstractmethod
    async def list(self) -> StoreResult:
        """Return every tag in ``data``."""

    @abstractmethod
    async def create(self, name: str, description: str) -> TagResult:
        pass


class Translator(ABC):

    @abstractmethod
    async def translate(self, text: str, from_lang: str, to_lang: str) -> TranslateResult:
        """Translate a single item. Callers impose their own batching and pacing."""


class ImageGenerator(ABC):

    @abstractmethod
    async def generate(self, prompt: str) -> ImageResult:
        """Generate one image. Callers impose sequential pacing."""
