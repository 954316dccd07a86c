"""Pytest configuration and fixtures."""

import asyncio
import hashlib
import os
import pathlib
from typing import Callable, Dict, List, Optional

import pytest
import vcr

from card_ingest.collaborators import CardStore, ImageGenerator, TagStore, Translator
from card_ingest.models import Card, ImageResult, StoreResult, Tag, TagResult, TranslateResult
from card_ingest.retry import RetryPolicy
from card_ingest.translation import TranslationCache

# Calculate hash of prompts.py for cassette invalidation
PROMPTS_HASH = hashlib.sha256(
    (pathlib.Path(__file__).parent.parent / "card_ingest" / "prompts.py").read_bytes()
).hexdigest()[:8]


def cassette(name: str) -> str:
    """Generate cassette filename with prompt hash."""
    return f"{name}_{PROMPTS_HASH}.yaml"


@pytest.fixture
def my_vcr():
    """VCR fixture for recording/replaying HTTP interactions."""
    return vcr.VCR(
        cassette_library_dir="tests/fixtures",
        filter_headers=[("authorization", "DUMMY")],
        filter_query_parameters=[("key", "DUMMY")],
        record_mode="once",
    )


def live_guard():
    """Check if live testing is enabled."""
    if not os.getenv("CARD_INGEST_LIVE"):
        pytest.skip("Live APIs disabled (set CARD_INGEST_LIVE=1)")


class RecordingSleep:
    """Stands in for asyncio.sleep; records the requested delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeStore(CardStore, TagStore):
    """In-memory card and tag store with scriptable failures."""

    def __init__(self, cards: Optional[List[Card]] = None, tags: Optional[List[Tag]] = None):
        self.cards: Dict[str, Card] = {card.id: card for card in cards or []}
        self.tags: List[Tag] = list(tags or [])
        self.associations: Dict[str, List[str]] = {}
        self.calls: List[str] = []
        # Each entry is a StoreResult returned (and consumed) before the real behaviour
        self.load_failures: List[StoreResult] = []
        self.batch_failures: List[StoreResult] = []
        self.upsert_failures: Dict[str, StoreResult] = {}
        self.tag_list_failure: Optional[StoreResult] = None
        self.tag_create_failure: Optional[TagResult] = None
        self.association_failure: Optional[StoreResult] = None

    async def load_all(self) -> StoreResult:
        self.calls.append("load_all")
        if self.load_failures:
            return self.load_failures.pop(0)
        return StoreResult(success=True, data=list(self.cards.values()))

    async def batch_upsert(self, cards: List[Card]) -> StoreResult:
        self.calls.append("batch_upsert")
        if self.batch_failures:
            return self.batch_failures.pop(0)
        for card in cards:
            self.cards[card.id] = card
        return StoreResult(success=True, data=list(cards))

    async def upsert_one(self, card: Card) -> StoreResult:
        self.calls.append(f"upsert_one:{card.id}")
        if card.id in self.upsert_failures:
            return self.upsert_failures[card.id]
        self.cards[card.id] = card
        return StoreResult(success=True, data=card)

    async def set_tag_associations(self, card_id: str, tag_ids: List[str]) -> StoreResult:
        self.calls.append(f"set_tag_associations:{card_id}")
        if self.association_failure:
            return self.association_failure
        self.associations[card_id] = list(tag_ids)
        return StoreResult(success=True)

    async def list(self) -> StoreResult:
        self.calls.append("list_tags")
        if self.tag_list_failure:
            return self.tag_list_failure
        return StoreResult(success=True, data=list(self.tags))

    async def create(self, name: str, description: str) -> TagResult:
        self.calls.append(f"create_tag:{name}")
        if self.tag_create_failure:
            return self.tag_create_failure
        tag = Tag(id=f"tag_{len(self.tags) + 1}", name=name, description=description)
        self.tags.append(tag)
        return TagResult(success=True, tag=tag)


class FakeTranslator(Translator):
    def __init__(self, fail_for=(), raise_for=()):
        self.fail_for = set(fail_for)
        self.raise_for = set(raise_for)
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def translate(self, text: str, from_lang: str, to_lang: str) -> TranslateResult:
        self.calls.append(text)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if text in self.raise_for:
                raise RuntimeError(f"boom: {text}")
            if text in self.fail_for:
                return TranslateResult(success=False, error=f"cannot translate {text}")
            return TranslateResult(success=True, translated=f"{to_lang}:{text}")
        finally:
            self.in_flight -= 1


class FakeImageGenerator(ImageGenerator):
    def __init__(self, fail_for=(), on_call: Optional[Callable[[str], None]] = None):
        self.fail_for = set(fail_for)
        self.on_call = on_call
        self.calls: List[str] = []

    async def generate(self, prompt: str) -> ImageResult:
        self.calls.append(prompt)
        if self.on_call:
            self.on_call(prompt)
        if prompt in self.fail_for:
            return ImageResult(success=False, error=f"no image for {prompt}")
        return ImageResult(success=True, image_url=f"https://img.test/{prompt}.png", provider="fake")


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def retry_policy(recording_sleep):
    return RetryPolicy(max_retries=3, initial_delay=1.0, max_delay=10.0, backoff_multiplier=2.0, sleep=recording_sleep)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def translator():
    return FakeTranslator()


@pytest.fixture
def image_generator():
    return FakeImageGenerator()


@pytest.fixture
def translation_cache(tmp_path):
    return TranslationCache(tmp_path / "translation_cache.json")


@pytest.fixture
def sample_words():
    """Sample English words for testing."""
    return ["apple", "banana", "cherry", "water"]
