"""Data models for the card ingestion pipelines."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Card(BaseModel):
    """A flashcard as stored by the persistence collaborator."""

    id: str
    type: str = "word"  # word | phrase | number
    text: Optional[str] = None  # primary (English) text, used for duplicate matching
    translation: Optional[str] = None
    pronunciation: Optional[str] = None
    front: str = ""  # legacy
    back_english: str = ""  # legacy
    image_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    category_ids: List[str] = Field(default_factory=list)
    instruction_level_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)


class Tag(BaseModel):
    """A category the cards can be associated with."""

    id: str
    name: str
    description: Optional[str] = None


class BulkAddRequest(BaseModel):
    """Raw words plus the classification to apply to every created card.

    ``card_type`` is a plain string: unsupported values are
    reported by the normalizer as a ``ValidationError`` rather than at
    construction time.
    """

    words: List[str]
    card_type: str = "word"
    category_ids: List[str] = Field(default_factory=list)
    instruction_level_id: Optional[str] = None
    mark_as_review: bool = True


class Stage(str, Enum):
    """Add pipeline stages, in the order they run."""

    VALIDATING = "validating"
    CHECKING_DUPLICATES = "checking-duplicates"
    TRANSLATING = "translating"
    GENERATING_IMAGES = "generating-images"
    PERSISTING = "persisting"


class FailureStage(str, Enum):
    DUPLICATE = "duplicate"
    TRANSLATE = "translate"
    IMAGE = "image"
    PERSIST = "persist"


class _Outcome(BaseModel):
    item: str
    success: bool
    value: Optional[str] = None
    reason: Optional[str] = None

    @model_validator(mode="after")
    def _one_side_only(self):
        if self.success and self.reason is not None:
            raise ValueError("a successful outcome cannot carry a failure reason")
        if not self.success and self.value is not None:
            raise ValueError("a failed outcome cannot carry a value")
        return self

    @classmethod
    def ok(cls, item: str, value: str, **extra):
        return cls(item=item, success=True, value=value, **extra)

    @classmethod
    def failed(cls, item: str, reason: str):
        return cls(item=item, success=False, reason=reason)


class TranslationOutcome(_Outcome):
    """Per-word translation result."""

    pronunciation: Optional[str] = None


class ImageOutcome(_Outcome):
    """Per-item image generation result; ``value`` is the image URL."""


class Failure(BaseModel):
    """One recorded per-item failure. Never mutated once recorded."""

    model_config = ConfigDict(frozen=True)

    item_key: str
    stage: FailureStage
    reason: str
    card_id: Optional[str] = None
    occurred_at: datetime = Field(default_factory=datetime.now)


class BulkAddResult(BaseModel):
    """Summary of one bulk add run."""

    total_words: int
    cards_created: int = 0
    duplicates_skipped: int = 0
    translation_failures: List[Failure] = Field(default_factory=list)
    image_failures: List[Failure] = Field(default_factory=list)
    persist_errors: List[Failure] = Field(default_factory=list)
    duplicate_check_failures: List[Failure] = Field(default_factory=list)
    created_cards: List[Card] = Field(default_factory=list)
    duplicate_words: List[str] = Field(default_factory=list)

    @property
    def reconciled(self) -> bool:
        """Every normalized word is accounted for exactly once."""
        return self.total_words == (
            self.cards_created
            + self.duplicates_skipped
            + len(self.persist_errors)
            + len(self.duplicate_check_failures)
        )


class ProgressSnapshot(BaseModel):
    stage: Stage
    current: int
    total: int
    details: Dict[str, Any] = Field(default_factory=dict)


class BackfillFilter(BaseModel):
    """Narrows the cards considered by the image backfill."""

    card_type: Optional[str] = None
    category_id: Optional[str] = None
    instruction_level_id: Optional[str] = None

    def matches(self, card: Card) -> bool:
        if self.card_type and card.type != self.card_type:
            return False
        if self.category_id and self.category_id not in card.category_ids:
            return False
        if self.instruction_level_id and card.instruction_level_id != self.instruction_level_id:
            return False
        return True


class BackfillSummary(BaseModel):
    completed: int = 0
    failed: int = 0
    total: int = 0
    failures: List[Failure] = Field(default_factory=list)
    cancelled: bool = False


# Collaborator replies

class StoreResult(BaseModel):
    success: bool
    data: Any = None
    error: Optional[str] = None
    status: Optional[int] = None


class TagResult(BaseModel):
    success: bool
    tag: Optional[Tag] = None
    error: Optional[str] = None
    status: Optional[int] = None


class TranslateResult(BaseModel):
    success: bool
    translated: Optional[str] = None
    pronunciation: Optional[str] = None
    error: Optional[str] = None
    status: Optional[int] = None


class ImageResult(BaseModel):
    success: bool
    image_url: Optional[str] = None
    provider: Optional[str] = None
    error: Optional[str] = None
    status: Optional[int] = None
