"""Tests for data models."""

import pytest
from pydantic import ValidationError as PydanticValidationError
from datetime import datetime

from card_ingest.models import (
    BackfillFilter,
    BulkAddRequest,
    BulkAddResult,
    Card,
    Failure,
    FailureStage,
    ImageOutcome,
    TranslationOutcome,
)


def test_card_creation():
    """Test Card creation and default values."""
    card = Card(id="card_1", text="apple")

    assert card.type == "word"
    assert card.text == "apple"
    assert card.translation is None
    assert card.image_url is None
    assert card.tags == []
    assert card.category_ids == []
    assert card.instruction_level_id is None
    assert isinstance(card.created_at, datetime)


def test_bulk_add_request_defaults():
    request = BulkAddRequest(words=["apple", "banana"])

    assert request.card_type == "word"
    assert request.category_ids == []
    assert request.instruction_level_id is None
    assert request.mark_as_review is True


def test_bulk_add_request_keeps_unsupported_card_type():
    """Card type is checked by the normalizer, not at construction."""
    request = BulkAddRequest(words=["a", "b"], card_type="number")
    assert request.card_type == "number"


def test_outcome_success_and_failure():
    ok = TranslationOutcome.ok("apple", "ཀུ་ཤུ", pronunciation="kushu")
    failed = ImageOutcome.failed("apple", "rate limited")

    assert ok.success is True
    assert ok.value == "ཀུ་ཤུ"
    assert ok.reason is None
    assert ok.pronunciation == "kushu"
    assert failed.success is False
    assert failed.value is None
    assert failed.reason == "rate limited"


def test_outcome_cannot_be_both():
    with pytest.raises(ValueError):
        ImageOutcome(item="apple", success=True, value="https://x", reason="oops")
    with pytest.raises(ValueError):
        TranslationOutcome(item="apple", success=False, value="x")


def test_failure_is_immutable():
    failure = Failure(item_key="apple", stage=FailureStage.TRANSLATE, reason="timeout")

    with pytest.raises(PydanticValidationError):
        failure.reason = "changed"
    assert failure.reason == "timeout"


def test_result_reconciliation():
    result = BulkAddResult(total_words=4, cards_created=2, duplicates_skipped=1)
    assert result.reconciled is False

    result.persist_errors.append(Failure(item_key="x", stage=FailureStage.PERSIST, reason="down"))
    assert result.reconciled is True


def test_backfill_filter_matches():
    card = Card(id="c1", type="phrase", text="good morning", category_ids=["greetings"], instruction_level_id="lvl1")

    assert BackfillFilter().matches(card)
    assert BackfillFilter(card_type="phrase", category_id="greetings", instruction_level_id="lvl1").matches(card)
    assert not BackfillFilter(card_type="word").matches(card)
    assert not BackfillFilter(category_id="food").matches(card)
    assert not BackfillFilter(instruction_level_id="lvl2").matches(card)
