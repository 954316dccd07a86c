"""Tests for the image backfill pipeline."""

import asyncio

import pytest

from card_ingest.backfill import (
    BackfillState,
    BulkImageBackfillPipeline,
    CancellationToken,
    filter_cards_needing_images,
    image_prompt_for,
    run_backfill,
)
from card_ingest.models import BackfillFilter, Card, FailureStage, StoreResult
from card_ingest.retry import RetryPolicy
from tests.conftest import FakeImageGenerator, FakeStore


def make_cards(n, **overrides):
    return [Card(id=f"c{i}", text=f"word{i}", **overrides) for i in range(n)]


def make_pipeline(store, generator, sleep):
    return BulkImageBackfillPipeline(
        store,
        generator,
        retry_policy=RetryPolicy(max_retries=1, initial_delay=0.5, sleep=sleep),
        sleep=sleep,
    )


def run(pipeline, cards, backfill_filter=None, token=None):
    progress, summaries = [], []
    asyncio.run(pipeline.run(cards, backfill_filter, on_progress=progress.append, on_complete=summaries.append, token=token))
    assert len(summaries) == 1
    return progress, summaries[0]


def test_image_prompt_priority():
    assert image_prompt_for(Card(id="1", text="apple", back_english="x", front="y")) == "apple"
    assert image_prompt_for(Card(id="2", back_english="pear", front="y")) == "pear"
    assert image_prompt_for(Card(id="3", front="fig")) == "fig"
    assert image_prompt_for(Card(id="4")) is None


def test_filter_selects_word_and_phrase_cards_without_images():
    cards = [
        Card(id="word", type="word", text="apple"),
        Card(id="phrase", type="phrase", text="good morning"),
        Card(id="number", type="number", front="1"),
        Card(id="has-image", type="word", text="pear", image_url="https://img/pear.png"),
        Card(id="no-prompt", type="word", text="  "),
        Card(id="legacy", type="word", back_english="fig"),
    ]

    eligible = filter_cards_needing_images(cards)

    assert [card.id for card in eligible] == ["word", "phrase", "legacy"]


def test_filter_applies_type_category_and_level():
    cards = [
        Card(id="a", type="word", text="a", category_ids=["food"], instruction_level_id="l1"),
        Card(id="b", type="phrase", text="b", category_ids=["food"], instruction_level_id="l1"),
        Card(id="c", type="word", text="c", category_ids=["travel"], instruction_level_id="l1"),
        Card(id="d", type="word", text="d", category_ids=["food"], instruction_level_id="l2"),
    ]

    eligible = filter_cards_needing_images(
        cards, BackfillFilter(card_type="word", category_id="food", instruction_level_id="l1")
    )

    assert [card.id for card in eligible] == ["a"]


def test_generates_and_persists_each_card(recording_sleep):
    cards = make_cards(3)
    store = FakeStore(cards=cards)
    generator = FakeImageGenerator()
    pipeline = make_pipeline(store, generator, recording_sleep)

    progress, summary = run(pipeline, cards)

    assert generator.calls == ["word0", "word1", "word2"]
    assert store.calls == ["upsert_one:c0", "upsert_one:c1", "upsert_one:c2"]
    assert store.cards["c1"].image_url == "https://img.test/word1.png"
    assert summary.completed == 3
    assert summary.failed == 0
    assert summary.total == 3
    assert summary.cancelled is False
    assert pipeline.state == BackfillState.COMPLETED
    assert recording_sleep.delays == [0.2, 0.2]
    assert [snapshot.current for snapshot in progress] == [0, 1, 2, 3]
    assert [snapshot.details["card_id"] for snapshot in progress] == ["c0", "c1", "c2", None]


def test_input_cards_are_not_mutated(recording_sleep):
    cards = make_cards(2)
    pipeline = make_pipeline(FakeStore(cards=cards), FakeImageGenerator(), recording_sleep)

    run(pipeline, cards)

    assert all(card.image_url is None for card in cards)


def test_image_failure_is_isolated(recording_sleep):
    cards = make_cards(3)
    store = FakeStore(cards=cards)
    pipeline = make_pipeline(store, FakeImageGenerator(fail_for={"word1"}), recording_sleep)

    _, summary = run(pipeline, cards)

    assert summary.completed == 2
    assert summary.failed == 1
    assert summary.failures[0].card_id == "c1"
    assert summary.failures[0].item_key == "word1"
    assert summary.failures[0].stage == FailureStage.IMAGE
    assert "upsert_one:c1" not in store.calls


def test_persist_failure_is_isolated(recording_sleep):
    cards = make_cards(3)
    store = FakeStore(cards=cards)
    store.upsert_failures["c0"] = StoreResult(success=False, error="row locked", status=409)
    pipeline = make_pipeline(store, FakeImageGenerator(), recording_sleep)

    _, summary = run(pipeline, cards)

    assert summary.completed == 2
    assert summary.failed == 1
    assert summary.failures[0].stage == FailureStage.PERSIST
    assert summary.failures[0].reason == "row locked"
    assert store.cards["c2"].image_url is not None


def test_transient_persist_failure_is_retried(recording_sleep):
    cards = make_cards(1)
    store = FakeStore(cards=cards)
    replies = [StoreResult(success=False, error="Service unavailable", status=503)]
    original = store.upsert_one

    async def flaky_upsert(card):
        if replies:
            store.calls.append(f"upsert_one:{card.id}")
            return replies.pop(0)
        return await original(card)

    store.upsert_one = flaky_upsert
    pipeline = make_pipeline(store, FakeImageGenerator(), recording_sleep)

    _, summary = run(pipeline, cards)

    assert summary.completed == 1
    assert store.calls == ["upsert_one:c0", "upsert_one:c0"]
    assert recording_sleep.delays == [0.5]


def test_cancellation_stops_after_current_item(recording_sleep):
    cards = make_cards(5)
    store = FakeStore(cards=cards)
    token = CancellationToken()

    def cancel_on_second(prompt):
        if prompt == "word1":
            token.cancel()

    generator = FakeImageGenerator(on_call=cancel_on_second)
    pipeline = make_pipeline(store, generator, recording_sleep)

    progress, summary = run(pipeline, cards, token=token)

    assert generator.calls == ["word0", "word1"]
    assert summary.completed == 2  # the in-flight item still finishes
    assert summary.failed == 0
    assert summary.total == 5
    assert summary.cancelled is True
    assert pipeline.state == BackfillState.CANCELLED
    assert store.cards["c1"].image_url is not None
    assert store.cards["c2"].image_url is None
    assert recording_sleep.delays == [0.2]
    assert progress[-1].current == 2


def test_token_set_before_start_processes_nothing(recording_sleep):
    cards = make_cards(3)
    token = CancellationToken()
    token.cancel()
    generator = FakeImageGenerator()
    pipeline = make_pipeline(FakeStore(cards=cards), generator, recording_sleep)

    _, summary = run(pipeline, cards, token=token)

    assert generator.calls == []
    assert summary.completed == 0
    assert summary.cancelled is True


def test_no_eligible_cards_completes_immediately(recording_sleep):
    cards = make_cards(2, image_url="https://img/x.png")
    pipeline = make_pipeline(FakeStore(cards=cards), FakeImageGenerator(), recording_sleep)

    _, summary = run(pipeline, cards)

    assert summary.total == 0
    assert summary.completed == 0
    assert pipeline.state == BackfillState.COMPLETED


def test_pipeline_runs_only_once(recording_sleep):
    pipeline = make_pipeline(FakeStore(), FakeImageGenerator(), recording_sleep)
    asyncio.run(pipeline.run([]))

    with pytest.raises(RuntimeError):
        asyncio.run(pipeline.run([]))


def test_run_backfill_convenience(recording_sleep):
    cards = make_cards(2, type="phrase") + make_cards(1, type="word")
    cards[2] = Card(id="w", type="word", text="lonely")
    store = FakeStore(cards=cards)
    summaries = []

    asyncio.run(run_backfill(
        cards,
        BackfillFilter(card_type="phrase"),
        store=store,
        image_generator=FakeImageGenerator(),
        on_complete=summaries.append,
        sleep=recording_sleep,
    ))

    assert summaries[0].total == 2
    assert summaries[0].completed == 2
    assert store.cards["w"].image_url is None
