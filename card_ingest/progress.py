"""Progress reporting and result aggregation for the add pipeline."""

from typing import Callable, List, Optional, Sequence

import structlog

from .models import (
    BulkAddResult,
    Card,
    Failure,
    FailureStage,
    ImageOutcome,
    ProgressSnapshot,
    Stage,
    TranslationOutcome,
)

log = structlog.get_logger()

STAGE_ORDER = list(Stage)

ProgressCallback = Callable[[ProgressSnapshot], None]


class ProgressReporter:
    """Emits progress snapshots in pipeline order.

    Stages only move forward and ``current`` never goes back within a stage.
    """

    def __init__(self, on_progress: Optional[ProgressCallback] = None):
        self.on_progress = on_progress
        self.stage: Optional[Stage] = None
        self.current = 0
        self.total = 0

    def enter(self, stage: Stage, total: int) -> None:
        if self.stage is not None and STAGE_ORDER.index(stage) <= STAGE_ORDER.index(self.stage):
            raise RuntimeError(f"Stage {stage.value} cannot follow {self.stage.value}")
        self.stage = stage
        self.current = 0
        self.total = total
        self._emit()

    def advance(self, current: int) -> None:
        if self.stage is None:
            raise RuntimeError("advance() called before any stage was entered")
        if current < self.current:
            return
        self.current = min(current, self.total)
        self._emit()

    def _emit(self) -> None:
        if self.on_progress:
            self.on_progress(ProgressSnapshot(stage=self.stage, current=self.current, total=self.total))


class ResultAggregator:
    """Collects per-item outcomes from every stage into one ``BulkAddResult``.

    Failure lists are append-only. Every normalized word ends up counted
    exactly once: created, duplicate, persist error or failed duplicate check.
    """

    def __init__(self, total_words: int):
        self.total_words = total_words
        self.duplicate_words: List[str] = []
        self.translation_failures: List[Failure] = []
        self.image_failures: List[Failure] = []
        self.persist_errors: List[Failure] = []
        self.duplicate_check_failures: List[Failure] = []
        self.created_cards: List[Card] = []

    def record_duplicates(self, words: Sequence[str]) -> None:
        self.duplicate_words.extend(words)

    def record_duplicate_check_failure(self, words: Sequence[str], reason: str) -> None:
        for word in words:
            self.duplicate_check_failures.append(
                Failure(item_key=word, stage=FailureStage.DUPLICATE, reason=reason)
            )

    def record_translations(self, outcomes: Sequence[TranslationOutcome]) -> None:
        for outcome in outcomes:
            if not outcome.success:
                self.translation_failures.append(
                    Failure(item_key=outcome.item, stage=FailureStage.TRANSLATE, reason=outcome.reason)
                )

    def record_images(self, outcomes: Sequence[ImageOutcome]) -> None:
        for outcome in outcomes:
            if not outcome.success:
                self.image_failures.append(
                    Failure(item_key=outcome.item, stage=FailureStage.IMAGE, reason=outcome.reason)
                )

    def record_persisted(self, submitted: Sequence[Card], saved: Sequence[Card]) -> None:
        """Record a successful batch write.

        Submitted cards missing from the store's reply count as persist
        errors; cards the store returned that were never submitted are ignored.
        """
        submitted_ids = {card.id for card in submitted}
        saved_by_id = {card.id: card for card in saved if card.id in submitted_ids}
        for card in submitted:
            if card.id in saved_by_id:
                self.created_cards.append(saved_by_id[card.id])
            else:
                self.persist_errors.append(
                    Failure(
                        item_key=card.text or card.id,
                        stage=FailureStage.PERSIST,
                        reason="Card missing from store reply",
                        card_id=card.id,
                    )
                )

    def record_persist_failure(self, cards: Sequence[Card], reason: str) -> None:
        for card in cards:
            self.persist_errors.append(
                Failure(item_key=card.text or card.id, stage=FailureStage.PERSIST, reason=reason, card_id=card.id)
            )

    def result(self) -> BulkAddResult:
        result = BulkAddResult(
            total_words=self.total_words,
            cards_created=len(self.created_cards),
            duplicates_skipped=len(self.duplicate_words),
            translation_failures=list(self.translation_failures),
            image_failures=list(self.image_failures),
            persist_errors=list(self.persist_errors),
            duplicate_check_failures=list(self.duplicate_check_failures),
            created_cards=list(self.created_cards),
            duplicate_words=list(self.duplicate_words),
        )
        if not result.reconciled:
            log.error(
                "Bulk add result does not reconcile",
                total_words=result.total_words,
                cards_created=result.cards_created,
                duplicates_skipped=result.duplicates_skipped,
                persist_errors=len(result.persist_errors),
            )
        return result
