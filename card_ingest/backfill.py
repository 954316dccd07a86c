"""Image backfill: generate images for stored cards that have none."""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, List, Optional

import structlog

from .collaborators import CardStore, ImageGenerator
from .config import BACKFILL_IMAGE_DELAY
from .images import ImageGenerationStage
from .models import (
    BackfillFilter,
    BackfillSummary,
    Card,
    Failure,
    FailureStage,
    ProgressSnapshot,
    Stage,
)
from .persist import Persister
from .progress import ProgressCallback
from .retry import RetryPolicy

log = structlog.get_logger()

IMAGE_CARD_TYPES = ("word", "phrase")


class CancellationToken:
    """Cooperative cancellation flag. Once set it stays set."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class BackfillState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def image_prompt_for(card: Card) -> Optional[str]:
    """Prompt used for a card's image: primary text, then the legacy fields."""
    return card.text or card.back_english or card.front or None


def filter_cards_needing_images(cards: List[Card], backfill_filter: Optional[BackfillFilter] = None) -> List[Card]:
    """Word and phrase cards without an image that match the filter and have prompt text."""
    backfill_filter = backfill_filter or BackfillFilter()
    eligible = []
    for card in cards:
        if card.type not in IMAGE_CARD_TYPES or card.image_url:
            continue
        if not backfill_filter.matches(card):
            continue
        prompt = image_prompt_for(card)
        if prompt and prompt.strip():
            eligible.append(card)
    return eligible


class BulkImageBackfillPipeline:
    """Re-runs image generation over existing cards, one card at a time.

    Each card is persisted on its own so a failed write only affects that
    card. The cancellation token is checked before every card; an in-flight
    call is always allowed to finish.
    """

    def __init__(
        self,
        store: CardStore,
        image_generator: ImageGenerator,
        retry_policy: Optional[RetryPolicy] = None,
        image_delay: float = BACKFILL_IMAGE_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.image_stage = ImageGenerationStage(image_generator, delay=image_delay, sleep=sleep)
        self.persister = Persister(store, retry_policy or RetryPolicy(sleep=sleep))
        self.state = BackfillState.IDLE

    async def run(
        self,
        cards: List[Card],
        backfill_filter: Optional[BackfillFilter] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_complete: Optional[Callable[[BackfillSummary], None]] = None,
        token: Optional[CancellationToken] = None,
    ) -> None:
        if self.state != BackfillState.IDLE:
            raise RuntimeError(f"Backfill already {self.state.value}")
        self.state = BackfillState.RUNNING

        # Computed once; cards updated during the run are not re-evaluated
        eligible = filter_cards_needing_images(cards, backfill_filter)
        summary = BackfillSummary(total=len(eligible))
        log.info("Starting image backfill", eligible=len(eligible), total_cards=len(cards))

        processed = 0
        for i, card in enumerate(eligible):
            if token is not None and token.cancelled:
                summary.cancelled = True
                log.info("Image backfill cancelled", processed=processed, remaining=len(eligible) - i)
                break

            if on_progress:
                on_progress(self._snapshot(i, summary, card))

            prompt = image_prompt_for(card)
            outcome = await self.image_stage.generate(card.id, prompt)
            if outcome.success:
                try:
                    await self.persister.save_one(card.model_copy(update={"image_url": outcome.value}))
                    summary.completed += 1
                except Exception as e:
                    log.error("Failed to save card", card_id=card.id, error=str(e))
                    summary.failures.append(
                        Failure(item_key=prompt, stage=FailureStage.PERSIST, reason=str(e) or "Failed to save card", card_id=card.id)
                    )
                    summary.failed += 1
            else:
                summary.failures.append(
                    Failure(item_key=prompt, stage=FailureStage.IMAGE, reason=outcome.reason, card_id=card.id)
                )
                summary.failed += 1
            processed += 1

            if i < len(eligible) - 1 and not (token is not None and token.cancelled):
                await self.image_stage.pause()

        if on_progress:
            on_progress(self._snapshot(processed, summary, None))

        self.state = BackfillState.CANCELLED if summary.cancelled else BackfillState.COMPLETED
        log.info(
            "Image backfill finished",
            state=self.state.value,
            completed=summary.completed,
            failed=summary.failed,
            total=summary.total,
        )
        if on_complete:
            on_complete(summary)

    @staticmethod
    def _snapshot(current: int, summary: BackfillSummary, card: Optional[Card]) -> ProgressSnapshot:
        return ProgressSnapshot(
            stage=Stage.GENERATING_IMAGES,
            current=current,
            total=summary.total,
            details={
                "completed": summary.completed,
                "failed": summary.failed,
                "card_id": card.id if card else None,
            },
        )


async def run_backfill(
    cards: List[Card],
    backfill_filter: Optional[BackfillFilter] = None,
    *,
    store: CardStore,
    image_generator: ImageGenerator,
    on_progress: Optional[ProgressCallback] = None,
    on_complete: Optional[Callable[[BackfillSummary], None]] = None,
    token: Optional[CancellationToken] = None,
    **options,
) -> None:
    """Convenience function to run one backfill; the summary goes to ``on_complete``."""
    pipeline = BulkImageBackfillPipeline(store, image_generator, **options)
    await pipeline.run(cards, backfill_filter, on_progress=on_progress, on_complete=on_complete, token=token)
