"""Bulk add pipeline: raw words in, translated and illustrated cards out."""

import asyncio
import time
from typing import Awaitable, Callable, List, Optional

import structlog

from .collaborators import CardStore, ImageGenerator, TagStore, Translator
from .config import (
    ADD_IMAGE_DELAY,
    SOURCE_LANG,
    TARGET_LANG,
    TRANSLATION_BATCH_DELAY,
    TRANSLATION_BATCH_SIZE,
)
from .duplicates import DuplicateDetector
from .errors import TagCreationError
from .images import ImageGenerationStage
from .models import BulkAddRequest, BulkAddResult, Stage
from .normalize import validate_request
from .persist import Persister, build_card
from .progress import ProgressCallback, ProgressReporter, ResultAggregator
from .retry import RetryPolicy
from .tags import TagEnsurer
from .translation import TranslationCache, TranslationStage

log = structlog.get_logger()


class BulkAddPipeline:
    """Drives a bulk add request through every stage.

    validating -> checking-duplicates -> translating -> generating-images ->
    persisting. Only ``ValidationError`` escapes ``submit``; every other
    failure ends up in the returned ``BulkAddResult``.
    """

    def __init__(
        self,
        store: CardStore,
        tags: TagStore,
        translator: Translator,
        image_generator: ImageGenerator,
        retry_policy: Optional[RetryPolicy] = None,
        translation_batch_size: int = TRANSLATION_BATCH_SIZE,
        translation_batch_delay: float = TRANSLATION_BATCH_DELAY,
        image_delay: float = ADD_IMAGE_DELAY,
        from_lang: str = SOURCE_LANG,
        to_lang: str = TARGET_LANG,
        cache: Optional[TranslationCache] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.retry_policy = retry_policy or RetryPolicy(sleep=sleep)
        self.detector = DuplicateDetector(store, self.retry_policy)
        self.tag_ensurer = TagEnsurer(tags, self.retry_policy)
        self.translation_stage = TranslationStage(
            translator,
            batch_size=translation_batch_size,
            batch_delay=translation_batch_delay,
            from_lang=from_lang,
            to_lang=to_lang,
            cache=cache,
            sleep=sleep,
        )
        self.image_stage = ImageGenerationStage(image_generator, delay=image_delay, sleep=sleep)
        self.persister = Persister(store, self.retry_policy)

    async def submit(
        self,
        request: BulkAddRequest,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BulkAddResult:
        reporter = ProgressReporter(on_progress)
        t0 = time.perf_counter()

        # Validation happens before any collaborator is touched
        words = validate_request(request)
        reporter.enter(Stage.VALIDATING, len(words))
        reporter.advance(len(words))

        aggregator = ResultAggregator(total_words=len(words))
        log.info("Starting bulk add", word_count=len(words), card_type=request.card_type)

        # Stage: duplicate check
        reporter.enter(Stage.CHECKING_DUPLICATES, len(words))
        try:
            check = await self.detector.check(words)
        except Exception as e:
            log.error("Duplicate check failed", error=str(e))
            aggregator.record_duplicate_check_failure(words, str(e) or "Duplicate check failed")
            return aggregator.result()
        aggregator.record_duplicates(check.duplicates)
        reporter.advance(len(words))

        new_words = check.new_words
        if not new_words:
            log.info("All words already exist", duplicates=len(check.duplicates))
            return aggregator.result()

        category_ids = await self._category_ids(request)

        # Stage: translation (batched)
        reporter.enter(Stage.TRANSLATING, len(new_words))
        translations = await self.translation_stage.run(new_words, on_batch=reporter.advance)
        aggregator.record_translations(translations)

        # Stage: image generation (sequential)
        reporter.enter(Stage.GENERATING_IMAGES, len(new_words))
        images = await self.image_stage.run(
            [(word, word) for word in new_words], on_item=reporter.advance
        )
        aggregator.record_images(images)

        # Stage: persistence (single batch, all or nothing)
        reporter.enter(Stage.PERSISTING, len(new_words))
        cards = [
            build_card(
                word,
                request.card_type,
                translations[i],
                images[i],
                category_ids,
                request.instruction_level_id,
            )
            for i, word in enumerate(new_words)
        ]
        try:
            saved = await self.persister.save_batch(cards)
        except Exception as e:
            log.error("Failed to save cards", count=len(cards), error=str(e))
            aggregator.record_persist_failure(cards, str(e) or "Failed to save cards")
            return aggregator.result()

        aggregator.record_persisted(cards, saved)
        reporter.advance(len(new_words))

        tag_failures = await self.persister.apply_tags(aggregator.created_cards, category_ids)
        if tag_failures:
            log.warning("Some category associations were not saved", failed=tag_failures)

        result = aggregator.result()
        log.info(
            "Bulk add completed",
            elapsed_ms=1000 * (time.perf_counter() - t0),
            total_words=result.total_words,
            cards_created=result.cards_created,
            duplicates_skipped=result.duplicates_skipped,
            translation_failures=len(result.translation_failures),
            image_failures=len(result.image_failures),
        )
        return result

    async def _category_ids(self, request: BulkAddRequest) -> List[str]:
        category_ids = list(request.category_ids)
        if not request.mark_as_review:
            return category_ids

        try:
            review_tag_id = await self.tag_ensurer.ensure()
        except TagCreationError as e:
            # Cards are still worth creating without the review tag
            log.error("Continuing without review tag", error=str(e))
            return category_ids

        if review_tag_id not in category_ids:
            category_ids.append(review_tag_id)
        return category_ids


async def submit_bulk_add(
    request: BulkAddRequest,
    *,
    store: CardStore,
    tags: TagStore,
    translator: Translator,
    image_generator: ImageGenerator,
    on_progress: Optional[ProgressCallback] = None,
    **options,
) -> BulkAddResult:
    """Convenience function to run one bulk add request."""
    pipeline = BulkAddPipeline(store, tags, translator, image_generator, **options)
    return await pipeline.submit(request, on_progress=on_progress)
