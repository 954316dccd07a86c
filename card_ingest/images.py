"""Sequential, paced image generation."""

import asyncio
from typing import Awaitable, Callable, List, Optional, Tuple

import structlog

from .collaborators import ImageGenerator
from .config import ADD_IMAGE_DELAY
from .models import ImageOutcome

log = structlog.get_logger()


class ImageGenerationStage:
    """Generates images one at a time.

    The image provider enforces a single-flight rate limit, so calls are
    never overlapped and a fixed delay separates consecutive calls.
    """

    def __init__(
        self,
        generator: ImageGenerator,
        delay: float = ADD_IMAGE_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.generator = generator
        self.delay = delay
        self.sleep = sleep

    async def generate(self, key: str, prompt: str) -> ImageOutcome:
        """Generate one image. Failures come back as a failed outcome, never raised."""
        try:
            result = await self.generator.generate(prompt.strip())
        except Exception as e:
            log.error("Image generation failed", item=key, error=str(e))
            return ImageOutcome.failed(key, str(e) or "Image generation error")

        if not result.success or not result.image_url:
            reason = result.error or "Image generation failed"
            log.warning("Image generation failed", item=key, error=reason)
            return ImageOutcome.failed(key, reason)

        log.info("Image generated", item=key, provider=result.provider)
        return ImageOutcome.ok(key, result.image_url)

    async def pause(self) -> None:
        await self.sleep(self.delay)

    async def run(
        self,
        items: List[Tuple[str, str]],
        on_item: Optional[Callable[[int], None]] = None,
    ) -> List[ImageOutcome]:
        """Generate an image for each ``(key, prompt)`` pair, in order."""
        outcomes: List[ImageOutcome] = []
        for i, (key, prompt) in enumerate(items):
            outcomes.append(await self.generate(key, prompt))
            if on_item:
                on_item(i + 1)

            if i < len(items) - 1:  # no delay after the last one
                await self.pause()

        log.info(
            "Image generation completed",
            count=len(items),
            failed=sum(1 for outcome in outcomes if not outcome.success),
        )
        return outcomes
