"""OpenAI image generation client."""

import asyncio
from typing import Optional

import openai
import structlog

from .collaborators import ImageGenerator
from .config import IMAGE_MODEL, IMAGE_SIZE, OPENAI_API_KEY
from .models import ImageResult
from .prompts import IMAGE_PROMPT

VALID_IMAGE_SIZES = {"1024x1024", "1792x1024", "1024x1792"}  # DALL-E 3 limits

log = structlog.get_logger()


class OpenAIImageGenerator(ImageGenerator):
    """Generates one image per call and returns the hosted URL.

    No retries here: callers pace image calls themselves.
    """

    def __init__(self, api_key: Optional[str] = OPENAI_API_KEY, model: str = IMAGE_MODEL,
                 size: str = IMAGE_SIZE, client: Optional[openai.OpenAI] = None):
        if size not in VALID_IMAGE_SIZES:
            raise ValueError(f"Unsupported DALL-E size {size!r}")
        self.api_key = api_key
        self.model = model
        self.size = size
        self._client = client

    @property
    def client(self) -> openai.OpenAI:
        # Created on first use so a missing key only matters when images are requested
        if self._client is None:
            self._client = openai.OpenAI(api_key=self.api_key)
        return self._client

    async def generate(self, prompt: str) -> ImageResult:
        if not prompt or not prompt.strip():
            return ImageResult(success=False, error="Prompt is required")

        try:
            client = self.client
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                None,
                lambda: client.images.generate(
                    model=self.model,
                    prompt=IMAGE_PROMPT.format(subject=prompt.strip()),
                    size=self.size,
                    response_format="url",
                    n=1,
                    timeout=120,
                )
            )
        except openai.APIStatusError as e:
            log.error("Image generation failed", status=e.status_code, error=e.message, prompt=prompt, model=self.model)
            return ImageResult(success=False, error=e.message, status=e.status_code)
        except openai.OpenAIError as e:
            log.error("Image generation failed", error=str(e), prompt=prompt, model=self.model)
            return ImageResult(success=False, error=str(e) or "Image generation request failed")

        # Validate schema
        if not getattr(response, "data", None) or not getattr(response.data[0], "url", None):
            log.error("Image generation response missing url", prompt=prompt, model=self.model)
            return ImageResult(success=False, error="Image generation response missing url")

        return ImageResult(success=True, image_url=response.data[0].url, provider=self.model)
