"""Google Translate v2 client."""

import asyncio
from typing import Optional

import aiohttp
import structlog

from .collaborators import Translator
from .config import TRANSLATION_API_KEY, TRANSLATION_API_URL
from .models import TranslateResult

log = structlog.get_logger()


class GoogleTranslator(Translator):
    """Translates single items through the Google Cloud Translation REST API (supports Tibetan)."""

    def __init__(self, api_key: Optional[str] = TRANSLATION_API_KEY, api_url: str = TRANSLATION_API_URL,
                 timeout: float = 30.0):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def translate(self, text: str, from_lang: str, to_lang: str) -> TranslateResult:
        if not text or not text.strip():
            return TranslateResult(success=False, error="Text is required")

        if not self.api_key:
            log.warning("Translation API key not configured")
            return TranslateResult(
                success=False,
                error="Translation API key not configured. Set TRANSLATION_API_KEY or GOOGLE_TRANSLATE_API_KEY.",
            )

        body = {
            "q": text.strip(),
            "source": from_lang,
            "target": to_lang,
            "format": "text",
        }

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.api_url, params={"key": self.api_key}, json=body) as response:
                    data = await response.json(content_type=None)
                    if response.status != 200:
                        message = (data or {}).get("error", {}).get("message") if isinstance(data, dict) else None
                        log.error("Translation API request failed", status=response.status, error=message)
                        return TranslateResult(
                            success=False,
                            error=message or f"Translation failed (HTTP {response.status})",
                            status=response.status,
                        )
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            log.error("Translation request failed", error=str(e), text=text)
            return TranslateResult(success=False, error=str(e) or "Translation request failed")

        translations = (data.get("data") or {}).get("translations") if isinstance(data, dict) else None
        if not translations:
            return TranslateResult(success=False, error="Unexpected response format from Google Translate API")

        translated = translations[0].get("translatedText") or text
        log.debug("Translation completed", text=text, translated=translated)
        return TranslateResult(success=True, translated=translated)
