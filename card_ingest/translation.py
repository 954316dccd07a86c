"""Batched translation stage and the process-wide translation cache."""

import asyncio
import json
import time
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

import structlog

from .collaborators import Translator
from .config import (
    SOURCE_LANG,
    TARGET_LANG,
    TRANSLATION_BATCH_DELAY,
    TRANSLATION_BATCH_SIZE,
    TRANSLATION_CACHE_FILE,
    TRANSLATION_CACHE_TTL,
)
from .models import TranslationOutcome

log = structlog.get_logger()


class TranslationCache:
    """Remembers successful translations across runs.

    Hydrated lazily from a JSON file on first use and written back after
    every successful remote translation. Not locked: it is only touched from
    the event loop thread.
    """

    def __init__(self, path: Path = TRANSLATION_CACHE_FILE, ttl_seconds: float = TRANSLATION_CACHE_TTL.total_seconds()):
        self.path = Path(path)
        self.ttl_seconds = ttl_seconds
        self._entries: Optional[Dict[str, dict]] = None

    @staticmethod
    def key(text: str, from_lang: str, to_lang: str) -> str:
        return f"{from_lang}_{to_lang}_{text.lower().strip()}"

    def init(self) -> None:
        if self._entries is not None:
            return
        try:
            entries = json.loads(self.path.read_text(encoding="utf-8")) if self.path.exists() else {}
        except (OSError, ValueError) as e:
            log.error("Error loading translation cache", path=str(self.path), error=str(e))
            entries = {}
        if not isinstance(entries, dict):
            log.error("Error loading translation cache", path=str(self.path), error="not a JSON object")
            entries = {}
        self._entries = entries

    def flush(self) -> None:
        if self._entries is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._entries, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            log.error("Error saving translation cache", path=str(self.path), error=str(e))

    def clear(self) -> None:
        self._entries = {}
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            log.error("Error clearing translation cache", path=str(self.path), error=str(e))

    def get(self, text: str, from_lang: str, to_lang: str) -> Optional[dict]:
        self.init()
        entry = self._entries.get(self.key(text, from_lang, to_lang))
        # Malformed entries count as misses
        if not isinstance(entry, dict) or not isinstance(entry.get("translated"), str):
            return None
        timestamp = entry.get("timestamp")
        if not isinstance(timestamp, (int, float)) or time.time() - timestamp >= self.ttl_seconds:
            return None
        return entry

    def put(self, text: str, from_lang: str, to_lang: str, translated: str, pronunciation: Optional[str] = None) -> None:
        self.init()
        self._entries[self.key(text, from_lang, to_lang)] = {
            "translated": translated,
            "pronunciation": pronunciation,
            "timestamp": time.time(),
        }
        self.flush()


_cache = TranslationCache()


def get_translation_cache() -> TranslationCache:
    return _cache


class TranslationStage:
    """Translates words in fixed-size concurrent batches with a pause between batches."""

    def __init__(
        self,
        translator: Translator,
        batch_size: int = TRANSLATION_BATCH_SIZE,
        batch_delay: float = TRANSLATION_BATCH_DELAY,
        from_lang: str = SOURCE_LANG,
        to_lang: str = TARGET_LANG,
        cache: Optional[TranslationCache] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.translator = translator
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.from_lang = from_lang
        self.to_lang = to_lang
        self.cache = cache if cache is not None else get_translation_cache()
        self.sleep = sleep

    async def translate_one(self, word: str) -> TranslationOutcome:
        text = word.strip()
        cached = self.cache.get(text, self.from_lang, self.to_lang)
        if cached:
            return TranslationOutcome.ok(word, cached["translated"], pronunciation=cached.get("pronunciation"))

        try:
            result = await self.translator.translate(text, self.from_lang, self.to_lang)
        except Exception as e:
            log.warning("Translation error", word=word, error=str(e))
            return TranslationOutcome.failed(word, str(e) or "Translation error")

        if not result.success or not result.translated:
            return TranslationOutcome.failed(word, result.error or "Translation failed")

        self.cache.put(text, self.from_lang, self.to_lang, result.translated, result.pronunciation)
        return TranslationOutcome.ok(word, result.translated, pronunciation=result.pronunciation)

    async def run(
        self,
        words: List[str],
        on_batch: Optional[Callable[[int], None]] = None,
    ) -> List[TranslationOutcome]:
        """Translate ``words``; the i-th outcome always belongs to the i-th word."""
        outcomes: List[TranslationOutcome] = []

        for start in range(0, len(words), self.batch_size):
            batch = words[start:start + self.batch_size]
            batch_outcomes = await asyncio.gather(*(self.translate_one(word) for word in batch))
            outcomes.extend(batch_outcomes)

            failed = sum(1 for outcome in batch_outcomes if not outcome.success)
            log.info(
                "Translation batch completed",
                batch=start // self.batch_size + 1,
                size=len(batch),
                failed=failed,
            )
            if on_batch:
                on_batch(len(outcomes))

            # Pause between batches only
            if start + self.batch_size < len(words):
                await self.sleep(self.batch_delay)

        return outcomes
