"""Retry with exponential backoff for calls to the persistence services."""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import aiohttp
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .config import (
    RETRY_BACKOFF_MULTIPLIER,
    RETRY_INITIAL_DELAY,
    RETRY_MAX_DELAY,
    RETRY_MAX_RETRIES,
)
from .errors import RemoteCallError
from .models import StoreResult, TagResult

log = structlog.get_logger()

TRANSIENT_MESSAGE_MARKERS = ("network", "timeout", "fetch")


def is_transient(error: BaseException) -> bool:
    """Classify a failure as worth retrying.

    Remote 429 and 5xx replies are transient, any other 4xx is permanent.
    Without a status, connection and timeout errors are transient.
    """
    status = getattr(error, "status", None)
    if isinstance(status, int):
        if status == 429 or status >= 500:
            return True
        if 400 <= status < 500:
            return False

    if isinstance(error, (aiohttp.ClientConnectionError, asyncio.TimeoutError, ConnectionError)):
        return True

    message = str(error).lower()
    return any(marker in message for marker in TRANSIENT_MESSAGE_MARKERS)


def unwrap(result: Any, what: str) -> Any:
    """Turn an error reply from a collaborator into a ``RemoteCallError``."""
    if not result.success:
        raise RemoteCallError(result.error or f"{what} failed", status=result.status)
    if isinstance(result, TagResult):
        return result.tag
    if isinstance(result, StoreResult):
        return result.data
    return result


class RetryPolicy:
    """Retries a single async call on transient failures.

    The n-th retry (counting from zero) waits
    ``min(initial_delay * backoff_multiplier ** n, max_delay)`` seconds.
    Permanent failures and the last failure after ``max_retries`` retries are
    re-raised unchanged.
    """

    def __init__(
        self,
        max_retries: int = RETRY_MAX_RETRIES,
        initial_delay: float = RETRY_INITIAL_DELAY,
        max_delay: float = RETRY_MAX_DELAY,
        backoff_multiplier: float = RETRY_BACKOFF_MULTIPLIER,
        should_retry: Callable[[BaseException], bool] = is_transient,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_multiplier = backoff_multiplier
        self.should_retry = should_retry
        self.sleep = sleep

    def delay_for(self, attempt: int) -> float:
        return min(self.initial_delay * self.backoff_multiplier ** attempt, self.max_delay)

    def _log_retry(self, retry_state) -> None:
        log.warning(
            "Retrying remote call",
            attempt=retry_state.attempt_number,
            max_retries=self.max_retries,
            delay=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(retry_state.outcome.exception()),
        )

    async def call(self, fn: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(
                multiplier=self.initial_delay,
                exp_base=self.backoff_multiplier,
                max=self.max_delay,
            ),
            retry=retry_if_exception(self.should_retry),
            sleep=self.sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        result = None
        async for attempt in retrying:
            with attempt:
                result = await fn(*args, **kwargs)
        return result

    async def call_checked(self, fn: Callable[..., Awaitable[Any]], *args, what: Optional[str] = None) -> Any:
        """Call a collaborator method and unwrap its reply, retrying error replies too."""
        label = what or getattr(fn, "__name__", "remote call")

        async def _attempt():
            return unwrap(await fn(*args), label)

        return await self.call(_attempt)
