"""Network tier: JSON documents fetched over HTTP with retry and backoff.

Provides:
- Retryability classification for fetch failures
- A Tenacity ``AsyncRetrying`` controller built from resolver settings
- :class:`NetworkSource`, an ``httpx.AsyncClient`` wrapper that enforces the
  per-attempt timeout and validates JSON responses
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import tenacity
from tenacity import RetryCallState, retry_if_exception

from ..errors import SourceFetchError
from ..keys import document_filename
from .config import ResolverSettings

LOGGER = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_BASE_URL",
    "FetchResult",
    "NetworkSource",
    "build_async_retrying",
    "is_retryable",
]

DEFAULT_BASE_URL = "https://developer.apple.com/tutorials/data/documentation/devicemanagement"

_DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "mdmspec/0.1 (+https://developer.apple.com/documentation/devicemanagement)",
}

_RETRYABLE_STATUSES = frozenset({408, 425, 429, 500, 502, 503, 504})

SleepFn = Callable[[float], Awaitable[None]]


def is_retryable(exception: BaseException) -> bool:
    """Decide whether a failed fetch attempt should be retried.

    A 404 and other client errors are final, as are responses that are not
    JSON. Timeouts, transport errors, and 5xx/429 responses are transient.
    """

    if isinstance(exception, SourceFetchError):
        return exception.retryable
    if isinstance(exception, (httpx.TimeoutException, httpx.TransportError, asyncio.TimeoutError)):
        return True
    return False


def _default_before_sleep_hook(retry_state: RetryCallState) -> None:
    next_action = retry_state.next_action
    if next_action is None:
        return
    wait_ms = int(next_action.sleep * 1000)
    outcome = retry_state.outcome
    error = outcome.exception() if outcome is not None else None
    LOGGER.warning(
        "retry attempt=%d wait_ms=%d error=%s",
        retry_state.attempt_number,
        wait_ms,
        error,
        extra={"stage": "resolve", "tier": "network", "attempt": retry_state.attempt_number},
    )


def build_async_retrying(
    settings: ResolverSettings,
    *,
    sleep: Optional[SleepFn] = None,
    before_sleep_hook: Optional[Callable[[RetryCallState], None]] = None,
) -> tenacity.AsyncRetrying:
    """Build the retry controller for one document fetch.

    The first attempt is followed by up to ``retry_attempts`` retries, waiting
    ``retry_delay_ms * 2 ** (n - 1)`` before retry ``n``.
    """

    return tenacity.AsyncRetrying(
        retry=retry_if_exception(is_retryable),
        stop=tenacity.stop_after_attempt(settings.retry_attempts + 1),
        wait=tenacity.wait_exponential(multiplier=settings.retry_delay_s, exp_base=2),
        sleep=sleep or asyncio.sleep,
        before_sleep=before_sleep_hook or _default_before_sleep_hook,
        reraise=True,
    )


@dataclass(frozen=True)
class FetchResult:
    name: str
    url: str
    document: Any
    attempts: int


class NetworkSource:
    """Fetch documentation JSON from the live documentation endpoint.

    Attributes:
        base_url: Endpoint prefix; documents live at ``<base_url>/<name>.json``.
        client: Optional preconfigured ``httpx.AsyncClient`` (tests pass one
            built on ``httpx.MockTransport``). When omitted, a client is
            created lazily and closed by :meth:`aclose`.
        sleep: Coroutine used for backoff waits.
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        client: Optional[httpx.AsyncClient] = None,
        headers: Optional[Dict[str, str]] = None,
        sleep: Optional[SleepFn] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None
        self._headers = {**_DEFAULT_HEADERS, **(headers or {})}
        self._sleep = sleep

    def url_for(self, name: str) -> str:
        return f"{self.base_url}/{document_filename(name)}"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(headers=self._headers, follow_redirects=True)
        return self._client

    async def _attempt(self, name: str, url: str, settings: ResolverSettings) -> Any:
        client = self._get_client()
        timeout_s = settings.request_timeout_s
        try:
            response = await asyncio.wait_for(
                client.get(url, headers=self._headers, timeout=timeout_s), timeout=timeout_s
            )
        except asyncio.TimeoutError as exc:
            raise SourceFetchError(
                name, f"timed out after {settings.request_timeout_ms} ms", retryable=True
            ) from exc
        except httpx.HTTPError as exc:
            raise SourceFetchError(name, f"request failed: {exc}", retryable=is_retryable(exc)) from exc
        return self._decode(name, response)

    @staticmethod
    def _decode(name: str, response: httpx.Response) -> Any:
        status = response.status_code
        if status >= 400:
            raise SourceFetchError(
                name,
                f"HTTP {status}",
                status_code=status,
                retryable=status in _RETRYABLE_STATUSES or status >= 500,
            )
        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type.lower():
            raise SourceFetchError(
                name,
                f"expected JSON, got {content_type or 'no content type'}",
                status_code=status,
                retryable=False,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise SourceFetchError(
                name, f"invalid JSON body: {exc}", status_code=status, retryable=True
            ) from exc

    async def fetch(self, name: str, settings: ResolverSettings) -> FetchResult:
        """Fetch ``name`` with retries.

        Raises:
            SourceFetchError: After the final failed attempt, carrying the
                number of attempts made.
        """

        url = self.url_for(name)
        attempts = 0
        retrying = build_async_retrying(settings, sleep=self._sleep)
        try:
            async for attempt in retrying:
                with attempt:
                    attempts += 1
                    document = await self._attempt(name, url, settings)
        except SourceFetchError as exc:
            exc.attempts = attempts
            raise
        LOGGER.info(
            "fetched %s in %d attempt(s)",
            url,
            attempts,
            extra={"stage": "resolve", "tier": "network", "document": name},
        )
        return FetchResult(name=name, url=url, document=document, attempts=attempts)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
