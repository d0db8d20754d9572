"""HTTP fetcher with classified failures, jittered exponential backoff and UA rotation.

Provides a small `Fetcher` object exposing `get` (one blocking attempt) and
`fetch` (awaitable, retried).
"""

from __future__ import annotations

import asyncio
import logging
import random
import socket
from typing import Awaitable, Callable, Dict, Iterator, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import NameResolutionError
from urllib3.util.retry import Retry

from reading_plan.core.config import DEFAULT_CONCURRENCY, FetchOptions
from reading_plan.core.errors import (
    FetchError,
    TerminalHttpError,
    TransientNetworkError,
)

logger = logging.getLogger(__name__)

DEFAULT_UA_POOL = [
    "Mozilla/5.0 (compatible; ReadingPlanBot/1.0; +https://example.org/bot)",
]
DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

JITTER_LOW = 0.8
JITTER_HIGH = 1.2


def _causes(exc: BaseException) -> Iterator[BaseException]:
    # requests wraps urllib3 errors which wrap socket errors; walk all of it
    seen = set()
    stack = [exc]
    while stack:
        e = stack.pop()
        if id(e) in seen:
            continue
        seen.add(id(e))
        yield e
        for nxt in (e.__cause__, e.__context__, getattr(e, "reason", None)):
            if isinstance(nxt, BaseException):
                stack.append(nxt)
        stack.extend(a for a in e.args if isinstance(a, BaseException))


def is_transient_connection_error(exc: BaseException) -> bool:
    """True for DNS resolution failures and connection resets."""
    return any(
        isinstance(e, (NameResolutionError, socket.gaierror, ConnectionResetError))
        for e in _causes(exc)
    )


class Fetcher:
    """Small HTTP client with retry rules tuned for polite scraping.

    Usage:
        f = Fetcher(FetchOptions(max_retries=3))
        html = await f.fetch(url)

    Retried: timeouts, DNS failures, connection resets, 429 and 5xx.
    Everything else fails on the first attempt.
    """

    def __init__(
        self,
        options: Optional[FetchOptions] = None,
        ua_pool: Optional[list[str]] = None,
        session: Optional[requests.Session] = None,
        pool_size: int = DEFAULT_CONCURRENCY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.options = options or FetchOptions()
        self.ua_pool = ua_pool or DEFAULT_UA_POOL
        self._sleep = sleep
        self._rng = rng or random.Random()
        if session is None:
            session = requests.Session()
            # Retries happen in `fetch`; the adapter only sizes the pool
            retry = Retry(total=0, read=False)
            adapter = HTTPAdapter(
                max_retries=retry, pool_connections=pool_size, pool_maxsize=pool_size
            )
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        self.session = session

    def _headers(self, headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        base = {
            "User-Agent": self._rng.choice(self.ua_pool),
            "Accept": DEFAULT_ACCEPT,
        }
        base.update(self.options.headers)
        if headers:
            base.update(headers)
        return base

    def backoff_delay(self, attempt: int) -> float:
        """Delay in seconds before retrying after 0-indexed `attempt`."""
        return (
            self.options.base_delay
            * (2**attempt)
            * self._rng.uniform(JITTER_LOW, JITTER_HIGH)
        )

    def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> str:
        """One GET attempt. Returns the body of a 2xx response or raises."""
        try:
            resp = self.session.get(
                url, headers=self._headers(headers), timeout=self.options.timeout
            )
        except requests.exceptions.Timeout as exc:
            raise TransientNetworkError(
                f"Timeout fetching {url}: {exc}", url=url, cause=exc
            ) from exc
        except requests.exceptions.ConnectionError as exc:
            if is_transient_connection_error(exc):
                raise TransientNetworkError(
                    f"Connection failed for {url}: {exc}", url=url, cause=exc
                ) from exc
            raise FetchError(
                f"Connection failed for {url}: {exc}", url=url, cause=exc
            ) from exc
        except requests.exceptions.RequestException as exc:
            # a reset while reading the body surfaces as ChunkedEncodingError
            if is_transient_connection_error(exc):
                raise TransientNetworkError(
                    f"Connection dropped reading {url}: {exc}", url=url, cause=exc
                ) from exc
            raise FetchError(f"Request failed for {url}: {exc}", url=url, cause=exc) from exc

        status = resp.status_code
        if 200 <= status < 300:
            return resp.text
        if status == 429 or 500 <= status <= 599:
            raise TransientNetworkError(f"HTTP {status} for {url}", status=status, url=url)
        raise TerminalHttpError(
            f"Non-retryable HTTP status {status} for {url}", status=status, url=url
        )

    async def fetch(self, url: str, headers: Optional[Dict[str, str]] = None) -> str:
        """GET `url` with up to `max_retries` retries on transient failures.

        The blocking request runs in a worker thread so many fetches can
        share one event loop. After the last retry the last error is raised.
        """
        max_retries = self.options.max_retries
        attempt = 0
        while True:
            try:
                return await asyncio.to_thread(self.get, url, headers)
            except TransientNetworkError as exc:
                if attempt >= max_retries:
                    logger.warning(
                        "Giving up on %s after %d attempts: %s", url, attempt + 1, exc
                    )
                    raise
                delay = self.backoff_delay(attempt)
                logger.warning(
                    "Attempt %d for %s failed (%s); retrying in %.2fs",
                    attempt + 1,
                    url,
                    exc,
                    delay,
                )
                await self._sleep(delay)
                attempt += 1

    def close(self) -> None:
        self.session.close()
