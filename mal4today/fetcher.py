import asyncio
import logging
from typing import Optional
from urllib.parse import urljoin

import aiohttp
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from . import constants
from .errors import FetchError, FetchErrorKind

logger = logging.getLogger(__name__)


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, FetchError) and exc.transient


class Fetcher:
    """HTTP GET with retries for transient failures."""
    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str = constants.MAL_DOMAIN,
        attempts: int = constants.DEFAULT_RETRY_ATTEMPTS,
        backoff: float = constants.DEFAULT_RETRY_BACKOFF,
        timeout: float = constants.DEFAULT_TIMEOUT,
    ):
        if session is None:
            raise ValueError("ClientSession cannot be None for the fetcher")
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self._session = session
        self.base_url = base_url
        self.attempts = attempts
        self.backoff = backoff
        self.timeout = timeout

    def absolute_url(self, url: str) -> str:
        return urljoin(self.base_url, url)

    async def fetch(self, url: str, timeout: Optional[float] = None) -> bytes:
        """
        Fetches `url` and returns the response body.

        Timeouts, connection failures and 5xx responses are retried with
        exponential backoff, up to `attempts` tries in total. 4xx responses
        are raised immediately.

        Raises:
            FetchError: when the request fails permanently or retries run out.
        """
        target = self.absolute_url(url)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.backoff, max=30),
            retry=retry_if_exception(_is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._fetch_once(target, timeout or self.timeout)

    async def _fetch_once(self, url: str, timeout: float) -> bytes:
        try:
            async with self._session.request(
                "GET",
                url,
                timeout=aiohttp.ClientTimeout(total=timeout),
                allow_redirects=True,
            ) as response:
                if response.status >= 400:
                    logger.debug(f"Request to {url} failed (Status: {response.status})")
                    raise FetchError(url, FetchErrorKind.HTTP_STATUS, status=response.status)
                body = await response.read()
                logger.debug(f"Request to {url} succeeded (Status: {response.status}, {len(body)} bytes)")
                return body
        except asyncio.TimeoutError as e:
            raise FetchError(url, FetchErrorKind.TIMEOUT, message=str(e)) from e
        except aiohttp.ClientError as e:
            raise FetchError(url, FetchErrorKind.NETWORK_FAILURE, message=str(e)) from e
