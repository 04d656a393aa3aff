"""Shared fixtures: an in-memory stand-in for aiohttp.ClientSession and ready-made parsers."""

import asyncio
from typing import Dict, List, Union

import pytest

from mal4today.anime.parser import MALAnimeParser
from mal4today.animelist.parser import MALAnimeListParser
from mal4today.config import Settings
from mal4today.fetcher import Fetcher

MAL = "https://myanimelist.net"


class FakeResponse:
    def __init__(self, session: "FakeSession", status: int, body: bytes, delay: float = 0):
        self._session = session
        self.status = status
        self.body = body
        self.delay = delay

    async def read(self) -> bytes:
        return self.body

    async def __aenter__(self) -> "FakeResponse":
        self._session.in_flight += 1
        self._session.max_in_flight = max(self._session.max_in_flight, self._session.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except BaseException:
            self._session.in_flight -= 1
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self._session.in_flight -= 1
        return False


Reply = Union[tuple, BaseException]


class FakeSession:
    """
    Serves canned replies per absolute URL.

    A reply is (status, body), (status, body, delay) or an exception to
    raise. Replies queued for a URL are served in order; the last one
    repeats. Unknown URLs answer 404.
    """
    def __init__(self):
        self.routes: Dict[str, List[Reply]] = {}
        self.calls: List[str] = []
        self.kwargs: List[dict] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    def add(self, url: str, *replies: Reply) -> "FakeSession":
        self.routes[url if url.startswith("http") else MAL + url] = list(replies)
        return self

    def request(self, method: str, url: str, **kwargs) -> FakeResponse:
        assert method == "GET"
        self.calls.append(url)
        self.kwargs.append(kwargs)
        queue = self.routes.get(url)
        if not queue:
            return FakeResponse(self, 404, b"<html><body>Not Found</body></html>")
        reply = queue[0] if len(queue) == 1 else queue.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        status, body, *rest = reply
        if isinstance(body, str):
            body = body.encode("utf-8")
        return FakeResponse(self, status, body, delay=rest[0] if rest else 0)

    def count(self, url: str) -> int:
        url = url if url.startswith("http") else MAL + url
        return self.calls.count(url)

    async def close(self) -> None:
        self.closed = True


# --- Fixtures

@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def fetcher(session) -> Fetcher:
    return Fetcher(session, attempts=3, backoff=0, timeout=5)


@pytest.fixture
def list_parser(fetcher) -> MALAnimeListParser:
    return MALAnimeListParser(fetcher)


@pytest.fixture
def anime_parser(fetcher) -> MALAnimeParser:
    return MALAnimeParser(fetcher)


@pytest.fixture
def settings() -> Settings:
    return Settings(retry_backoff=0, run_timeout=5, max_concurrency=5)
