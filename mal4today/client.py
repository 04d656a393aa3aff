import asyncio
import logging
from datetime import date
from typing import List, Optional, Union

import aiohttp
from pydantic import BaseModel, Field

from .anime.parser import MALAnimeParser
from .animelist.parser import MALAnimeListParser
from .config import Settings, get_settings
from .constants import DayOfWeek
from .extractor import MarkupExtractor
from .fetcher import Fetcher
from .normalizer import DateFormatSpec
from .scheduler import AiringScheduler
from .types import Decision, WatchListEntry

logger = logging.getLogger(__name__)


class AiringReport(BaseModel):
    """Result of one run for one user."""
    username: str
    reference_day: DayOfWeek
    entries: List[WatchListEntry] = Field(default_factory=list)
    decisions: List[Decision] = Field(default_factory=list)

    @property
    def airing(self) -> List[Decision]:
        return [decision for decision in self.decisions if decision.airs_today]


class AiringTodayClient:
    """
    Entry point: answers "what on this user's list airs today?".

    Use as an async context manager; it owns the HTTP session unless one is
    passed in.

        async with AiringTodayClient() as client:
            report = await client.airing_today("user", "DD-MM-YYYY")
    """
    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timezone: Optional[str] = None,
    ):
        self.settings = settings or get_settings()
        self.timezone = timezone
        self._session = session
        self._owns_session = session is None
        self._list_parser: Optional[MALAnimeListParser] = None
        self._anime_parser: Optional[MALAnimeParser] = None
        self._scheduler: Optional[AiringScheduler] = None

    async def __aenter__(self) -> "AiringTodayClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": self.settings.user_agent},
                timeout=aiohttp.ClientTimeout(total=self.settings.request_timeout),
            )
            logger.debug("HTTP session created")
        self._build()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if not self._owns_session or self._session is None:
            return
        if not self._session.closed:
            await self._session.close()
            logger.debug("HTTP session closed")
        self._session = None

    def _build(self) -> None:
        fetcher = Fetcher(
            self._session,
            base_url=self.settings.base_url,
            attempts=self.settings.retry_attempts,
            backoff=self.settings.retry_backoff,
            timeout=self.settings.request_timeout,
        )
        extractor = MarkupExtractor()
        self._list_parser = MALAnimeListParser(fetcher, extractor, list_status=self.settings.list_status)
        self._anime_parser = MALAnimeParser(fetcher, extractor)
        self._scheduler = AiringScheduler(
            self._anime_parser,
            max_concurrency=self.settings.max_concurrency,
            run_timeout=self.settings.run_timeout,
            timezone=self.timezone,
            source_timezone=self.settings.broadcast_timezone,
        )

    @property
    def anime_list(self) -> MALAnimeListParser:
        if self._list_parser is None:
            raise RuntimeError("Client is not open; use 'async with AiringTodayClient()'")
        return self._list_parser

    @property
    def anime(self) -> MALAnimeParser:
        if self._anime_parser is None:
            raise RuntimeError("Client is not open; use 'async with AiringTodayClient()'")
        return self._anime_parser

    async def airing_today(
        self,
        username: str,
        date_format: Union[str, DateFormatSpec, None] = None,
        reference_day: Optional[DayOfWeek] = None,
        reference_date: Optional[date] = None,
        stop: Optional[asyncio.Event] = None,
    ) -> AiringReport:
        """
        Decides, for every anime on `username`'s list, whether it airs on
        `reference_day` (today by default).

        Raises:
            ListError: if the user's list page cannot be read.
            ParseError: if `date_format` is not a usable pattern.
        """
        if isinstance(date_format, str):
            date_format = DateFormatSpec.parse(date_format)
        reference_date = reference_date or date.today()
        reference_day = reference_day or DayOfWeek.from_date(reference_date)

        entries = await self.anime_list.parse(username, date_format)
        if self._scheduler is None:
            raise RuntimeError("Client is not open; use 'async with AiringTodayClient()'")
        decisions = await self._scheduler.run(entries, reference_day, reference_date, stop=stop)
        logger.info(f"{sum(d.airs_today for d in decisions)} of {len(decisions)} anime on '{username}'s list air on {reference_day.value}")
        return AiringReport(username=username, reference_day=reference_day, entries=entries, decisions=decisions)
