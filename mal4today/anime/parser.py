import logging
from typing import Optional

from bs4 import BeautifulSoup
from pydantic import ValidationError

from mal4today.base import BaseParser
from mal4today.errors import DetailError, DetailErrorKind, FetchError, ParseError
from mal4today.extractor import MarkupExtractor
from mal4today.fetcher import Fetcher
from mal4today.layouts import DETAIL_FIELDS
from mal4today.normalizer import parse_airing_status, parse_broadcast_time
from mal4today.types import BroadcastSchedule
from .. import constants
from ..constants import AiringStatus, DayOfWeek

logger = logging.getLogger(__name__)


class MALAnimeParser(BaseParser):
    def __init__(self, fetcher: Fetcher, extractor: Optional[MarkupExtractor] = None):
        super().__init__(fetcher, extractor)
        logger.info("Anime parser initialized")

    async def get_schedule(self, url: str, anime_id: Optional[int] = None) -> BroadcastSchedule:
        """
        Fetches an anime's details page and reads its broadcast schedule.

        Args:
            url: Details page URL, absolute or relative to MAL.
            anime_id: MAL ID of the anime; taken from the URL when omitted.

        Raises:
            DetailError: PAGE_UNAVAILABLE if the page cannot be fetched,
                STRUCTURAL_MISMATCH if it has no status field or no ID.
        """
        if anime_id is None:
            anime_id = self._extract_id_from_url(url, constants.ANIME_ID_PATTERN)
        if anime_id is None:
            raise DetailError(url, DetailErrorKind.STRUCTURAL_MISMATCH, "no anime ID in URL")

        logger.debug(f"Fetching details for anime ID {anime_id} from {url}")
        try:
            soup = await self._get_soup(url)
        except FetchError as e:
            logger.warning(f"Details page for anime ID {anime_id} unavailable: {e}")
            raise DetailError(url, DetailErrorKind.PAGE_UNAVAILABLE, str(e)) from e

        return self.parse_page(url, anime_id, soup)

    async def get(self, anime_id: int) -> BroadcastSchedule:
        """Reads the schedule of an anime by MAL ID."""
        if not anime_id or anime_id <= 0:
            raise ValueError("Invalid anime ID provided.")
        return await self.get_schedule(constants.ANIME_DETAILS_URL.format(anime_id=anime_id), anime_id)

    def parse_page(self, url: str, anime_id: int, page: BeautifulSoup) -> BroadcastSchedule:
        """Parses an already fetched details page. See `get_schedule`."""
        extraction = self._extractor.extract(page, DETAIL_FIELDS)
        status_text = extraction.get("status")
        if status_text is None:
            logger.warning(f"No status field on details page of anime ID {anime_id} ({url})")
            raise DetailError(url, DetailErrorKind.STRUCTURAL_MISMATCH, "status field not found")

        status = parse_airing_status(status_text)
        if status is AiringStatus.UNKNOWN:
            logger.warning(f"Unrecognized status '{status_text}' for anime ID {anime_id}")

        broadcast_text = extraction.get("broadcast")
        day, local_time, timezone = DayOfWeek.UNKNOWN, None, None
        if status is AiringStatus.AIRING:
            if broadcast_text:
                try:
                    day, local_time, timezone = parse_broadcast_time(broadcast_text)
                except ParseError as e:
                    logger.warning(f"Could not parse broadcast '{broadcast_text}' for anime ID {anime_id}: {e}")
            else:
                logger.warning(f"Airing anime ID {anime_id} has no broadcast field")

        try:
            schedule = BroadcastSchedule(
                anime_id=anime_id,
                day_of_week=day,
                local_time=local_time,
                timezone=timezone,
                status=status,
                raw_broadcast=broadcast_text,
            )
        except ValidationError as e:
            raise DetailError(url, DetailErrorKind.STRUCTURAL_MISMATCH, str(e)) from e
        logger.debug(f"Schedule for anime ID {anime_id}: {schedule.status.value}, {schedule.day_of_week.value} {schedule.local_time}")
        return schedule
