import logging
from datetime import date
from typing import List, Optional, Sequence
from urllib.parse import quote

from bs4 import BeautifulSoup
from pydantic import ValidationError

from mal4today.base import BaseParser
from mal4today.errors import FetchError, ListError, ListErrorKind, ParseError
from mal4today.extractor import Extraction, MarkupExtractor
from mal4today.fetcher import Fetcher
from mal4today.layouts import LIST_LAYOUTS, ListLayout
from mal4today.normalizer import DateFormatSpec, parse_user_date
from mal4today.types import WatchListEntry
from .. import constants
from ..constants import AiringStatus

logger = logging.getLogger(__name__)


class MALAnimeListParser(BaseParser):
    def __init__(
        self,
        fetcher: Fetcher,
        extractor: Optional[MarkupExtractor] = None,
        list_status: int = constants.LIST_STATUS_WATCHING,
        layouts: Optional[Sequence[ListLayout]] = None,
    ):
        super().__init__(fetcher, extractor)
        self.list_status = list_status
        self.layouts = list(layouts) if layouts is not None else LIST_LAYOUTS
        logger.info("Anime list parser initialized")

    def list_url(self, username: str) -> str:
        return constants.ANIMELIST_URL.format(username=quote(username.strip()), status=self.list_status)

    async def parse(self, username: str, date_format: Optional[DateFormatSpec] = None) -> List[WatchListEntry]:
        """
        Fetches a user's list page and returns its entries in page order.

        A user with an empty list gets an empty result, not an error.

        Raises:
            ListError: USER_NOT_FOUND on a 404, PAGE_UNAVAILABLE when the page
                cannot be fetched, STRUCTURAL_MISMATCH when the page has no
                known list layout or none of its rows can be read.
        """
        if not username or not username.strip():
            raise ValueError("Username must not be empty")

        url = self.list_url(username)
        logger.info(f"Fetching anime list for user '{username}' from {url}")
        try:
            soup = await self._get_soup(url)
        except FetchError as e:
            if e.not_found:
                logger.error(f"User '{username}' not found ({url})")
                raise ListError(username, ListErrorKind.USER_NOT_FOUND) from e
            logger.error(f"Failed to fetch anime list for '{username}': {e}")
            raise ListError(username, ListErrorKind.PAGE_UNAVAILABLE, str(e)) from e

        return self.parse_page(username, soup, date_format)

    def parse_page(
        self,
        username: str,
        page: BeautifulSoup,
        date_format: Optional[DateFormatSpec] = None,
    ) -> List[WatchListEntry]:
        """Parses an already fetched list page. See `parse`."""
        for layout in self.layouts:
            records = self._extractor.extract_records(page, layout.source, layout.fields)
            if records is None:
                logger.debug(f"List layout '{layout.name}' not present for '{username}'")
                continue
            logger.info(f"Found {len(records)} rows using '{layout.name}' list layout for '{username}'.")
            return self._build_entries(username, records, date_format)

        logger.error(f"No known list layout matched the list page of '{username}'")
        raise ListError(username, ListErrorKind.STRUCTURAL_MISMATCH, "no known list layout on page")

    def _build_entries(
        self,
        username: str,
        records: List[Extraction],
        date_format: Optional[DateFormatSpec],
    ) -> List[WatchListEntry]:
        entries: List[WatchListEntry] = []
        seen_ids = set()
        for index, record in enumerate(records):
            entry = self._parse_row(record, date_format)
            if entry is None:
                logger.warning(f"Skipping list row {index} for '{username}': structural mismatch (missing: {sorted(record.missing)})")
                continue
            if entry.anime_id in seen_ids:
                logger.warning(f"Skipping duplicate list row {index} for anime ID {entry.anime_id}")
                continue
            seen_ids.add(entry.anime_id)
            entries.append(entry)

        if records and not entries:
            raise ListError(username, ListErrorKind.STRUCTURAL_MISMATCH,
                            f"none of {len(records)} list rows could be parsed")
        logger.info(f"Parsed {len(entries)} list entries for '{username}'.")
        return entries

    def _parse_row(self, record: Extraction, date_format: Optional[DateFormatSpec]) -> Optional[WatchListEntry]:
        title = record.get("title")
        url = record.get("url")
        if not title or not url:
            return None

        anime_id = self._parse_int(record.get("anime_id"))
        if anime_id is None:
            anime_id = self._extract_id_from_url(url, constants.ANIME_ID_PATTERN)
        if anime_id is None:
            return None

        start_date_text = record.get("start_date")
        start_date = None
        if start_date_text and date_format is not None:
            start_date = self._parse_start_date(title, start_date_text, date_format)

        try:
            return WatchListEntry(
                anime_id=anime_id,
                title=title,
                detail_url=url,
                airing_status=AiringStatus.from_list_code(self._parse_int(record.get("airing_status"))),
                start_date_text=start_date_text,
                start_date=start_date,
            )
        except ValidationError as e:
            logger.warning(f"Validation failed for list row '{title}' (ID:{anime_id}): {e}")
            return None

    def _parse_start_date(self, title: str, text: str, date_format: DateFormatSpec) -> Optional[date]:
        """Parses with the user's format, then with day and month swapped, before giving up."""
        try:
            return parse_user_date(text, date_format)
        except ParseError as e:
            fallback = date_format.swap_day_month()
            try:
                parsed = parse_user_date(text, fallback)
            except ParseError:
                logger.warning(f"Could not parse start date of '{title}' with format {date_format.pattern}: {e}")
                return None
            logger.info(f"Start date '{text}' of '{title}' only fits {fallback.pattern}, not {date_format.pattern}")
            return parsed
