import re
import logging
from typing import Optional, Union

from bs4 import BeautifulSoup

from .extractor import MarkupExtractor
from .fetcher import Fetcher

logger = logging.getLogger(__name__)

class BaseParser:
    """Base class for MAL page parsers."""
    def __init__(self, fetcher: Fetcher, extractor: Optional[MarkupExtractor] = None):
        if fetcher is None:
            # This should not happen when using AiringTodayClient correctly
            raise ValueError("Fetcher cannot be None for the parser")
        self._fetcher = fetcher
        self._extractor = extractor or MarkupExtractor()

    async def _get_soup(self, url: str) -> BeautifulSoup:
        """
        Fetches the page and returns a BeautifulSoup object.
        FetchError from the fetcher propagates to the caller.
        """
        body = await self._fetcher.fetch(url)
        return self._extractor.soup(body)

    def _parse_int(self, text: Optional[str], default: Optional[int] = None) -> Optional[int]:
        """Tries to convert a string to an int."""
        try:
            return int(text.replace(',', '').strip())
        except (ValueError, TypeError, AttributeError):
            return default

    def _extract_id_from_url(self, url: Optional[str], pattern: Union[str, re.Pattern] = r"/(\d+)/") -> Optional[int]:
        """Tries to extract an ID from a URL using a regular expression."""
        if not url:
            logger.debug("URL is empty, cannot extract ID.")
            return None
        try:
            match = re.search(pattern, url)
        except re.error as e:
            logger.error(f"Regex error while searching URL '{url}' with pattern '{pattern}': {e}")
            return None
        if not match:
            logger.debug(f"Regex pattern '{pattern}' did not match URL: {url}")
            return None
        try:
            return int(match.group(1))
        except (ValueError, TypeError):
            logger.warning(f"Could not convert extracted ID '{match.group(1)}' to int for URL: {url} using pattern: {pattern}")
            return None
        except IndexError:
            logger.error(f"Regex pattern '{pattern}' matched URL '{url}' but has no capturing group 1.")
            return None
