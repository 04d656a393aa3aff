"""Error hierarchy for fetching and parsing.

Fetch errors carry a `transient` flag so the fetcher's retry policy can tell
failures worth retrying (timeouts, dropped connections, 5xx) from permanent
ones (4xx). List-level errors are fatal to a run; detail-level errors only
affect the decision of a single anime.
"""
from enum import StrEnum
from typing import Optional


class Mal4TodayError(Exception):
    """Base exception for all mal4today errors."""


# --- Fetch

class FetchErrorKind(StrEnum):
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    NETWORK_FAILURE = "network_failure"


class FetchError(Mal4TodayError):
    def __init__(self, url: str, kind: FetchErrorKind, status: Optional[int] = None, message: str = ""):
        self.url = url
        self.kind = kind
        self.status = status
        details = f" {status}" if status is not None else ""
        super().__init__(f"{kind.value}{details} while fetching {url}" + (f": {message}" if message else ""))

    @property
    def transient(self) -> bool:
        """Whether the request may succeed if it is sent again."""
        if self.kind is FetchErrorKind.HTTP_STATUS:
            return self.status is not None and self.status >= 500
        return True

    @property
    def not_found(self) -> bool:
        return self.kind is FetchErrorKind.HTTP_STATUS and self.status == 404


# --- Parse

class ParseErrorKind(StrEnum):
    FORMAT_MISMATCH = "format_mismatch"
    OUT_OF_RANGE = "out_of_range"
    UNRECOGNIZED_TOKEN = "unrecognized_token"


class ParseError(Mal4TodayError, ValueError):
    def __init__(self, text: Optional[str], kind: ParseErrorKind, message: str = ""):
        self.text = text
        self.kind = kind
        super().__init__(f"{kind.value}: {text!r}" + (f" ({message})" if message else ""))


# --- Pages

class ListErrorKind(StrEnum):
    USER_NOT_FOUND = "user_not_found"
    STRUCTURAL_MISMATCH = "structural_mismatch"
    PAGE_UNAVAILABLE = "page_unavailable"


class ListError(Mal4TodayError):
    """Fatal failure to read a user's list page."""
    def __init__(self, username: str, kind: ListErrorKind, message: str = ""):
        self.username = username
        self.kind = kind
        super().__init__(f"{kind.value} for user '{username}'" + (f": {message}" if message else ""))


class DetailErrorKind(StrEnum):
    PAGE_UNAVAILABLE = "page_unavailable"
    STRUCTURAL_MISMATCH = "structural_mismatch"


class DetailError(Mal4TodayError):
    """Failure to read one anime's details page."""
    def __init__(self, url: str, kind: DetailErrorKind, message: str = ""):
        self.url = url
        self.kind = kind
        super().__init__(f"{kind.value} for {url}" + (f": {message}" if message else ""))
