# --- Base
from datetime import date
from enum import StrEnum
from re import compile
from typing import Optional


MAL_DOMAIN = "https://myanimelist.net"
DEFAULT_TIMEOUT = 10
DEFAULT_RUN_TIMEOUT = 120
DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/135.0.0.0 Safari/537.36"
DEFAULT_CONCURRENCY = 5
MAX_CONCURRENCY = 10
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_BACKOFF = 0.5
DEFAULT_BROADCAST_TIMEZONE = "Asia/Tokyo"


# --- Anime list
ANIMELIST_URL = "/animelist/{username}?status={status}"
LIST_STATUS_WATCHING = 1

# --- Anime
ANIME_DETAILS_URL = "/anime/{anime_id}"
ANIME_ID_PATTERN = compile(r"/anime/(\d+)(?:/[^/]*)?")

# Short timezone labels MAL prints after broadcast times, e.g. "(JST)"
TIMEZONE_ALIASES = {
    "JST": "Asia/Tokyo",
    "KST": "Asia/Seoul",
    "CST": "Asia/Shanghai",
    "UTC": "UTC",
    "GMT": "UTC",
}


class DayOfWeek(StrEnum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"
    UNKNOWN = "unknown" # For entries without a recognizable day

    @staticmethod
    def from_weekday(weekday: int) -> "DayOfWeek":
        """Maps date.weekday() (Monday == 0) to a DayOfWeek."""
        return WEEKDAYS[weekday % 7]

    @staticmethod
    def from_date(value: date) -> "DayOfWeek":
        return DayOfWeek.from_weekday(value.weekday())

    @staticmethod
    def today() -> "DayOfWeek":
        return DayOfWeek.from_date(date.today())

    @property
    def weekday(self) -> Optional[int]:
        if self is DayOfWeek.UNKNOWN:
            return None
        return WEEKDAYS.index(self)


WEEKDAYS = [
    DayOfWeek.MONDAY,
    DayOfWeek.TUESDAY,
    DayOfWeek.WEDNESDAY,
    DayOfWeek.THURSDAY,
    DayOfWeek.FRIDAY,
    DayOfWeek.SATURDAY,
    DayOfWeek.SUNDAY,
]


class AiringStatus(StrEnum):
    AIRING = "airing"
    NOT_YET_AIRED = "not_yet_aired"
    FINISHED = "finished"
    UNKNOWN = "unknown"

    @staticmethod
    def from_list_code(code: Optional[int]) -> "AiringStatus":
        """Maps the numeric `anime_airing_status` used in list page JSON."""
        return {
            1: AiringStatus.AIRING,
            2: AiringStatus.FINISHED,
            3: AiringStatus.NOT_YET_AIRED,
        }.get(code, AiringStatus.UNKNOWN)


class DecisionReason(StrEnum):
    MATCHED_DAY_OF_WEEK = "matched_day_of_week"
    NOT_TODAY = "not_today"
    STATUS_FINISHED = "status_finished"
    STATUS_NOT_YET_AIRED = "status_not_yet_aired"
    UNRESOLVABLE = "unresolvable"
