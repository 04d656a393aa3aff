from .client import AiringReport, AiringTodayClient
from .constants import AiringStatus, DayOfWeek, DecisionReason
from .errors import DetailError, FetchError, ListError, Mal4TodayError, ParseError
from .normalizer import DateFormatSpec, parse_broadcast_time, parse_user_date
from .scheduler import AiringScheduler, decide
from .types import BroadcastSchedule, Decision, WatchListEntry

__all__ = [
    "AiringTodayClient",
    "AiringReport",
    "AiringScheduler",
    "decide",

    "WatchListEntry",
    "BroadcastSchedule",
    "Decision",
    "DateFormatSpec",
    "parse_user_date",
    "parse_broadcast_time",

    "AiringStatus",
    "DayOfWeek",
    "DecisionReason",

    "Mal4TodayError",
    "FetchError",
    "ParseError",
    "ListError",
    "DetailError",
]
