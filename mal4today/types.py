from datetime import date, time
from typing import Optional
from pydantic import BaseModel, ConfigDict, HttpUrl, field_validator
from mal4today import constants
from mal4today.constants import AiringStatus, DayOfWeek, DecisionReason


class animeIdMixin(BaseModel):
    anime_id: int


class detailUrlMixin(BaseModel):
    detail_url: HttpUrl

    @field_validator("detail_url", mode="before")
    def validate_detail_url(cls, v) -> HttpUrl:
        if isinstance(v, HttpUrl): return v
        elif isinstance(v, str):
            if v.startswith('/'):
                v = constants.MAL_DOMAIN + v

            return HttpUrl(v)
        else:
            raise ValueError()


class WatchListEntry(animeIdMixin, detailUrlMixin):
    """One anime on a user's list page."""
    model_config = ConfigDict(frozen=True)

    title: str
    airing_status: AiringStatus = AiringStatus.UNKNOWN # hint from the list page only
    start_date_text: Optional[str] = None # as rendered with the user's date format
    start_date: Optional[date] = None

    @field_validator("title", mode="before")
    def validate_title(cls, v):
        if isinstance(v, str):
            v = v.strip()
        if not v:
            raise ValueError("title must not be empty")
        return v


class BroadcastSchedule(animeIdMixin):
    """Broadcast slot read from an anime's details page."""
    model_config = ConfigDict(frozen=True)

    day_of_week: DayOfWeek = DayOfWeek.UNKNOWN
    local_time: Optional[time] = None
    timezone: Optional[str] = None # e.g. "JST"
    status: AiringStatus = AiringStatus.UNKNOWN
    raw_broadcast: Optional[str] = None


class Decision(animeIdMixin):
    """Whether one list entry airs on the reference day, and why."""
    model_config = ConfigDict(frozen=True)

    title: str
    airs_today: bool
    reason: DecisionReason
    day_of_week: Optional[DayOfWeek] = None
    local_time: Optional[time] = None
    detail: Optional[str] = None
