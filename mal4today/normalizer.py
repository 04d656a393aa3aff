"""
Date and broadcast-time normalization.

MAL renders list page dates in a format each user picks in their settings, so
date strings are parsed against a caller-supplied `DateFormatSpec` rather than
a fixed locale table. Broadcast strings on details pages ("Sundays at 17:30
(JST)") use day names instead of calendar dates and are parsed separately.
"""
import logging
import re
from datetime import date, datetime, time, timedelta, tzinfo
from typing import List, Literal, Optional, Tuple

import pytz
from pydantic import BaseModel, ConfigDict

from .constants import TIMEZONE_ALIASES, AiringStatus, DayOfWeek
from .errors import ParseError, ParseErrorKind

logger = logging.getLogger(__name__)

DateField = Literal["day", "month", "year"]

_FIELD_LETTERS = {"D": "day", "M": "month", "Y": "year"}
_ALLOWED_WIDTHS = {"day": {1, 2}, "month": {1, 2}, "year": {2, 4}}

# Numeric shortcuts accepted wherever a date format is expected
DATE_FORMAT_PRESETS = {
    "1": "DD-MM-YYYY",
    "2": "MM-DD-YYYY",
}

_STRFTIME_DIRECTIVES = {"%d": "DD", "%m": "MM", "%Y": "YYYY", "%y": "YY"}


class DateToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: DateField
    width: int
    joined: bool = False # written directly after the previous token, without a separator


class DateFormatSpec(BaseModel):
    """Ordered date tokens of a user's date format, e.g. DD-MM-YYYY."""
    model_config = ConfigDict(frozen=True)

    pattern: str
    tokens: Tuple[DateToken, ...]

    @classmethod
    def parse(cls, pattern: str) -> "DateFormatSpec":
        pattern = DATE_FORMAT_PRESETS.get(pattern.strip(), pattern.strip())
        if "%" in pattern:
            for directive, replacement in _STRFTIME_DIRECTIVES.items():
                pattern = pattern.replace(directive, replacement)
        pattern = pattern.upper()
        return cls(pattern=pattern, tokens=tuple(tokenize_format(pattern)))

    def swap_day_month(self) -> "DateFormatSpec":
        """The same format with day and month trading places, e.g. DD-MM-YYYY -> MM-DD-YYYY."""
        return DateFormatSpec.parse(self.pattern.translate(str.maketrans("DM", "MD")))

    def render(self, value: date) -> str:
        """Renders `value` the way this format would show it."""
        def piece(token: DateToken) -> str:
            number = {"day": value.day, "month": value.month, "year": value.year}[token.field]
            if token.field == "year" and token.width == 2:
                number %= 100
            return str(number).zfill(token.width)

        out = []
        token_iter = iter(self.tokens)
        for chunk in re.findall(r"D+|M+|Y+|[^DMY]+", self.pattern):
            out.append(piece(next(token_iter)) if chunk[0] in _FIELD_LETTERS else chunk)
        return "".join(out)


def tokenize_format(pattern: str) -> List[DateToken]:
    """
    Splits a date pattern into (field, width) tokens.

    Runs of D, M and Y are tokens; any other non-letter is a separator.
    Every field must appear exactly once.

    Raises:
        ParseError(UNRECOGNIZED_TOKEN): if the pattern cannot describe a date.
    """
    if not pattern or not pattern.strip():
        raise ParseError(pattern, ParseErrorKind.UNRECOGNIZED_TOKEN, "empty date format")

    tokens: List[DateToken] = []
    previous_end = None
    for match in re.finditer(r"([A-Za-z])\1*", pattern):
        run = match.group(0)
        letter = run[0].upper()
        if letter not in _FIELD_LETTERS:
            raise ParseError(pattern, ParseErrorKind.UNRECOGNIZED_TOKEN, f"unknown token '{run}'")
        field = _FIELD_LETTERS[letter]
        if len(run) not in _ALLOWED_WIDTHS[field]:
            raise ParseError(pattern, ParseErrorKind.UNRECOGNIZED_TOKEN, f"unsupported width for {field}: '{run}'")
        joined = match.start() == previous_end
        if joined and (len(run) == 1 or tokens[-1].width == 1):
            # D and M take one or two digits, so without a separator the split is ambiguous
            raise ParseError(pattern, ParseErrorKind.UNRECOGNIZED_TOKEN, f"'{run}' needs a separator before it")
        tokens.append(DateToken(field=field, width=len(run), joined=joined))
        previous_end = match.end()

    fields = [token.field for token in tokens]
    if sorted(fields) != ["day", "month", "year"]:
        raise ParseError(pattern, ParseErrorKind.UNRECOGNIZED_TOKEN, "format needs exactly one day, month and year")
    return tokens


def parse_user_date(text: Optional[str], fmt: DateFormatSpec) -> date:
    """
    Parses a list page date string positionally against `fmt`.

    Raises:
        ParseError(FORMAT_MISMATCH): token count or width disagrees with `fmt`.
        ParseError(OUT_OF_RANGE): the values are not a valid calendar date.
    """
    if not text or not text.strip():
        raise ParseError(text, ParseErrorKind.FORMAT_MISMATCH, "empty date")

    # tokens written without a separator between them share one digit group
    runs: List[List[DateToken]] = []
    for token in fmt.tokens:
        if token.joined and runs:
            runs[-1].append(token)
        else:
            runs.append([token])

    groups = re.findall(r"\d+", text)
    if len(groups) != len(runs):
        raise ParseError(text, ParseErrorKind.FORMAT_MISMATCH,
                         f"expected {len(runs)} numbers for {fmt.pattern}, found {len(groups)}")

    pieces: List[Tuple[DateToken, str]] = []
    for run, group in zip(runs, groups):
        if len(run) == 1:
            pieces.append((run[0], group))
            continue
        if len(group) != sum(token.width for token in run):
            raise ParseError(text, ParseErrorKind.FORMAT_MISMATCH,
                             f"'{group}' does not fit {fmt.pattern}")
        offset = 0
        for token in run:
            pieces.append((token, group[offset:offset + token.width]))
            offset += token.width

    values = {}
    for token, group in pieces:
        # single-letter day/month tokens accept one or two digits
        if token.width == 1 and token.field != "year":
            width_ok = len(group) in (1, 2)
        else:
            width_ok = len(group) == token.width
        if not width_ok:
            raise ParseError(text, ParseErrorKind.FORMAT_MISMATCH,
                             f"'{group}' does not fit {token.field} of width {token.width}")
        number = int(group)
        if token.field == "year" and token.width == 2:
            # same pivot as strptime's %y
            number += 1900 if number >= 69 else 2000
        values[token.field] = number

    try:
        return date(values["year"], values["month"], values["day"])
    except ValueError as e:
        raise ParseError(text, ParseErrorKind.OUT_OF_RANGE, str(e)) from e


# --- Broadcast strings

_DAY_NAMES = {
    day: (day.value, day.value[:3]) for day in DayOfWeek if day is not DayOfWeek.UNKNOWN
}
_DAY_PATTERN = re.compile(r"[a-z]+")
_TIME_PATTERN = re.compile(r"\b(\d{1,2})\s*[:.]\s*(\d{2})\b")
_TZ_PATTERN = re.compile(r"\(\s*([A-Za-z][A-Za-z0-9/_+-]*)\s*\)")


def _match_day(word: str) -> Optional[DayOfWeek]:
    for day, (full, short) in _DAY_NAMES.items():
        if word in (full, full + "s", short, short + "s") or (word.startswith(short) and full.startswith(word)):
            return day
    return None


def parse_broadcast_time(text: Optional[str]) -> Tuple[DayOfWeek, Optional[time], Optional[str]]:
    """
    Parses MAL broadcast text such as "Sundays at 17:30 (JST)".

    Returns (day, time, timezone label). A missing or unrecognized day name
    gives DayOfWeek.UNKNOWN rather than an error.

    Raises:
        ParseError(FORMAT_MISMATCH): if `text` is empty.
    """
    if not text or not text.strip():
        raise ParseError(text, ParseErrorKind.FORMAT_MISMATCH, "empty broadcast string")

    normalized = " ".join(text.split())
    day = DayOfWeek.UNKNOWN
    for word in _DAY_PATTERN.findall(normalized.lower()):
        matched = _match_day(word)
        if matched is not None:
            day = matched
            break
    if day is DayOfWeek.UNKNOWN:
        logger.debug(f"No day name recognized in broadcast string '{normalized}'")

    local_time: Optional[time] = None
    time_match = _TIME_PATTERN.search(normalized)
    if time_match:
        hour, minute = int(time_match.group(1)), int(time_match.group(2))
        if hour < 24 and minute < 60:
            local_time = time(hour, minute)
        else:
            logger.warning(f"Ignoring out-of-range broadcast time in '{normalized}'")

    tz_match = _TZ_PATTERN.search(normalized)
    timezone = tz_match.group(1) if tz_match else None
    return day, local_time, timezone


def parse_airing_status(text: Optional[str]) -> AiringStatus:
    """Maps MAL status text ("Currently Airing", ...) to an AiringStatus."""
    if not text:
        return AiringStatus.UNKNOWN
    normalized = " ".join(text.lower().replace("_", " ").split())
    if normalized in ("currently airing", "airing"):
        return AiringStatus.AIRING
    if normalized in ("finished airing", "finished"):
        return AiringStatus.FINISHED
    if normalized in ("not yet aired", "not yet airing", "upcoming"):
        return AiringStatus.NOT_YET_AIRED
    logger.debug(f"Unrecognized airing status '{text}'")
    return AiringStatus.UNKNOWN


def resolve_timezone(name: str) -> tzinfo:
    """Accepts IANA names and the short labels MAL prints, e.g. "JST"."""
    try:
        return pytz.timezone(TIMEZONE_ALIASES.get(name.upper(), name))
    except pytz.UnknownTimeZoneError as e:
        raise ParseError(name, ParseErrorKind.UNRECOGNIZED_TOKEN, "unknown timezone") from e


def shift_broadcast(
    day: DayOfWeek,
    local_time: Optional[time],
    source_tz: str,
    target_tz: str,
    reference: Optional[date] = None,
) -> Tuple[DayOfWeek, Optional[time]]:
    """
    Converts a weekly broadcast slot from `source_tz` to `target_tz`.

    The slot is anchored to the occurrence of `day` in the week of
    `reference` so DST rules of that week apply. The day shifts when the
    conversion crosses midnight. Slots without a day or time are returned
    unchanged.
    """
    if day is DayOfWeek.UNKNOWN or local_time is None:
        return day, local_time

    reference = reference or date.today()
    anchor = reference + timedelta(days=day.weekday - reference.weekday())
    source = resolve_timezone(source_tz)
    target = resolve_timezone(target_tz)

    aired = source.localize(datetime.combine(anchor, local_time))
    converted = aired.astimezone(target)
    return DayOfWeek.from_date(converted.date()), converted.time().replace(tzinfo=None)
