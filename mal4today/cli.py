import argparse
import asyncio
import logging
import sys
from typing import List, Optional, TextIO

from .client import AiringReport, AiringTodayClient
from .config import Settings, get_settings
from .constants import MAX_CONCURRENCY, WEEKDAYS, DayOfWeek, DecisionReason
from .errors import ListError, ParseError
from .normalizer import DATE_FORMAT_PRESETS, DateFormatSpec, resolve_timezone
from .types import Decision

logger = logging.getLogger(__name__)

LOG_LEVEL_CHOICES = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

EXIT_OK = 0
EXIT_LIST_ERROR = 1

_REASON_TEXT = {
    DecisionReason.NOT_TODAY: "airs on another day",
    DecisionReason.STATUS_FINISHED: "finished airing",
    DecisionReason.STATUS_NOT_YET_AIRED: "not yet aired",
}


def configure_logging(log_level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _concurrency(value: str) -> int:
    number = int(value)
    if not 1 <= number <= MAX_CONCURRENCY:
        raise argparse.ArgumentTypeError(f"must be between 1 and {MAX_CONCURRENCY}")
    return number


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("must be greater than zero")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mal4today",
        description="Show which anime on a MyAnimeList user's list air today.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Check a user's list against today's broadcasts")
    run.add_argument("--user", "-u", required=True, help="MyAnimeList username")
    run.add_argument(
        "--date-format", "-f", required=True,
        help=(
            "How the user's list renders dates, e.g. DD-MM-YYYY or MM/DD/YY. "
            + ", ".join(f"'{k}' = {v}" for k, v in DATE_FORMAT_PRESETS.items())
        ),
    )
    run.add_argument(
        "--day", choices=[day.value for day in WEEKDAYS],
        help="Day to treat as today (default: the current local day)",
    )
    run.add_argument(
        "--timezone",
        help="Convert broadcast times (JST) to this timezone before comparing days, e.g. Europe/Berlin",
    )
    run.add_argument("--concurrency", type=_concurrency, help="Details pages fetched at once")
    run.add_argument("--timeout", type=_positive_float, help="Seconds allowed for checking all anime")
    run.add_argument("--json", action="store_true", help="Print one JSON record per anime")
    run.add_argument("--only-airing", action="store_true", help="Print only anime airing today")
    run.add_argument("--log-level", choices=LOG_LEVEL_CHOICES, help="Logging verbosity")
    return parser


def format_decision(decision: Decision) -> str:
    when = ""
    if decision.day_of_week and decision.day_of_week is not DayOfWeek.UNKNOWN:
        when = decision.day_of_week.value.capitalize()
        if decision.local_time:
            when += f" {decision.local_time.strftime('%H:%M')}"

    if decision.airs_today:
        return f"*** {decision.title} is airing TODAY" + (f" ({when})" if when else "") + " ***"
    if decision.reason is DecisionReason.UNRESOLVABLE:
        return f"{decision.title}: could not determine" + (f" ({decision.detail})" if decision.detail else "")
    text = _REASON_TEXT[decision.reason]
    if decision.reason is DecisionReason.NOT_TODAY and when:
        text += f" ({when})"
    return f"{decision.title}: not airing today - {text}"


def write_report(report: AiringReport, as_json: bool, only_airing: bool, out: TextIO) -> None:
    decisions = report.airing if only_airing else report.decisions
    for decision in decisions:
        out.write((decision.model_dump_json() if as_json else format_decision(decision)) + "\n")
    if not as_json and not report.airing:
        out.write(f"Nothing on {report.username}'s list airs on {report.reference_day.value.capitalize()}.\n")


async def run_command(args: argparse.Namespace, settings: Settings, date_format: DateFormatSpec, out: TextIO) -> int:
    reference_day = DayOfWeek(args.day) if args.day else None
    try:
        async with AiringTodayClient(settings=settings, timezone=args.timezone) as client:
            report = await client.airing_today(args.user, date_format, reference_day=reference_day)
    except ListError as e:
        logger.error(f"Could not read the anime list: {e}")
        return EXIT_LIST_ERROR
    write_report(report, args.json, args.only_airing, out)
    return EXIT_OK


def main(argv: Optional[List[str]] = None, out: Optional[TextIO] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    overrides = {}
    if args.concurrency is not None:
        overrides["max_concurrency"] = args.concurrency
    if args.timeout is not None:
        overrides["run_timeout"] = args.timeout
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    if overrides:
        settings = settings.model_copy(update=overrides)
    configure_logging(settings.log_level)

    try:
        date_format = DateFormatSpec.parse(args.date_format)
    except ParseError as e:
        parser.error(f"invalid --date-format: {e}")
    if args.timezone:
        try:
            resolve_timezone(args.timezone)
        except ParseError as e:
            parser.error(f"invalid --timezone: {e}")

    return asyncio.run(run_command(args, settings, date_format, out or sys.stdout))


if __name__ == "__main__":
    sys.exit(main())
