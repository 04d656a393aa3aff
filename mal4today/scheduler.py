import asyncio
import logging
from datetime import date
from typing import List, Optional, Sequence

from .anime.parser import MALAnimeParser
from .constants import DEFAULT_BROADCAST_TIMEZONE, DEFAULT_CONCURRENCY, MAX_CONCURRENCY, AiringStatus, DayOfWeek, DecisionReason
from .errors import DetailError, ParseError
from .normalizer import resolve_timezone, shift_broadcast
from .types import BroadcastSchedule, Decision, WatchListEntry

logger = logging.getLogger(__name__)


def unresolvable(entry: WatchListEntry, detail: str, schedule: Optional[BroadcastSchedule] = None) -> Decision:
    return Decision(
        anime_id=entry.anime_id,
        title=entry.title,
        airs_today=False,
        reason=DecisionReason.UNRESOLVABLE,
        day_of_week=schedule.day_of_week if schedule else None,
        local_time=schedule.local_time if schedule else None,
        detail=detail,
    )


def decide(entry: WatchListEntry, schedule: BroadcastSchedule, reference_day: DayOfWeek) -> Decision:
    """
    Decides whether `entry` airs on `reference_day`.

    Only a currently airing anime with a known broadcast day can air today.
    Unknown status or day gives an UNRESOLVABLE decision, never a plain "no".
    """
    if reference_day is DayOfWeek.UNKNOWN:
        raise ValueError("Reference day must be a real day of the week")
    if schedule.anime_id != entry.anime_id:
        raise ValueError(f"Schedule for anime ID {schedule.anime_id} does not belong to entry {entry.anime_id}")

    if schedule.status is AiringStatus.FINISHED:
        reason = DecisionReason.STATUS_FINISHED
    elif schedule.status is AiringStatus.NOT_YET_AIRED:
        reason = DecisionReason.STATUS_NOT_YET_AIRED
    elif schedule.status is AiringStatus.UNKNOWN:
        return unresolvable(entry, "unrecognized airing status", schedule)
    elif schedule.day_of_week is DayOfWeek.UNKNOWN:
        return unresolvable(entry, f"unknown broadcast day ({schedule.raw_broadcast or 'no broadcast info'})", schedule)
    elif schedule.day_of_week == reference_day:
        reason = DecisionReason.MATCHED_DAY_OF_WEEK
    else:
        reason = DecisionReason.NOT_TODAY

    return Decision(
        anime_id=entry.anime_id,
        title=entry.title,
        airs_today=reason is DecisionReason.MATCHED_DAY_OF_WEEK,
        reason=reason,
        day_of_week=schedule.day_of_week,
        local_time=schedule.local_time,
    )


class AiringScheduler:
    """
    Resolves the details page of every list entry with bounded concurrency
    and returns one Decision per entry, in list order.
    """
    def __init__(
        self,
        detail_parser: MALAnimeParser,
        max_concurrency: int = DEFAULT_CONCURRENCY,
        run_timeout: Optional[float] = None,
        timezone: Optional[str] = None,
        source_timezone: str = DEFAULT_BROADCAST_TIMEZONE,
    ):
        if not 1 <= max_concurrency <= MAX_CONCURRENCY:
            raise ValueError(f"max_concurrency must be between 1 and {MAX_CONCURRENCY}")
        if timezone is not None:
            resolve_timezone(timezone)
        resolve_timezone(source_timezone)
        self._detail_parser = detail_parser
        self.max_concurrency = max_concurrency
        self.run_timeout = run_timeout
        self.timezone = timezone
        self.source_timezone = source_timezone

    async def run(
        self,
        entries: Sequence[WatchListEntry],
        reference_day: DayOfWeek,
        reference_date: Optional[date] = None,
        stop: Optional[asyncio.Event] = None,
    ) -> List[Decision]:
        """
        Args:
            entries: List entries in page order.
            reference_day: The day counted as "today".
            reference_date: Date used to anchor timezone shifts; defaults to today.
            stop: Optional event that ends the run early when set.

        Returns:
            Exactly one Decision per entry, in the same order. Entries that
            failed, or were not finished when the run timed out or was
            stopped, are UNRESOLVABLE.
        """
        if reference_day is DayOfWeek.UNKNOWN:
            raise ValueError("Reference day must be a real day of the week")

        results: List[Optional[Decision]] = [None] * len(entries)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def resolve(index: int, entry: WatchListEntry) -> None:
            async with semaphore:
                try:
                    schedule = await self._detail_parser.get_schedule(str(entry.detail_url), entry.anime_id)
                    schedule = self._localize(schedule, reference_date)
                    results[index] = decide(entry, schedule, reference_day)
                except DetailError as e:
                    results[index] = unresolvable(entry, str(e))
                except Exception as e:
                    logger.exception(f"Unexpected error while resolving '{entry.title}' (ID:{entry.anime_id}): {e}")
                    results[index] = unresolvable(entry, f"unexpected error: {e}")

        logger.info(f"Resolving {len(entries)} entries with up to {self.max_concurrency} concurrent requests")
        tasks = {asyncio.create_task(resolve(i, entry)) for i, entry in enumerate(entries)}
        await self._wait(tasks, stop)

        decisions = []
        for entry, result in zip(entries, results):
            decisions.append(result if result is not None else unresolvable(entry, "not resolved before the run ended"))
        return decisions

    async def _wait(self, tasks: set, stop: Optional[asyncio.Event]) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.run_timeout if self.run_timeout is not None else None
        stopper = asyncio.create_task(stop.wait()) if stop is not None else None
        pending = set(tasks)
        try:
            while pending:
                timeout = None if deadline is None else max(0.0, deadline - loop.time())
                waiting = pending | {stopper} if stopper is not None else pending
                done, _ = await asyncio.wait(waiting, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
                pending -= done
                if stopper is not None and stopper in done:
                    logger.warning(f"Run stopped with {len(pending)} entries unresolved")
                    break
                if not done:
                    logger.warning(f"Run timed out after {self.run_timeout}s with {len(pending)} entries unresolved")
                    break
        finally:
            leftovers = list(pending)
            if stopper is not None:
                leftovers.append(stopper)
            for task in leftovers:
                task.cancel()
            await asyncio.gather(*leftovers, return_exceptions=True)

    def _localize(self, schedule: BroadcastSchedule, reference_date: Optional[date]) -> BroadcastSchedule:
        if self.timezone is None or schedule.day_of_week is DayOfWeek.UNKNOWN or schedule.local_time is None:
            return schedule
        source = schedule.timezone or self.source_timezone
        try:
            day, local_time = shift_broadcast(schedule.day_of_week, schedule.local_time, source, self.timezone, reference_date)
        except ParseError:
            logger.warning(f"Unknown broadcast timezone '{source}' for anime ID {schedule.anime_id}, assuming {self.source_timezone}")
            day, local_time = shift_broadcast(schedule.day_of_week, schedule.local_time, self.source_timezone, self.timezone, reference_date)
        return schedule.model_copy(update={"day_of_week": day, "local_time": local_time, "timezone": self.timezone})
