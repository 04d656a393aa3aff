"""Tests for the airing decision and the concurrent scheduler."""

import asyncio
from datetime import date, time

import pytest

from mal4today.constants import AiringStatus, DayOfWeek, DecisionReason
from mal4today.errors import DetailError, DetailErrorKind
from mal4today.scheduler import AiringScheduler, decide
from mal4today.types import BroadcastSchedule, WatchListEntry

from .pages import detail_page


def entry(anime_id: int, title: str) -> WatchListEntry:
    return WatchListEntry(anime_id=anime_id, title=title, detail_url=f"/anime/{anime_id}/{title.replace(' ', '_')}")


def schedule(anime_id: int, status=AiringStatus.AIRING, day=DayOfWeek.SUNDAY, at=time(17, 30)) -> BroadcastSchedule:
    return BroadcastSchedule(anime_id=anime_id, status=status, day_of_week=day, local_time=at)


ONE_PIECE = entry(21, "One Piece")
NARUTO = entry(20, "Naruto")


# --- decide

def test_decide_matching_day():
    decision = decide(ONE_PIECE, schedule(21), DayOfWeek.SUNDAY)
    assert decision.airs_today
    assert decision.reason is DecisionReason.MATCHED_DAY_OF_WEEK
    assert decision.day_of_week is DayOfWeek.SUNDAY
    assert decision.local_time == time(17, 30)


def test_decide_other_day():
    decision = decide(ONE_PIECE, schedule(21), DayOfWeek.MONDAY)
    assert not decision.airs_today
    assert decision.reason is DecisionReason.NOT_TODAY


@pytest.mark.parametrize("status, reason", [
    (AiringStatus.FINISHED, DecisionReason.STATUS_FINISHED),
    (AiringStatus.NOT_YET_AIRED, DecisionReason.STATUS_NOT_YET_AIRED),
])
def test_decide_non_airing_never_airs(status, reason):
    decision = decide(ONE_PIECE, schedule(21, status=status), DayOfWeek.SUNDAY)
    assert not decision.airs_today
    assert decision.reason is reason


@pytest.mark.parametrize("sched", [
    schedule(21, status=AiringStatus.UNKNOWN),
    schedule(21, day=DayOfWeek.UNKNOWN, at=None),
])
def test_decide_unknowns_are_unresolvable(sched):
    decision = decide(ONE_PIECE, sched, DayOfWeek.SUNDAY)
    assert not decision.airs_today
    assert decision.reason is DecisionReason.UNRESOLVABLE
    assert decision.detail


def test_decide_rejects_unknown_reference_day_and_foreign_schedule():
    with pytest.raises(ValueError):
        decide(ONE_PIECE, schedule(21), DayOfWeek.UNKNOWN)
    with pytest.raises(ValueError):
        decide(ONE_PIECE, schedule(20), DayOfWeek.SUNDAY)


# --- AiringScheduler

class StubDetails:
    """Detail parser double: per anime ID a schedule, an exception or a delay."""
    def __init__(self, replies: dict, delays: dict = None):
        self.replies = replies
        self.delays = delays or {}
        self.calls = []

    async def get_schedule(self, url, anime_id=None):
        self.calls.append(anime_id)
        await asyncio.sleep(self.delays.get(anime_id, 0))
        reply = self.replies[anime_id]
        if isinstance(reply, BaseException):
            raise reply
        return reply


async def test_run_sunday_scenario(session, anime_parser):
    session.add("/anime/21/One_Piece", (200, detail_page("Currently Airing", "Sundays at 17:30 (JST)")))
    session.add("/anime/20/Naruto", (200, detail_page("Finished Airing")))
    scheduler = AiringScheduler(anime_parser, max_concurrency=2)

    decisions = await scheduler.run([ONE_PIECE, NARUTO], DayOfWeek.SUNDAY)

    assert [(d.title, d.airs_today) for d in decisions] == [("One Piece", True), ("Naruto", False)]
    assert decisions[0].reason is DecisionReason.MATCHED_DAY_OF_WEEK
    assert decisions[1].reason is DecisionReason.STATUS_FINISHED


async def test_run_preserves_list_order_under_reversed_completion():
    entries = [entry(i, f"Show {i}") for i in range(1, 6)]
    details = StubDetails(
        {i: schedule(i, day=DayOfWeek.from_weekday(i)) for i in range(1, 6)},
        delays={i: 0.01 * (6 - i) for i in range(1, 6)},
    )
    decisions = await AiringScheduler(details, max_concurrency=5).run(entries, DayOfWeek.TUESDAY)
    assert [d.anime_id for d in decisions] == [1, 2, 3, 4, 5]
    assert [d.airs_today for d in decisions] == [True, False, False, False, False]


async def test_failures_are_isolated():
    entries = [entry(1, "A"), entry(2, "B"), entry(3, "C")]
    details = StubDetails({
        1: schedule(1),
        2: DetailError("/anime/2/B", DetailErrorKind.PAGE_UNAVAILABLE, "503"),
        3: RuntimeError("parser bug"),
    })
    decisions = await AiringScheduler(details).run(entries, DayOfWeek.SUNDAY)

    assert len(decisions) == 3
    assert decisions[0].airs_today
    assert decisions[1].reason is DecisionReason.UNRESOLVABLE
    assert "page_unavailable" in decisions[1].detail
    assert decisions[2].reason is DecisionReason.UNRESOLVABLE
    assert "parser bug" in decisions[2].detail


async def test_decision_errors_are_reported_with_their_cause():
    # schedule of another anime makes the decision itself fail
    details = StubDetails({21: schedule(99), 20: schedule(20)})
    decisions = await AiringScheduler(details).run([ONE_PIECE, NARUTO], DayOfWeek.SUNDAY)

    assert decisions[0].reason is DecisionReason.UNRESOLVABLE
    assert "does not belong" in decisions[0].detail
    assert decisions[1].airs_today


async def test_unreachable_details_page_is_unresolvable(session, anime_parser):
    session.add("/anime/21/One_Piece", (500, "boom"))
    decisions = await AiringScheduler(anime_parser).run([ONE_PIECE], DayOfWeek.SUNDAY)
    assert decisions[0].reason is DecisionReason.UNRESOLVABLE
    assert session.count("/anime/21/One_Piece") == 3


async def test_empty_list_gives_no_decisions():
    assert await AiringScheduler(StubDetails({})).run([], DayOfWeek.SUNDAY) == []


async def test_concurrency_is_bounded(session, anime_parser):
    entries = [entry(i, f"Show {i}") for i in range(1, 9)]
    for e in entries:
        session.add(str(e.detail_url), (200, detail_page("Currently Airing", "Sundays at 17:30 (JST)"), 0.02))

    decisions = await AiringScheduler(anime_parser, max_concurrency=3).run(entries, DayOfWeek.SUNDAY)

    assert all(d.airs_today for d in decisions)
    assert session.max_in_flight == 3
    assert session.in_flight == 0


async def test_run_timeout_returns_partial_results():
    entries = [entry(1, "Fast"), entry(2, "Slow"), entry(3, "Also fast")]
    details = StubDetails({i: schedule(i) for i in (1, 2, 3)}, delays={2: 5})
    scheduler = AiringScheduler(details, run_timeout=0.2)

    decisions = await scheduler.run(entries, DayOfWeek.SUNDAY)

    assert [d.anime_id for d in decisions] == [1, 2, 3]
    assert decisions[0].airs_today and decisions[2].airs_today
    assert decisions[1].reason is DecisionReason.UNRESOLVABLE
    assert decisions[1].detail == "not resolved before the run ended"


async def test_stop_event_ends_run_early():
    entries = [entry(1, "Fast"), entry(2, "Slow")]
    details = StubDetails({1: schedule(1), 2: schedule(2)}, delays={2: 5})
    stop = asyncio.Event()
    asyncio.get_running_loop().call_later(0.1, stop.set)

    decisions = await AiringScheduler(details).run(entries, DayOfWeek.SUNDAY, stop=stop)

    assert decisions[0].airs_today
    assert decisions[1].reason is DecisionReason.UNRESOLVABLE


async def test_repeated_runs_agree():
    entries = [ONE_PIECE, NARUTO]
    details = StubDetails({21: schedule(21), 20: schedule(20, status=AiringStatus.FINISHED)})
    scheduler = AiringScheduler(details)
    first = await scheduler.run(entries, DayOfWeek.SUNDAY)
    second = await scheduler.run(entries, DayOfWeek.SUNDAY)
    assert first == second


async def test_timezone_shifts_broadcast_day():
    # Monday 01:00 JST is still Sunday in New York
    details = StubDetails({21: BroadcastSchedule(
        anime_id=21, status=AiringStatus.AIRING, day_of_week=DayOfWeek.MONDAY,
        local_time=time(1, 0), timezone="JST",
    )})
    scheduler = AiringScheduler(details, timezone="America/New_York")

    decisions = await scheduler.run([ONE_PIECE], DayOfWeek.SUNDAY, reference_date=date(2024, 1, 10))

    assert decisions[0].airs_today
    assert decisions[0].day_of_week is DayOfWeek.SUNDAY
    assert decisions[0].local_time == time(11, 0)


async def test_run_rejects_unknown_reference_day():
    with pytest.raises(ValueError):
        await AiringScheduler(StubDetails({})).run([ONE_PIECE], DayOfWeek.UNKNOWN)


@pytest.mark.parametrize("concurrency", [0, 11])
def test_invalid_concurrency(concurrency):
    with pytest.raises(ValueError):
        AiringScheduler(StubDetails({}), max_concurrency=concurrency)
