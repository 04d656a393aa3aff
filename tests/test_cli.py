"""Tests for the command line interface."""

import io
import json

import pytest

from mal4today import cli
from mal4today.client import AiringTodayClient

from .pages import detail_page, list_item, list_page

LIST_URL = "/animelist/alice?status=1"


@pytest.fixture
def run_cli(monkeypatch, session, settings):
    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    monkeypatch.setattr(
        cli, "AiringTodayClient",
        lambda settings, timezone=None: AiringTodayClient(settings=settings, session=session, timezone=timezone),
    )

    def run(*argv):
        out = io.StringIO()
        code = cli.main(list(argv), out=out)
        return code, out.getvalue().splitlines()

    return run


@pytest.fixture
def alice(session):
    session.add(LIST_URL, (200, list_page([list_item(21, "One Piece"), list_item(20, "Naruto", airing_status=2)])))
    session.add("/anime/21/One_Piece", (200, detail_page("Currently Airing", "Sundays at 17:30 (JST)")))
    session.add("/anime/20/Naruto", (200, detail_page("Finished Airing")))
    return session


def test_run_prints_one_line_per_anime(alice, run_cli):
    code, lines = run_cli("run", "--user", "alice", "--date-format", "1", "--day", "sunday")
    assert code == 0
    assert lines == [
        "*** One Piece is airing TODAY (Sunday 17:30) ***",
        "Naruto: not airing today - finished airing",
    ]


def test_nothing_airing_message(alice, run_cli):
    code, lines = run_cli("run", "-u", "alice", "-f", "DD-MM-YYYY", "--day", "monday")
    assert code == 0
    assert lines == [
        "One Piece: not airing today - airs on another day (Sunday 17:30)",
        "Naruto: not airing today - finished airing",
        "Nothing on alice's list airs on Monday.",
    ]


def test_only_airing(alice, run_cli):
    code, lines = run_cli("run", "-u", "alice", "-f", "1", "--day", "sunday", "--only-airing")
    assert code == 0
    assert lines == ["*** One Piece is airing TODAY (Sunday 17:30) ***"]


def test_json_output(alice, run_cli):
    code, lines = run_cli("run", "-u", "alice", "-f", "1", "--day", "sunday", "--json")
    assert code == 0
    records = [json.loads(line) for line in lines]
    assert [(r["title"], r["airs_today"], r["reason"]) for r in records] == [
        ("One Piece", True, "matched_day_of_week"),
        ("Naruto", False, "status_finished"),
    ]


def test_unknown_user_exits_non_zero(session, run_cli):
    session.add(LIST_URL, (404, "Not Found"))
    code, lines = run_cli("run", "-u", "alice", "-f", "1", "--day", "sunday")
    assert code == 1
    assert lines == []


def test_structural_mismatch_exits_non_zero(session, run_cli):
    session.add(LIST_URL, (200, "<html><body>Maintenance</body></html>"))
    code, lines = run_cli("run", "-u", "alice", "-f", "1", "--day", "sunday")
    assert code == 1
    assert lines == []


def test_unrecognized_status_is_reported_not_fatal(session, run_cli):
    session.add(LIST_URL, (200, list_page([list_item(21, "One Piece")])))
    session.add("/anime/21/One_Piece", (200, detail_page("On Hiatus")))
    code, lines = run_cli("run", "-u", "alice", "-f", "1", "--day", "sunday")
    assert code == 0
    assert lines[0] == "One Piece: could not determine (unrecognized airing status)"


def test_invalid_date_format_is_usage_error(session, run_cli):
    with pytest.raises(SystemExit) as exc:
        run_cli("run", "-u", "alice", "-f", "QQ-QQ")
    assert exc.value.code == 2
    assert session.calls == []


def test_invalid_timezone_is_usage_error(session, run_cli):
    with pytest.raises(SystemExit) as exc:
        run_cli("run", "-u", "alice", "-f", "1", "--timezone", "Mars/Olympus")
    assert exc.value.code == 2


@pytest.mark.parametrize("flag, value", [("--concurrency", "0"), ("--concurrency", "11"), ("--timeout", "-1")])
def test_out_of_range_options_are_usage_errors(run_cli, flag, value):
    with pytest.raises(SystemExit) as exc:
        run_cli("run", "-u", "alice", "-f", "1", flag, value)
    assert exc.value.code == 2
