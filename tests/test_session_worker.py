"""Tests for the auto-timeout sweeper."""

from datetime import timedelta

from campus_access.workers.session_worker import SessionSweeper
from tests.conftest import T0, open_sessions, sessions_for


def test_sweep_closes_and_publishes(scan_router, database, notifier, events) -> None:
    scan_router.route("TAG-001", "GYM", now=T0)
    scan_router.route("TAG-002", "COURT", now=T0)
    events.clear()

    closed = SessionSweeper(database, notifier).sweep(now=T0 + timedelta(minutes=130))

    assert [c["student_id"] for c in closed] == ["S001"]
    (session,) = sessions_for(database, "S001")
    assert session["exit_reason"] == "AUTO_TIMEOUT"
    assert session["exit_time"] == T0 + timedelta(minutes=130)
    assert open_sessions(database, "S002")
    assert [e["type"] for e in events] == ["AUTO_TIMEOUT"]


def test_sweep_before_timeout_leaves_session_open(scan_router, database, notifier) -> None:
    scan_router.route("TAG-001", "GYM", now=T0)

    assert SessionSweeper(database, notifier).sweep(now=T0 + timedelta(minutes=119)) == []
    assert len(open_sessions(database, "S001")) == 1


def test_sweeper_disabled_with_zero_interval(database, notifier) -> None:
    assert SessionSweeper(database, notifier, interval=0).start() is False
