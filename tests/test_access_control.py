"""Tests for the access session state machine (through the scan router)."""

from datetime import timedelta

from sqlalchemy import select

from campus_access.models.tables import facility_sessions
from campus_access.services.access_control import AccessSessionStateMachine
from tests.conftest import T0, open_sessions, sessions_for


def test_entry_then_exit_ten_seconds_later(scan_router, database) -> None:
    first = scan_router.route("TAG-001", "GYM", now=T0)
    second = scan_router.route("TAG-001", "GYM", now=T0 + timedelta(seconds=10))

    assert first.action == "ENTRY"
    assert first.student.student_id == "S001"
    assert first.facility == "GYM"
    assert second.action == "EXIT"
    assert second.duration_minutes == 0
    assert second.session_id == first.session_id

    (session,) = sessions_for(database, "S001")
    assert session["exit_reason"] == "NORMAL_SCAN"
    assert session["exit_time"] == T0 + timedelta(seconds=10)


def test_double_tap_within_window_is_ignored(scan_router, database) -> None:
    first = scan_router.route("TAG-001", "GYM", now=T0)
    second = scan_router.route("TAG-001", "GYM", now=T0 + timedelta(seconds=2))

    assert first.action == "ENTRY"
    assert second.action == "IGNORED"
    assert second.reason == "Double tap"
    assert second.error == "DOUBLE_TAP"
    assert len(sessions_for(database, "S001")) == 1
    assert len(open_sessions(database, "S001")) == 1


def test_double_tap_after_exit_is_ignored(scan_router, database) -> None:
    scan_router.route("TAG-001", "GYM", now=T0)
    exit_decision = scan_router.route("TAG-001", "GYM", now=T0 + timedelta(minutes=30))
    bounce = scan_router.route("TAG-001", "GYM", now=T0 + timedelta(minutes=30, seconds=1))

    assert exit_decision.action == "EXIT"
    assert bounce.action == "IGNORED"
    assert bounce.reason == "Double tap"
    assert open_sessions(database, "S001") == []


def test_tap_exactly_at_debounce_boundary_counts(scan_router) -> None:
    scan_router.route("TAG-001", "GYM", now=T0)
    decision = scan_router.route("TAG-001", "GYM", now=T0 + timedelta(seconds=3))

    assert decision.action == "EXIT"


def test_facility_switch_too_soon(scan_router, database) -> None:
    scan_router.route("TAG-001", "GYM", now=T0)
    decision = scan_router.route("TAG-001", "COURT", now=T0 + timedelta(minutes=1))

    assert decision.action == "IGNORED"
    assert decision.reason == "Facility switch too soon"
    (gym,) = open_sessions(database, "S001")
    assert gym["facility_id"] == "GYM"


def test_facility_switch_closes_previous_with_implicit_exit(scan_router, database, events) -> None:
    scan_router.route("TAG-001", "GYM", now=T0)
    events.clear()

    decision = scan_router.route("TAG-001", "COURT", now=T0 + timedelta(minutes=4))

    assert decision.action == "ENTRY"
    assert decision.facility == "COURT"

    gym, court = sessions_for(database, "S001")
    assert gym["exit_reason"] == "IMPLICIT_EXIT"
    assert gym["duration_minutes"] == 4
    assert court["exit_time"] is None
    assert len(open_sessions(database, "S001")) == 1

    assert [e["type"] for e in events] == ["IMPLICIT_EXIT", "SCAN_EVENT"]
    assert events[0]["payload"]["facility"] == "GYM"
    assert events[0]["payload"]["next_facility"] == "COURT"
    assert events[1]["payload"]["action"] == "ENTRY"


def test_duration_is_floored_minutes(scan_router) -> None:
    scan_router.route("TAG-001", "GYM", now=T0)
    decision = scan_router.route("TAG-001", "GYM", now=T0 + timedelta(minutes=59, seconds=59))

    assert decision.action == "EXIT"
    assert decision.duration_minutes == 59


def test_late_exit_within_grace_window(scan_router, database) -> None:
    scan_router.route("TAG-001", "GYM", now=T0)
    timeout_at = T0 + timedelta(minutes=121)
    with database.get_connection() as conn:
        closed = AccessSessionStateMachine().close_timed_out_sessions(conn, timeout_at)
    assert [c["exit_reason"] for c in closed] == ["AUTO_TIMEOUT"]

    decision = scan_router.route("TAG-001", "GYM", now=timeout_at + timedelta(minutes=10))

    assert decision.action == "LATE_EXIT"
    assert decision.duration_minutes == 131
    (session,) = sessions_for(database, "S001")
    assert session["exit_reason"] == "AUTO_TIMEOUT_LATE_SCAN"
    assert session["duration_minutes"] == 131


def test_scan_after_grace_window_starts_new_session(scan_router, database) -> None:
    scan_router.route("TAG-001", "GYM", now=T0)
    timeout_at = T0 + timedelta(minutes=121)
    with database.get_connection() as conn:
        AccessSessionStateMachine().close_timed_out_sessions(conn, timeout_at)

    decision = scan_router.route("TAG-001", "GYM", now=timeout_at + timedelta(minutes=16))

    assert decision.action == "ENTRY"
    first, second = sessions_for(database, "S001")
    assert first["exit_reason"] == "AUTO_TIMEOUT"
    assert second["exit_time"] is None


def test_timeout_sweep_skips_facilities_without_timeout(scan_router, database) -> None:
    scan_router.route("TAG-001", "COURT", now=T0)

    with database.get_connection() as conn:
        closed = AccessSessionStateMachine().close_timed_out_sessions(conn, T0 + timedelta(days=1))

    assert closed == []
    assert len(open_sessions(database, "S001")) == 1


def test_unknown_card_is_rejected_without_writes(scan_router, database, events) -> None:
    decision = scan_router.route("NOPE", "GYM", now=T0)

    assert decision.action == "REJECTED"
    assert decision.reason == "Unknown card"
    assert decision.student is None
    with database.get_connection() as conn:
        assert conn.execute(select(facility_sessions)).first() is None
    assert events[-1]["payload"]["action"] == "REJECTED"


def test_inactive_tag_is_rejected(scan_router) -> None:
    decision = scan_router.route("TAG-003", "GYM", now=T0)

    assert decision.action == "REJECTED"
    assert decision.reason == "Unknown card"


def test_unknown_facility_is_rejected(scan_router) -> None:
    decision = scan_router.route("TAG-001", "POOL", now=T0)

    assert decision.action == "REJECTED"
    assert decision.reason == "Unknown facility"


def test_facility_code_is_normalized(scan_router) -> None:
    decision = scan_router.route(" TAG-001 ", " gym ", now=T0)

    assert decision.action == "ENTRY"
    assert decision.facility == "GYM"


def test_single_open_session_across_a_day_of_taps(scan_router, database) -> None:
    taps = [
        ("GYM", 0), ("GYM", 1), ("COURT", 2), ("COURT", 600), ("GYM", 601),
        ("COURT", 900), ("GYM", 905), ("GYM", 906), ("COURT", 1300),
    ]
    for facility, seconds in taps:
        scan_router.route("TAG-001", facility, now=T0 + timedelta(seconds=seconds))
        assert len(open_sessions(database, "S001")) <= 1
