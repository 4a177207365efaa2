"""Concurrent taps and desk requests against a shared ledger."""

from concurrent.futures import ThreadPoolExecutor

from sqlalchemy import select

from campus_access.models.schemas import IssueLine, ReturnLine
from campus_access.models.tables import equipment_issue_items
from tests.conftest import BASKETBALL, CONE, T0, add_student, available, issue_count, open_sessions


def _run_together(fn, args_list):
    with ThreadPoolExecutor(max_workers=len(args_list)) as pool:
        return list(pool.map(lambda args: fn(*args), args_list))


def _returned_quantities(database, issue_id):
    with database.get_connection() as conn:
        rows = conn.execute(
            select(equipment_issue_items.c.returned_qty, equipment_issue_items.c.issued_qty)
            .where(equipment_issue_items.c.issue_id == issue_id)
        ).all()
    return [tuple(r) for r in rows]


def test_simultaneous_taps_open_one_session(scan_router, database) -> None:
    decisions = _run_together(scan_router.route, [("TAG-001", "GYM", T0)] * 8)

    actions = sorted(d.action for d in decisions)
    assert actions.count("ENTRY") == 1
    assert set(actions) == {"ENTRY", "IGNORED"}
    assert len(open_sessions(database, "S001")) == 1


def test_last_units_go_to_exactly_as_many_students_as_stock(desk, database) -> None:
    with database.get_connection() as conn:
        for n in range(4, 8):
            add_student(conn, f"S00{n}", f"Student {n}", f"TAG-00{n}")
    student_ids = ["S001", "S002", "S004", "S005", "S006", "S007"]

    results = _run_together(
        desk.issue,
        [(sid, "7", [IssueLine(equipment_id=BASKETBALL, qty=1)], T0) for sid in student_ids],
    )

    assert sum(r.action == "ISSUED" for r in results) == 2
    assert {r.error for r in results if r.action == "REJECTED"} == {"INSUFFICIENT_STOCK"}
    assert available(database, BASKETBALL) == 0
    assert issue_count(database) == 2


def test_one_open_loan_per_student_under_contention(desk, database) -> None:
    results = _run_together(
        desk.issue, [("S001", "7", [IssueLine(equipment_id=CONE, qty=1)], T0)] * 5
    )

    assert sum(r.action == "ISSUED" for r in results) == 1
    assert {r.error for r in results if r.action == "REJECTED"} == {"LOAN_ALREADY_OPEN"}
    assert available(database, CONE) == 9
    assert issue_count(database) == 1


def test_concurrent_returns_never_exceed_what_was_issued(desk, database) -> None:
    issued = desk.issue("S001", "7", [IssueLine(equipment_id=CONE, qty=3)], now=T0)

    results = _run_together(
        desk.return_items,
        [(issued.issue_id, "8", [ReturnLine(equipment_type="cone", qty=1)], T0)] * 6,
    )

    accepted = [r for r in results if r.action != "REJECTED"]
    assert len(accepted) == 3
    assert sum(r.fully_returned for r in accepted) == 1
    assert {r.error for r in results if r.action == "REJECTED"} <= {"RETURN_EXCEEDS_ISSUED", "ALREADY_CLOSED"}
    assert available(database, CONE) == 10
    (item,) = _returned_quantities(database, issued.issue_id)
    assert item == (3, 3)


def test_racing_full_returns_restock_once(desk, database) -> None:
    issued = desk.issue("S001", "7", [IssueLine(equipment_id=BASKETBALL, qty=2)], now=T0)

    results = _run_together(
        desk.return_items,
        [(issued.issue_id, "8", [ReturnLine(equipment_type="Basketball", qty=2)], T0)] * 4,
    )

    assert sum(r.action == "RETURNED" for r in results) == 1
    assert available(database, BASKETBALL) == 2
