"""Shared test fixtures: a seeded SQLite ledger per test."""

from datetime import datetime

import pytest
from sqlalchemy import func, insert, select

from campus_access.database import DatabaseManager
from campus_access.models.tables import (
    equipment,
    equipment_issues,
    facility_config,
    facility_equipment,
    facility_sessions,
    rfid_mapping,
    students,
)
from campus_access.services.equipment_desk import EquipmentDesk
from campus_access.services.notifier import EventNotifier
from campus_access.services.scan_router import ScanRouter

T0 = datetime(2026, 3, 2, 9, 0, 0)

DESK = "SPORTS_ROOM"
CONE, FOOTBALL, BASKETBALL = 1, 2, 3


def add_student(conn, student_id, name, tag, tag_status="active", program="BSc"):
    conn.execute(insert(students).values(student_id=student_id, student_name=name, program=program))
    conn.execute(insert(rfid_mapping).values(uid=tag, student_id=student_id, status=tag_status))


def seed(conn):
    conn.execute(
        insert(facility_config),
        [
            {"facility_id": "GYM", "display_name": "Gym", "grace_window_minutes": 15, "auto_timeout_minutes": 120},
            {"facility_id": "COURT", "display_name": "Court", "grace_window_minutes": 10, "auto_timeout_minutes": None},
            {"facility_id": DESK, "display_name": "Sports Room", "grace_window_minutes": 0, "auto_timeout_minutes": None},
        ],
    )
    add_student(conn, "S001", "Alice Perera", "TAG-001")
    add_student(conn, "S002", "Bob Silva", "TAG-002")
    add_student(conn, "S003", "Carol Fernando", "TAG-003", tag_status="inactive")

    conn.execute(
        insert(equipment),
        [
            {"equipment_id": CONE, "name": "Cone", "category": "cone"},
            {"equipment_id": FOOTBALL, "name": "Football", "category": "ball"},
            {"equipment_id": BASKETBALL, "name": "Basketball", "category": None},
        ],
    )
    conn.execute(
        insert(facility_equipment),
        [
            {"facility_id": DESK, "equipment_id": CONE, "total_quantity": 10, "available_quantity": 10},
            {"facility_id": DESK, "equipment_id": FOOTBALL, "total_quantity": 4, "available_quantity": 4},
            {"facility_id": DESK, "equipment_id": BASKETBALL, "total_quantity": 2, "available_quantity": 2},
        ],
    )


@pytest.fixture
def database(tmp_path):
    db = DatabaseManager(f"sqlite:///{tmp_path / 'campus.db'}")
    db.create_schema()
    with db.get_connection() as conn:
        seed(conn)
    yield db
    db.engine.dispose()


@pytest.fixture
def notifier():
    return EventNotifier()


@pytest.fixture
def events(notifier):
    received = []
    notifier.subscribe(received.append)
    return received


@pytest.fixture
def scan_router(database, notifier):
    return ScanRouter(database, notifier, desk_facility_id=DESK)


@pytest.fixture
def desk(database, notifier):
    return EquipmentDesk(database, notifier, desk_facility_id=DESK)


# ---------- ledger inspection helpers ----------

def sessions_for(database, student_id):
    with database.get_connection() as conn:
        rows = conn.execute(
            select(facility_sessions)
            .where(facility_sessions.c.student_id == student_id)
            .order_by(facility_sessions.c.entry_time)
        ).mappings().all()
    return [dict(r) for r in rows]


def open_sessions(database, student_id):
    return [s for s in sessions_for(database, student_id) if s["exit_time"] is None]


def available(database, equipment_id):
    with database.get_connection() as conn:
        return conn.execute(
            select(facility_equipment.c.available_quantity).where(
                facility_equipment.c.facility_id == DESK,
                facility_equipment.c.equipment_id == equipment_id,
            )
        ).scalar_one()


def issue_count(database):
    with database.get_connection() as conn:
        return conn.execute(select(func.count()).select_from(equipment_issues)).scalar_one()
