"""Tests for transaction handling in the database manager."""

import sqlite3

import pytest
from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError, OperationalError

from campus_access.config import config
from campus_access.database import is_transient_error
from campus_access.models.tables import students
from campus_access.utils.exceptions import TransactionConflictError


def _student_exists(database, student_id):
    with database.get_connection() as conn:
        return conn.execute(select(students).where(students.c.student_id == student_id)).first() is not None


def test_exception_rolls_back_the_whole_transaction(database) -> None:
    def work(conn):
        conn.execute(insert(students).values(student_id="S100", student_name="Temp"))
        raise ValueError("boom")

    with pytest.raises(ValueError):
        database.run_in_transaction(work)

    assert not _student_exists(database, "S100")


def test_transient_conflicts_are_retried_then_surfaced(database, monkeypatch) -> None:
    monkeypatch.setattr(config, "TX_RETRY_DELAY_MS", 0)
    calls = []

    def work(conn):
        calls.append(1)
        raise OperationalError("UPDATE ...", {}, sqlite3.OperationalError("database is locked"))

    with pytest.raises(TransactionConflictError):
        database.run_in_transaction(work, attempts=3)

    assert len(calls) == 3


def test_retry_succeeds_after_one_conflict(database, monkeypatch) -> None:
    monkeypatch.setattr(config, "TX_RETRY_DELAY_MS", 0)
    calls = []

    def work(conn):
        calls.append(1)
        if len(calls) == 1:
            raise OperationalError("UPDATE ...", {}, sqlite3.OperationalError("database is locked"))
        return "done"

    assert database.run_in_transaction(work) == "done"
    assert len(calls) == 2


def test_other_database_errors_propagate(database) -> None:
    calls = []

    def work(conn):
        calls.append(1)
        conn.execute(insert(students).values(student_id="S001", student_name="Dup"))

    with pytest.raises(IntegrityError):
        database.run_in_transaction(work)

    assert len(calls) == 1


def test_mysql_deadlock_codes_are_transient() -> None:
    class FakeMySQLError(Exception):
        pass

    deadlock = OperationalError("UPDATE ...", {}, FakeMySQLError(1213, "Deadlock found"))
    missing = OperationalError("UPDATE ...", {}, FakeMySQLError(1146, "Table doesn't exist"))

    assert is_transient_error(deadlock)
    assert not is_transient_error(missing)


def test_fetch_one_returns_a_mapping_row(database) -> None:
    row = database.fetch_one("SELECT student_name FROM students WHERE student_id = :sid", {"sid": "S002"})

    assert row["student_name"] == "Bob Silva"
    assert database.fetch_one("SELECT 1 AS ok WHERE 1 = 0") is None
