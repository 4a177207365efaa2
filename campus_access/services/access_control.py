# =======================================================================================
# campus_access/services/access_control.py - Access Session State Machine
# =======================================================================================
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, insert, select, update
from sqlalchemy.engine import Connection

from ..config import config
from ..models.enums import SCAN_DRIVEN_EXITS, ExitReason
from ..models.schemas import ScanDecision, StudentInfo
from ..models.tables import facility_config, facility_sessions
from ..utils.clock import whole_minutes
from ..utils.exceptions import DoubleTapError, FacilitySwitchTooSoonError, ScanRejectedError
from .identity_service import IdentityResolver

logger = logging.getLogger(__name__)


@dataclass
class AccessOutcome:
    """Terminal decision plus the synthetic implicit exit, if one was forced."""
    decision: ScanDecision
    implicit_exit: Optional[Dict[str, Any]] = None


class AccessSessionStateMachine:
    """
    Entry/exit logic for access-controlled facilities.

    Sole writer of facility_sessions. Every method expects to run inside the
    caller's transaction; the student row lock is taken before any session row
    is read so concurrent scans for one student are applied one at a time.
    """

    def __init__(
        self,
        debounce_seconds: Optional[int] = None,
        transition_minutes: Optional[int] = None,
    ):
        self.debounce = timedelta(
            seconds=config.DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self.transition = timedelta(
            minutes=config.TRANSITION_MINUTES if transition_minutes is None else transition_minutes
        )

    # ----------------------------------------------------------------------
    # Ledger reads
    # ----------------------------------------------------------------------
    @staticmethod
    def latest_session(conn: Connection, student_id: str, facility_id: str) -> Optional[Dict[str, Any]]:
        """Most recent session for (student, facility) by entry time."""
        row = conn.execute(
            select(facility_sessions)
            .where(
                facility_sessions.c.student_id == student_id,
                facility_sessions.c.facility_id == facility_id,
            )
            .order_by(facility_sessions.c.entry_time.desc())
            .limit(1)
        ).mappings().first()
        return dict(row) if row else None

    @staticmethod
    def open_session(conn: Connection, student_id: str) -> Optional[Dict[str, Any]]:
        """The student's open session in any facility."""
        row = conn.execute(
            select(facility_sessions)
            .where(
                facility_sessions.c.student_id == student_id,
                facility_sessions.c.exit_time.is_(None),
            )
            .order_by(facility_sessions.c.entry_time.desc())
            .limit(1)
            .with_for_update()
        ).mappings().first()
        return dict(row) if row else None

    # ----------------------------------------------------------------------
    # Policy checks
    # ----------------------------------------------------------------------
    def check_debounce(self, last: Optional[Dict[str, Any]], now: datetime) -> None:
        """Raise DoubleTapError if the last tap at this facility was too recent."""
        if not last:
            return
        last_tap = last["entry_time"]
        if last["exit_time"] is not None and last["exit_reason"] in SCAN_DRIVEN_EXITS:
            last_tap = max(last_tap, last["exit_time"])
        if now - last_tap < self.debounce:
            raise DoubleTapError()

    def check_transition(self, open_elsewhere: Dict[str, Any], now: datetime) -> None:
        if now - open_elsewhere["entry_time"] < self.transition:
            raise FacilitySwitchTooSoonError()

    @staticmethod
    def is_late_exit(last: Optional[Dict[str, Any]], grace_window_minutes: int, now: datetime) -> bool:
        if not last or last["exit_reason"] != ExitReason.AUTO_TIMEOUT.value:
            return False
        return now - last["exit_time"] <= timedelta(minutes=grace_window_minutes or 0)

    # ----------------------------------------------------------------------
    # Ledger writes
    # ----------------------------------------------------------------------
    @staticmethod
    def close_session(conn: Connection, session: Dict[str, Any], reason: ExitReason, now: datetime) -> int:
        """Close (or re-close) a session; duration always runs from the original entry."""
        duration = whole_minutes(session["entry_time"], now)
        conn.execute(
            update(facility_sessions)
            .where(facility_sessions.c.session_id == session["session_id"])
            .values(exit_time=now, exit_reason=reason.value, duration_minutes=duration)
        )
        return duration

    @staticmethod
    def open_new_session(conn: Connection, student: StudentInfo, facility_id: str, now: datetime) -> str:
        session_id = str(uuid.uuid4())
        conn.execute(
            insert(facility_sessions).values(
                session_id=session_id,
                uid=student.uid,
                student_id=student.student_id,
                facility_id=facility_id,
                entry_time=now,
            )
        )
        return session_id

    # ----------------------------------------------------------------------
    # Core scan handler
    # ----------------------------------------------------------------------
    def handle_scan(
        self, conn: Connection, student: StudentInfo, facility: Dict[str, Any], now: datetime
    ) -> AccessOutcome:
        """
        Resolve one tap into exactly one decision. Rules, first match wins:
        double tap, facility switch (too soon -> ignore, else implicit exit and go on),
        open here -> EXIT, auto-timed-out within grace -> LATE_EXIT, else ENTRY.
        """
        facility_id = facility["facility_id"]
        IdentityResolver.lock_student(conn, student.student_id)

        last_here = self.latest_session(conn, student.student_id, facility_id)
        implicit_exit = None

        try:
            self.check_debounce(last_here, now)

            current = self.open_session(conn, student.student_id)
            if current and current["facility_id"] != facility_id:
                self.check_transition(current, now)
                duration = self.close_session(conn, current, ExitReason.IMPLICIT_EXIT, now)
                implicit_exit = {
                    "student": student.model_dump(),
                    "facility": current["facility_id"],
                    "session_id": current["session_id"],
                    "exit_reason": ExitReason.IMPLICIT_EXIT.value,
                    "duration_minutes": duration,
                    "next_facility": facility_id,
                }
                logger.info(
                    "Implicit exit for %s from %s (switching to %s)",
                    student.student_id, current["facility_id"], facility_id,
                )
                current = None
        except ScanRejectedError as e:
            return AccessOutcome(
                ScanDecision(
                    action="IGNORED", reason=e.reason, error=e.code,
                    student=student, facility=facility_id,
                )
            )

        if current:
            duration = self.close_session(conn, current, ExitReason.NORMAL_SCAN, now)
            decision = ScanDecision(
                action="EXIT", student=student, facility=facility_id,
                session_id=current["session_id"], duration_minutes=duration,
            )
        elif self.is_late_exit(last_here, facility["grace_window_minutes"], now):
            duration = self.close_session(conn, last_here, ExitReason.AUTO_TIMEOUT_LATE_SCAN, now)
            decision = ScanDecision(
                action="LATE_EXIT", student=student, facility=facility_id,
                session_id=last_here["session_id"], duration_minutes=duration,
            )
        else:
            session_id = self.open_new_session(conn, student, facility_id, now)
            decision = ScanDecision(
                action="ENTRY", student=student, facility=facility_id, session_id=session_id,
            )

        return AccessOutcome(decision, implicit_exit)

    # ----------------------------------------------------------------------
    # Auto-timeout sweep
    # ----------------------------------------------------------------------
    def close_timed_out_sessions(self, conn: Connection, now: datetime) -> List[Dict[str, Any]]:
        """Close open sessions that outlived their facility's auto timeout."""
        candidates = conn.execute(
            select(
                facility_sessions.c.session_id,
                facility_sessions.c.student_id,
                facility_sessions.c.facility_id,
                facility_sessions.c.entry_time,
                facility_config.c.auto_timeout_minutes,
            )
            .select_from(
                facility_sessions.join(
                    facility_config,
                    facility_sessions.c.facility_id == facility_config.c.facility_id,
                )
            )
            .where(
                facility_sessions.c.exit_time.is_(None),
                facility_config.c.auto_timeout_minutes.is_not(None),
            )
            .order_by(facility_sessions.c.student_id)
        ).mappings().all()

        closed: List[Dict[str, Any]] = []
        for row in candidates:
            if now - row["entry_time"] < timedelta(minutes=row["auto_timeout_minutes"]):
                continue

            IdentityResolver.lock_student(conn, row["student_id"])
            duration = whole_minutes(row["entry_time"], now)
            result = conn.execute(
                update(facility_sessions)
                .where(and_(
                    facility_sessions.c.session_id == row["session_id"],
                    facility_sessions.c.exit_time.is_(None),
                ))
                .values(
                    exit_time=now,
                    exit_reason=ExitReason.AUTO_TIMEOUT.value,
                    duration_minutes=duration,
                )
            )
            if result.rowcount:
                closed.append({
                    "student_id": row["student_id"],
                    "facility": row["facility_id"],
                    "session_id": row["session_id"],
                    "exit_reason": ExitReason.AUTO_TIMEOUT.value,
                    "duration_minutes": duration,
                })

        if closed:
            logger.info("Auto-timeout closed %s session(s)", len(closed))
        return closed
