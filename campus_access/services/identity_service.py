# =======================================================================================
# campus_access/services/identity_service.py - Tag -> Student Resolution
# =======================================================================================
from sqlalchemy import select
from sqlalchemy.engine import Connection

from ..models.schemas import StudentInfo
from ..models.tables import rfid_mapping, students
from ..utils.exceptions import NoActiveTagError, StudentNotFoundError, UnknownTagError


class IdentityResolver:
    """Read-only lookups against the provisioning tables."""

    def resolve(self, conn: Connection, tag_id: str) -> StudentInfo:
        """Resolve an active tag binding to its student, or raise UnknownTagError."""
        row = conn.execute(
            select(students.c.student_id, students.c.student_name, students.c.program)
            .select_from(rfid_mapping.join(students, rfid_mapping.c.student_id == students.c.student_id))
            .where(rfid_mapping.c.uid == tag_id, rfid_mapping.c.status == "active")
        ).mappings().first()

        if not row:
            raise UnknownTagError()

        return StudentInfo(uid=tag_id, **row)

    def get_student(self, conn: Connection, student_id: str) -> StudentInfo:
        """Load a student by id together with their active tag."""
        row = conn.execute(
            select(students).where(students.c.student_id == student_id)
        ).mappings().first()
        if not row:
            raise StudentNotFoundError()

        uid = conn.execute(
            select(rfid_mapping.c.uid).where(
                rfid_mapping.c.student_id == student_id,
                rfid_mapping.c.status == "active",
            )
        ).scalar()
        if uid is None:
            raise NoActiveTagError()

        return StudentInfo(uid=uid, **row)

    @staticmethod
    def lock_student(conn: Connection, student_id: str) -> None:
        """
        Take the per-student row lock. Every state-mutating operation on a student
        goes through here first so the lock order is always student, then inventory.
        """
        conn.execute(
            select(students.c.student_id)
            .where(students.c.student_id == student_id)
            .with_for_update()
        ).first()
