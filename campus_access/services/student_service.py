# =======================================================================================
# campus_access/services/student_service.py - Student Lookup
# =======================================================================================
from typing import List, Dict, Any
from sqlalchemy import or_, select
from sqlalchemy.engine import Connection

from ..models.tables import rfid_mapping, students


class StudentService:
    """Read-only student lookups for the desk UI."""

    def search_students(self, conn: Connection, query: str, limit: int = 10) -> List[Dict[str, Any]]:
        """
        Search by student id or name. Exact id matches come first; otherwise
        fall back to a substring match on either column.
        """
        base = (
            select(
                students.c.student_id,
                students.c.student_name,
                students.c.program,
                rfid_mapping.c.uid,
            )
            .select_from(
                students.outerjoin(
                    rfid_mapping,
                    (rfid_mapping.c.student_id == students.c.student_id)
                    & (rfid_mapping.c.status == "active"),
                )
            )
            .order_by(students.c.student_name)
            .limit(limit)
        )

        rows = conn.execute(base.where(students.c.student_id == query)).mappings().all()

        if not rows:
            like = f"%{query}%"
            rows = conn.execute(
                base.where(
                    or_(students.c.student_name.like(like), students.c.student_id.like(like))
                )
            ).mappings().all()

        return [dict(r) for r in rows]
