# =======================================================================================
# campus_access/services/dashboard_service.py
# =======================================================================================

from typing import List, Dict, Any
from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from ..models.tables import facility_config, facility_sessions, students


class DashboardService:
    """Live occupancy and recent session activity for the dashboard."""

    # ---------- occupancy ----------

    def get_occupancy(self, conn: Connection, exclude: str = None) -> Dict[str, Any]:
        """Open sessions per facility; facilities with nobody inside report 0."""
        open_counts = (
            select(
                facility_sessions.c.facility_id,
                func.count().label("current"),
            )
            .where(facility_sessions.c.exit_time.is_(None))
            .group_by(facility_sessions.c.facility_id)
            .subquery()
        )
        query = (
            select(
                facility_config.c.facility_id,
                facility_config.c.display_name,
                func.coalesce(open_counts.c.current, 0).label("current"),
            )
            .select_from(
                facility_config.outerjoin(
                    open_counts, facility_config.c.facility_id == open_counts.c.facility_id
                )
            )
            .order_by(facility_config.c.facility_id)
        )
        if exclude:
            query = query.where(facility_config.c.facility_id != exclude)

        rows = conn.execute(query).mappings().all()
        facilities = [
            {
                "facility_id": r["facility_id"],
                "display_name": r["display_name"],
                "current": int(r["current"] or 0),
            }
            for r in rows
        ]
        return {
            "facilities": facilities,
            "total_inside": sum(f["current"] for f in facilities),
        }

    # ---------- sessions ----------

    def get_recent_sessions(self, conn: Connection, limit: int = 100) -> List[Dict[str, Any]]:
        rows = conn.execute(
            select(
                facility_sessions.c.session_id,
                facility_sessions.c.student_id,
                students.c.student_name,
                facility_sessions.c.facility_id,
                facility_sessions.c.entry_time,
                facility_sessions.c.exit_time,
                facility_sessions.c.exit_reason,
                facility_sessions.c.duration_minutes,
            )
            .select_from(
                facility_sessions.outerjoin(
                    students, facility_sessions.c.student_id == students.c.student_id
                )
            )
            .order_by(facility_sessions.c.entry_time.desc())
            .limit(limit)
        ).mappings().all()

        return [dict(r) for r in rows]
