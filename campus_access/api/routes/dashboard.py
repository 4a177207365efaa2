# =======================================================================================
# campus_access/api/routes/dashboard.py - Occupancy Endpoints
# =======================================================================================

from fastapi import APIRouter, Depends, Query
from sqlalchemy.engine import Connection

from ...models.schemas import OccupancyResponse, SessionsResponse
from ...services.dashboard_service import DashboardService
from ...services.scan_router import ScanRouter
from ..dependencies import get_db_connection, get_scan_router

router = APIRouter()
dashboard_service = DashboardService()


@router.get("/occupancy", response_model=OccupancyResponse)
def get_occupancy(
    conn: Connection = Depends(get_db_connection),
    scan_router: ScanRouter = Depends(get_scan_router),
):
    # nobody "occupies" the equipment desk
    return dashboard_service.get_occupancy(conn, exclude=scan_router.desk_facility_id)


@router.get("/sessions/recent", response_model=SessionsResponse)
def get_recent_sessions(
    limit: int = Query(100, ge=1, le=1000),
    conn: Connection = Depends(get_db_connection),
):
    return SessionsResponse(sessions=dashboard_service.get_recent_sessions(conn, limit))
