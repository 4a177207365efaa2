# =======================================================================================
# campus_access/api/dependencies.py - FastAPI Dependencies
# =======================================================================================
from typing import Any, Dict, Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.requests import HTTPConnection
from sqlalchemy.engine import Connection

from ..database import DatabaseManager
from ..services.auth_service import AuthService
from ..services.equipment_desk import EquipmentDesk
from ..services.notifier import EventNotifier
from ..services.scan_router import ScanRouter
from ..utils.exceptions import AuthenticationError

auth_service = AuthService()


def get_database(connection: HTTPConnection) -> DatabaseManager:
    return connection.app.state.database

def get_notifier(connection: HTTPConnection) -> EventNotifier:
    return connection.app.state.notifier

def get_scan_router(connection: HTTPConnection) -> ScanRouter:
    return connection.app.state.scan_router

def get_equipment_desk(connection: HTTPConnection) -> EquipmentDesk:
    return connection.app.state.equipment_desk

def get_db_connection(database: DatabaseManager = Depends(get_database)) -> Connection:
    """Dependency to get a database connection (one transaction per request)."""
    with database.get_connection() as conn:
        yield conn

def require_admin(
    authorization: Optional[str] = Header(None),
    database: DatabaseManager = Depends(get_database),
) -> Dict[str, Any]:
    """Resolve the desk operator from `Authorization: Bearer <token>`."""
    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authorization header missing")

    scheme, _, token = authorization.partition(" ")
    if scheme != "Bearer" or not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authorization format")

    try:
        with database.get_connection() as conn:
            return auth_service.resolve_token(conn, token)
    except AuthenticationError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.reason)
