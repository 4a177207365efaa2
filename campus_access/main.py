# =======================================================================================
# campus_access/main.py - FastAPI Application Entry Point
# =======================================================================================
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .app_logging import configure_logging
from .config import config
from .api.routes.auth import router as auth_router
from .api.routes.dashboard import router as dashboard_router
from .api.routes.equipment import router as equipment_router
from .api.routes.events import router as events_router
from .api.routes.scan import router as scan_routes
from .api.routes.students import router as students_router
from .database import DatabaseManager, db_manager
from .models.schemas import HealthResponse
from .services.equipment_desk import EquipmentDesk
from .services.notifier import EventNotifier, notifier as default_notifier
from .services.reader_service import ReaderService
from .services.scan_router import ScanRouter
from .utils.exceptions import TransactionConflictError
from .workers.serial_worker import SerialWorker
from .workers.session_worker import SessionSweeper

logger = logging.getLogger(__name__)


def create_app(
    database: Optional[DatabaseManager] = None,
    notifier: Optional[EventNotifier] = None,
    start_workers: bool = True,
) -> FastAPI:
    configure_logging()

    database = database or db_manager
    notifier = notifier or default_notifier

    app = FastAPI(
        title="Campus Access API",
        version="1.0.0",
        description="RFID facility access sessions and equipment desk custody",
        debug=config.API_DEBUG,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    scan_router = ScanRouter(database, notifier)
    app.state.database = database
    app.state.notifier = notifier
    app.state.scan_router = scan_router
    app.state.equipment_desk = EquipmentDesk(database, notifier)
    app.state.serial_worker = SerialWorker(ReaderService(scan_router))
    app.state.session_sweeper = SessionSweeper(database, notifier)

    # Routers
    app.include_router(scan_routes, prefix="/api", tags=["scan"])
    app.include_router(equipment_router, prefix="/api", tags=["equipment"])
    app.include_router(students_router, prefix="/api", tags=["students"])
    app.include_router(auth_router, prefix="/api", tags=["auth"])
    app.include_router(dashboard_router, prefix="/api", tags=["dashboard"])
    app.include_router(events_router, prefix="/api", tags=["events"])

    @app.exception_handler(TransactionConflictError)
    async def transaction_conflict_handler(request: Request, exc: TransactionConflictError):
        return JSONResponse(status_code=503, content={"detail": exc.reason})

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error("Storage failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": "Storage unavailable"})

    @app.get("/api/health", response_model=HealthResponse, tags=["health"])
    def api_health():
        try:
            database.fetch_one("SELECT 1")
            return HealthResponse(status="ok", dataAvailable=True, message=None)
        except SQLAlchemyError as e:
            return HealthResponse(
                status="error", dataAvailable=False, message=str(e)
            )

    @app.on_event("startup")
    async def startup_event():
        if config.DB_CREATE_SCHEMA:
            database.create_schema()
        if start_workers:
            app.state.serial_worker.start()
            app.state.session_sweeper.start()
        logger.info("Campus Access API started")

    @app.on_event("shutdown")
    async def shutdown_event():
        app.state.serial_worker.stop()
        app.state.session_sweeper.stop()

    return app


app = create_app()
