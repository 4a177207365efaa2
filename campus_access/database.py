# =======================================================================================
# campus_access/database.py - Database Management
# =======================================================================================
import logging
import time
from contextlib import contextmanager
from typing import Callable, Optional, TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.pool import QueuePool

from .config import config
from .models.tables import metadata
from .utils.exceptions import TransactionConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# MySQL: lock wait timeout, deadlock, serialization failure
_MYSQL_TRANSIENT_CODES = {1205, 1213, 1180}


def is_transient_error(exc: DBAPIError) -> bool:
    """True when the failed transaction can simply be run again."""
    if exc.connection_invalidated:
        return False
    orig = exc.orig
    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int) and args[0] in _MYSQL_TRANSIENT_CODES:
        return True
    # sqlite3.OperationalError: database is locked
    return "database is locked" in str(orig).lower()


class DatabaseManager:
    """Manages database connections and transactions."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or config.DB_URL
        self.engine: Engine = self._build_engine(self.url)

    @staticmethod
    def _build_engine(url: str) -> Engine:
        if url.startswith("sqlite"):
            engine = create_engine(
                url,
                connect_args={"check_same_thread": False, "timeout": 30},
                future=True,
            )

            # Let SQLAlchemy own BEGIN so every transaction takes the write lock up front
            @event.listens_for(engine, "connect")
            def _sqlite_connect(dbapi_connection, connection_record):
                dbapi_connection.isolation_level = None
                dbapi_connection.execute("PRAGMA foreign_keys=ON")

            @event.listens_for(engine, "begin")
            def _sqlite_begin(conn):
                conn.exec_driver_sql("BEGIN IMMEDIATE")

            return engine

        return create_engine(
            url,
            poolclass=QueuePool,
            pool_size=config.DB_POOL_SIZE,
            max_overflow=config.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
            isolation_level="READ COMMITTED",
            future=True,
        )

    @contextmanager
    def get_connection(self):
        """Get a database connection with automatic cleanup."""
        with self.engine.begin() as conn:
            yield conn

    def run_in_transaction(
        self, work: Callable[[Connection], T], attempts: Optional[int] = None
    ) -> T:
        """
        Run ``work`` inside one transaction, retrying transient conflicts.

        Any exception raised by ``work`` rolls the whole transaction back. Deadlocks
        and lock timeouts are retried up to ``attempts`` times before surfacing as
        TransactionConflictError; other database errors propagate unchanged.
        """
        attempts = attempts or config.TX_RETRY_ATTEMPTS
        for attempt in range(1, attempts + 1):
            try:
                with self.get_connection() as conn:
                    return work(conn)
            except DBAPIError as exc:
                if not is_transient_error(exc):
                    raise
                logger.warning(
                    "Transient transaction failure (attempt %s/%s): %s",
                    attempt, attempts, exc.orig,
                )
                if attempt == attempts:
                    raise TransactionConflictError() from exc
                time.sleep(config.TX_RETRY_DELAY_MS / 1000.0 * attempt)
        raise TransactionConflictError()

    def create_schema(self) -> None:
        """Create any missing ledger tables."""
        metadata.create_all(self.engine)

    def fetch_one(self, query: str, params: dict = None):
        """Fetch a single result."""
        with self.get_connection() as conn:
            result = conn.execute(text(query), params or {})
            return result.mappings().first()

# Global database instance
db_manager = DatabaseManager()
