# =======================================================================================
# campus_access/workers/__init__.py - Background Workers
# =======================================================================================
from .serial_worker import SerialWorker
from .session_worker import SessionSweeper

__all__ = ["SerialWorker", "SessionSweeper"]
