# =======================================================================================
# campus_access/workers/session_worker.py - Auto-timeout Sweep
# =======================================================================================
import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional

from ..config import config
from ..database import DatabaseManager
from ..models.enums import NotificationType
from ..services.access_control import AccessSessionStateMachine
from ..services.notifier import EventNotifier
from ..utils.clock import utcnow

logger = logging.getLogger(__name__)


class SessionSweeper:
    """Periodically closes sessions whose facility auto-timeout has passed."""

    def __init__(
        self,
        database: DatabaseManager,
        notifier: EventNotifier,
        interval: Optional[int] = None,
        access: Optional[AccessSessionStateMachine] = None,
    ):
        self.db = database
        self.notifier = notifier
        self.interval = config.SESSION_SWEEP_INTERVAL if interval is None else interval
        self.access = access or AccessSessionStateMachine()
        self._stop = threading.Event()

    def sweep(self, now: Optional[datetime] = None) -> List[Dict]:
        """Run one sweep; each closure is published after the commit."""
        now = now or utcnow()
        closed = self.db.run_in_transaction(
            lambda conn: self.access.close_timed_out_sessions(conn, now)
        )
        for session in closed:
            self.notifier.publish(NotificationType.AUTO_TIMEOUT, session)
        return closed

    def start(self) -> bool:
        if self.interval <= 0:
            logger.info("Session sweep disabled")
            return False
        self._stop.clear()
        threading.Thread(target=self._run_loop, name="session-sweeper", daemon=True).start()
        logger.info("Session sweeper started (every %ss)", self.interval)
        return True

    def stop(self):
        self._stop.set()

    def _run_loop(self):
        while not self._stop.wait(self.interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("Session sweep failed")
