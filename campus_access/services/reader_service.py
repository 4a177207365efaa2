# =======================================================================================
# campus_access/services/reader_service.py - RFID Reader Hub Bridge
# =======================================================================================
import logging
import time
from typing import Optional, Dict, Any
from sqlalchemy.exc import SQLAlchemyError

from ..models.schemas import DeskDecision, SerialMessage
from ..models.enums import EventCode
from ..config import config
from ..utils.exceptions import TransactionConflictError
from .scan_router import Decision, ScanRouter

logger = logging.getLogger(__name__)


class ReaderService:
    """Turns reader hub requests into scan decisions and hub replies."""

    def __init__(self, router: ScanRouter, facility_id: Optional[str] = None):
        self.router = router
        self.facility_id = facility_id or config.READER_FACILITY_ID

    # ----------------------------------------------------------------------
    # Core request handler
    # ----------------------------------------------------------------------
    def process_rfid_request(self, message: SerialMessage) -> Optional[Dict[str, Any]]:
        """Process a single tap forwarded by the reader hub."""
        if message.t != "req" or not message.uid:
            return None

        facility = message.fac or self.facility_id
        if not facility:
            logger.warning("Tap from %s has no facility and READER_FACILITY_ID is unset", message.mac)
            return self.create_response_message(message, None)

        try:
            decision = self.router.route(message.uid, facility)
        except (TransactionConflictError, SQLAlchemyError):
            logger.exception("Scan for uid=%s at %s failed", message.uid, facility)
            return self.create_response_message(message, None)

        return self.create_response_message(message, decision)

    # ----------------------------------------------------------------------
    # Response builder
    # ----------------------------------------------------------------------
    @staticmethod
    def event_code(decision: Optional[Decision]) -> int:
        if decision is None:
            return EventCode.REJECTED.value
        outcome = decision.mode if isinstance(decision, DeskDecision) else decision.action
        return EventCode[outcome].value

    def create_response_message(
        self, message: SerialMessage, decision: Optional[Decision]
    ) -> Dict[str, Any]:
        """Generate JSON-serializable dict to send back to the hub."""
        code = self.event_code(decision)
        student = decision.student if decision is not None else None
        return {
            "t": "resp",
            "id": message.id,
            "mac": message.mac,
            "status": 0 if code in (EventCode.REJECTED.value, EventCode.IGNORED.value) else 1,
            "ts": int(time.time()),
            "event": code,
            "reason": decision.reason if decision is not None else "Reader error",
            "name": student.student_name if student else "Guest",
        }
