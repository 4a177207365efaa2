# =======================================================================================
# campus_access/services/equipment_desk.py - Desk Operations (transaction + notify)
# =======================================================================================
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from ..config import config
from ..database import DatabaseManager
from ..models.enums import NotificationType
from ..models.schemas import (
    InventoryItem,
    IssueLine,
    IssueResult,
    MissingEquipmentItem,
    ReturnLine,
    ReturnResult,
    StudentHistoryResponse,
)
from ..utils.clock import utcnow
from ..utils.exceptions import CustodyError, LoanAlreadyOpenError
from ..utils.validators import FacilityValidator
from .equipment_custody import EquipmentCustodyStateMachine
from .notifier import EventNotifier

logger = logging.getLogger(__name__)


class EquipmentDesk:
    """Operator-facing issue/return calls: one transaction each, rejections as results."""

    def __init__(
        self,
        database: DatabaseManager,
        notifier: EventNotifier,
        desk_facility_id: Optional[str] = None,
    ):
        self.db = database
        self.notifier = notifier
        self.custody = EquipmentCustodyStateMachine(
            FacilityValidator.normalize(desk_facility_id or config.EQUIPMENT_DESK_FACILITY)
        )

    def issue(
        self,
        student_id: str,
        assistant_id: str,
        items: Sequence[IssueLine],
        now: Optional[datetime] = None,
    ) -> IssueResult:
        now = now or utcnow()
        try:
            result = self.db.run_in_transaction(
                lambda conn: self.custody.issue(conn, student_id, assistant_id, items, now)
            )
        except CustodyError as e:
            logger.info("Issue to %s rejected: %s", student_id, e.reason)
            result = IssueResult(
                action="REJECTED",
                reason=e.reason,
                error=e.code,
                issue_id=e.issue_id if isinstance(e, LoanAlreadyOpenError) else None,
                assistant_id=str(assistant_id),
            )

        self.notifier.publish(NotificationType.EQUIPMENT_ISSUE, result)
        return result

    def return_items(
        self,
        issue_id: str,
        assistant_id: str,
        returns: Sequence[ReturnLine],
        now: Optional[datetime] = None,
    ) -> ReturnResult:
        now = now or utcnow()
        try:
            result = self.db.run_in_transaction(
                lambda conn: self.custody.return_items(conn, issue_id, assistant_id, returns, now)
            )
        except CustodyError as e:
            logger.info("Return on %s rejected: %s", issue_id, e.reason)
            result = ReturnResult(
                action="REJECTED",
                reason=e.reason,
                error=e.code,
                issue_id=issue_id,
                assistant_id=str(assistant_id),
            )

        self.notifier.publish(NotificationType.EQUIPMENT_RETURN, result)
        return result

    def missing_report(self) -> List[MissingEquipmentItem]:
        with self.db.get_connection() as conn:
            return self.custody.missing_report(conn)

    def inventory(self) -> List[InventoryItem]:
        with self.db.get_connection() as conn:
            return self.custody.available_equipment(conn)

    def student_history(self, student_id: str) -> StudentHistoryResponse:
        """Raises StudentNotFoundError for an unknown student."""
        with self.db.get_connection() as conn:
            return self.custody.student_history(conn, student_id)
