# =======================================================================================
# campus_access/services/scan_router.py - Scan Entry Point
# =======================================================================================
import logging
from datetime import datetime
from typing import Optional, Tuple, Union

from sqlalchemy.engine import Connection

from ..config import config
from ..database import DatabaseManager
from ..models.enums import NotificationType
from ..models.schemas import DeskDecision, ScanDecision
from ..utils.clock import utcnow
from ..utils.exceptions import UnknownFacilityError, UnknownTagError
from ..utils.validators import FacilityValidator
from .access_control import AccessOutcome, AccessSessionStateMachine
from .equipment_custody import EquipmentCustodyStateMachine
from .identity_service import IdentityResolver
from .notifier import EventNotifier

logger = logging.getLogger(__name__)

Decision = Union[ScanDecision, DeskDecision]


class ScanRouter:
    """
    Single entry point for "tag touched reader at facility".

    The equipment desk goes to the custody machine, every other facility to the
    access machine; one scan never reaches both. The whole decision is made in
    one transaction and published only after it commits.
    """

    def __init__(
        self,
        database: DatabaseManager,
        notifier: EventNotifier,
        desk_facility_id: Optional[str] = None,
        access: Optional[AccessSessionStateMachine] = None,
    ):
        self.db = database
        self.notifier = notifier
        self.desk_facility_id = FacilityValidator.normalize(
            desk_facility_id or config.EQUIPMENT_DESK_FACILITY
        )
        self.identity = IdentityResolver()
        self.access = access or AccessSessionStateMachine()
        self.custody = EquipmentCustodyStateMachine(self.desk_facility_id)

    def _decide(
        self, conn: Connection, tag_id: str, facility_id: str, now: datetime
    ) -> Tuple[Decision, Optional[dict]]:
        is_desk = facility_id == self.desk_facility_id
        try:
            facility = FacilityValidator.get_facility(conn, facility_id)
            student = self.identity.resolve(conn, tag_id)
        except (UnknownTagError, UnknownFacilityError) as e:
            reason = "Unknown card" if isinstance(e, UnknownTagError) else "Unknown facility"
            if is_desk:
                return DeskDecision(mode="REJECTED", reason=reason, error=e.code, facility=facility_id), None
            return ScanDecision(action="REJECTED", reason=reason, error=e.code, facility=facility_id), None

        if is_desk:
            return self.custody.scan_at_desk(conn, student), None

        outcome: AccessOutcome = self.access.handle_scan(conn, student, facility, now)
        return outcome.decision, outcome.implicit_exit

    def route(self, tag_id: str, facility_id: str, now: Optional[datetime] = None) -> Decision:
        """Turn one tap into one decision, then notify observers."""
        facility_id = FacilityValidator.normalize(facility_id)
        tag_id = (tag_id or "").strip()
        now = now or utcnow()

        decision, implicit_exit = self.db.run_in_transaction(
            lambda conn: self._decide(conn, tag_id, facility_id, now)
        )

        if isinstance(decision, DeskDecision):
            logger.info("Desk scan %s -> %s", tag_id, decision.mode)
            self.notifier.publish(NotificationType.DESK_SCAN, decision)
        else:
            logger.info(
                "Scan %s at %s -> %s%s", tag_id, facility_id, decision.action,
                f" ({decision.reason})" if decision.reason else "",
            )
            if implicit_exit:
                self.notifier.publish(NotificationType.IMPLICIT_EXIT, implicit_exit)
            self.notifier.publish(NotificationType.SCAN_EVENT, decision)

        return decision
