# =======================================================================================
# campus_access/services/__init__.py - Services Package
# =======================================================================================
from .access_control import AccessSessionStateMachine
from .equipment_custody import EquipmentCustodyStateMachine
from .equipment_desk import EquipmentDesk
from .identity_service import IdentityResolver
from .notifier import EventNotifier
from .scan_router import ScanRouter

__all__ = [
    "AccessSessionStateMachine", "EquipmentCustodyStateMachine", "EquipmentDesk",
    "IdentityResolver", "EventNotifier", "ScanRouter",
]
