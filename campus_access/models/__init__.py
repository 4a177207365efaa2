# =======================================================================================
# campus_access/models/__init__.py - Models Package
# =======================================================================================
from .schemas import *
from .enums import *

__all__ = [
    "StudentInfo", "ScanRequest", "ScanDecision", "DeskDecision", "OutstandingItem",
    "InventoryItem", "IssueLine", "IssueRequest", "IssueResult", "ReturnLine",
    "ReturnRequest", "ReturnResult", "MissingEquipmentItem", "Notification", "SerialMessage",
    "ScanAction", "DeskMode", "ExitReason", "IssueStatus", "NotificationType", "EventCode",
]
