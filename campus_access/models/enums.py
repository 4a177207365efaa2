# =======================================================================================
# campus_access/models/enums.py - Enums and Constants
# =======================================================================================
from enum import Enum
from typing import Literal

# Type aliases for better type hints
ScanAction = Literal["ENTRY", "EXIT", "IGNORED", "LATE_EXIT", "REJECTED"]
DeskMode = Literal["ISSUE", "RETURN", "REJECTED"]
ResultAction = Literal["ISSUED", "PARTIAL_RETURN", "RETURNED", "REJECTED"]

class ExitReason(str, Enum):
    """Why an access session was closed."""
    NORMAL_SCAN = "NORMAL_SCAN"
    IMPLICIT_EXIT = "IMPLICIT_EXIT"
    AUTO_TIMEOUT = "AUTO_TIMEOUT"
    AUTO_TIMEOUT_LATE_SCAN = "AUTO_TIMEOUT_LATE_SCAN"

class IssueStatus(str, Enum):
    """Status of an equipment issue and of each of its items."""
    ISSUED = "ISSUED"
    PARTIAL_RETURN = "PARTIAL_RETURN"
    RETURNED = "RETURNED"

OPEN_ISSUE_STATUSES = (IssueStatus.ISSUED.value, IssueStatus.PARTIAL_RETURN.value)

# Exits that were triggered by a tap at the same facility; these count for debounce
SCAN_DRIVEN_EXITS = (ExitReason.NORMAL_SCAN.value, ExitReason.AUTO_TIMEOUT_LATE_SCAN.value)

class NotificationType(str, Enum):
    """Event types published to real-time subscribers."""
    SCAN_EVENT = "SCAN_EVENT"
    DESK_SCAN = "DESK_SCAN"
    IMPLICIT_EXIT = "IMPLICIT_EXIT"
    AUTO_TIMEOUT = "AUTO_TIMEOUT"
    EQUIPMENT_ISSUE = "EQUIPMENT_ISSUE"
    EQUIPMENT_RETURN = "EQUIPMENT_RETURN"

class EventCode(Enum):
    """Event codes sent back to reader hardware."""
    REJECTED = 0
    ENTRY = 1
    EXIT = 2
    IGNORED = 3
    LATE_EXIT = 4
    ISSUE = 5
    RETURN = 6
