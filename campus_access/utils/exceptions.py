# =======================================================================================
# campus_access/utils/exceptions.py - Custom Exceptions
# =======================================================================================
from typing import Optional


class CampusAccessError(Exception):
    """Base exception for the campus access system."""
    code = "ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__)

    @property
    def reason(self) -> str:
        return str(self)

class UnknownTagError(CampusAccessError):
    """Unknown card"""
    code = "UNKNOWN_TAG"

class UnknownFacilityError(CampusAccessError):
    """Unknown facility"""
    code = "UNKNOWN_FACILITY"

class TransactionConflictError(CampusAccessError):
    """Transaction kept conflicting with concurrent writers"""
    code = "TRANSACTION_CONFLICT"

class AuthenticationError(CampusAccessError):
    """Invalid or expired token"""
    code = "UNAUTHENTICATED"

# ========== Access session rejections ==========

class ScanRejectedError(CampusAccessError):
    """Scan ignored"""

class DoubleTapError(ScanRejectedError):
    """Double tap"""
    code = "DOUBLE_TAP"

class FacilitySwitchTooSoonError(ScanRejectedError):
    """Facility switch too soon"""
    code = "FACILITY_SWITCH_TOO_SOON"

# ========== Equipment custody rejections ==========

class CustodyError(CampusAccessError):
    """Equipment request rejected"""

class StudentNotFoundError(CustodyError):
    """Student not found"""
    code = "STUDENT_NOT_FOUND"

class NoActiveTagError(CustodyError):
    """No active RFID card for student"""
    code = "NO_ACTIVE_TAG"

class InvalidQuantityError(CustodyError):
    """Invalid equipment item or quantity"""
    code = "INVALID_QUANTITY"

class LoanAlreadyOpenError(CustodyError):
    """Pending returns exist. Student must return equipment first."""
    code = "LOAN_ALREADY_OPEN"

    def __init__(self, issue_id: str):
        super().__init__()
        self.issue_id = issue_id

class EquipmentNotFoundError(CustodyError):
    code = "EQUIPMENT_NOT_FOUND"

    def __init__(self, equipment_id):
        super().__init__(f"Equipment ID {equipment_id} not available at the equipment desk")
        self.equipment_id = equipment_id

class InsufficientStockError(CustodyError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, equipment_name: str, available: int, requested: int):
        super().__init__(
            f"Not enough {equipment_name}. Available: {available}, Requested: {requested}"
        )
        self.equipment_name = equipment_name
        self.available = available
        self.requested = requested

class IssueNotFoundError(CustodyError):
    """Issue not found"""
    code = "ISSUE_NOT_FOUND"

class AlreadyClosedError(CustodyError):
    """All equipment already returned"""
    code = "ALREADY_CLOSED"

class ItemNotFoundError(CustodyError):
    code = "ITEM_NOT_FOUND"

    def __init__(self, ref: Optional[str]):
        super().__init__(f"Item {ref} not found in this issue")

class ReturnExceedsIssuedError(CustodyError):
    code = "RETURN_EXCEEDS_ISSUED"

    def __init__(self, equipment_type: str, requested: int, pending: int):
        super().__init__(
            f"Cannot return {requested} {equipment_type}. Only {pending} pending."
        )
        self.equipment_type = equipment_type
        self.pending = pending
