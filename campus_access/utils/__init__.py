# =======================================================================================
# campus_access/utils/__init__.py - Utils Package
# =======================================================================================
from .exceptions import *
from .validators import *

__all__ = [
    "CampusAccessError", "UnknownTagError", "UnknownFacilityError", "TransactionConflictError",
    "ScanRejectedError", "DoubleTapError", "FacilitySwitchTooSoonError", "CustodyError",
    "LoanAlreadyOpenError", "InsufficientStockError", "IssueNotFoundError", "AlreadyClosedError",
    "ItemNotFoundError", "ReturnExceedsIssuedError", "FacilityValidator", "QuantityValidator",
]
