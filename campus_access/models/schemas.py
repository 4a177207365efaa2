
# =======================================================================================
# campus_access/models/schemas.py - Pydantic Models
# =======================================================================================
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_serializer
from .enums import DeskMode, ResultAction, ScanAction

# ========== Identity ==========

class StudentInfo(BaseModel):
    """Student identity as resolved from an active tag."""
    student_id: str
    student_name: str
    program: Optional[str] = None
    uid: Optional[str] = Field(None, description="Tag that was scanned, when known")

# ========== Scan ==========

class ScanRequest(BaseModel):
    """RFID scan request model."""
    uid: str = Field(..., min_length=1, max_length=100, description="RFID tag identifier")
    facility: str = Field(..., min_length=1, max_length=32, description="Facility the reader belongs to")

class ScanDecision(BaseModel):
    """Outcome of a scan at an access-controlled facility."""
    action: ScanAction
    reason: Optional[str] = None
    error: Optional[str] = None
    student: Optional[StudentInfo] = None
    facility: Optional[str] = None
    session_id: Optional[str] = None
    duration_minutes: Optional[int] = None

class OutstandingItem(BaseModel):
    item_id: str
    equipment_id: int
    equipment_type: str
    issued_qty: int
    returned_qty: int
    pending_qty: int
    status: str

class InventoryItem(BaseModel):
    equipment_id: int
    equipment_name: str
    equipment_type: str
    available_quantity: int
    total_quantity: int

class DeskDecision(BaseModel):
    """Outcome of a scan at the equipment desk: which flow the operator should run next."""
    mode: DeskMode
    reason: Optional[str] = None
    error: Optional[str] = None
    student: Optional[StudentInfo] = None
    facility: Optional[str] = None
    issue_id: Optional[str] = None
    issued_at: Optional[datetime] = None
    items: Optional[List[OutstandingItem]] = None
    available_equipment: Optional[List[InventoryItem]] = None

# ========== Equipment custody ==========

class IssueLine(BaseModel):
    equipment_id: int = Field(..., description="Equipment to hand out")
    qty: int = Field(..., description="Units requested, must be > 0")

class IssueRequest(BaseModel):
    student_id: str = Field(..., min_length=1)
    items: List[IssueLine] = Field(..., min_length=1)

class IssuedItem(BaseModel):
    item_id: str
    equipment_id: int
    equipment_name: str
    equipment_type: str
    qty: int

class IssueResult(BaseModel):
    action: ResultAction
    reason: Optional[str] = None
    error: Optional[str] = None
    issue_id: Optional[str] = None
    student: Optional[StudentInfo] = None
    assistant_id: Optional[str] = None
    items: List[IssuedItem] = Field(default_factory=list)

class ReturnLine(BaseModel):
    item_id: Optional[str] = None
    equipment_type: Optional[str] = None
    qty: int = Field(0, description="Units handed back, 0 lines are skipped")

class ReturnRequest(BaseModel):
    issue_id: str = Field(..., min_length=1)
    returns: List[ReturnLine] = Field(..., min_length=1)

class ReturnedItem(BaseModel):
    item_id: str
    equipment_type: str
    returned_qty: int
    total_returned: int
    issued_qty: int
    missing_qty: int
    status: str

class ReturnResult(BaseModel):
    action: ResultAction
    reason: Optional[str] = None
    error: Optional[str] = None
    issue_id: Optional[str] = None
    student_id: Optional[str] = None
    assistant_id: Optional[str] = None
    fully_returned: bool = False
    returned_at: Optional[datetime] = None
    items: List[ReturnedItem] = Field(default_factory=list)

class MissingEquipmentItem(BaseModel):
    student_id: str
    student_name: Optional[str] = None
    issue_id: str
    issued_at: datetime
    equipment_type: str
    issued_qty: int
    returned_qty: int
    missing_qty: int

class MissingEquipmentResponse(BaseModel):
    items: List[MissingEquipmentItem]
    total_missing_items: int

class InventoryResponse(BaseModel):
    facility: str
    equipment: List[InventoryItem]

class HistoryItem(BaseModel):
    equipment_type: str
    issued_qty: int
    returned_qty: int
    missing: int

class HistoryIssue(BaseModel):
    issue_id: str
    status: str
    issued_at: datetime
    returned_at: Optional[datetime] = None
    assistant_id: Optional[str] = None
    items: List[HistoryItem]

class StudentHistoryResponse(BaseModel):
    student_id: str
    student_name: str
    pending: List[HistoryIssue]
    returned: List[HistoryIssue]

# ========== Notifications ==========

class Notification(BaseModel):
    """Envelope pushed to every subscriber."""
    type: str
    payload: Dict[str, Any]
    timestamp: datetime

    @field_serializer("timestamp")
    def _utc_timestamp(self, value: datetime) -> str:
        return value.isoformat() + "Z"

# ========== Serial reader hub ==========

class SerialMessage(BaseModel):
    t: str
    id: Optional[int] = None
    mac: Optional[str] = None
    uid: Optional[str] = None
    fac: Optional[str] = None
    ts: Optional[int] = None

# ========== Admin Auth ==========

class AdminAuthRequest(BaseModel):
    username: str
    password: str


class AdminInfo(BaseModel):
    id: int
    username: str


class AdminAuthResponse(BaseModel):
    token: Optional[str] = None
    message: Optional[str] = None
    admin: Optional[AdminInfo] = None


# ========== Health for dashboard ==========

class HealthResponse(BaseModel):
    status: str                 # "ok" | "error"
    dataAvailable: bool
    message: Optional[str] = None


# ========== Occupancy ==========

class FacilityOccupancy(BaseModel):
    facility_id: str
    display_name: str
    current: int


class OccupancyResponse(BaseModel):
    facilities: List[FacilityOccupancy]
    total_inside: int


class SessionItem(BaseModel):
    session_id: str
    student_id: str
    student_name: Optional[str] = None
    facility_id: str
    entry_time: datetime
    exit_time: Optional[datetime] = None
    exit_reason: Optional[str] = None
    duration_minutes: Optional[int] = None


class SessionsResponse(BaseModel):
    sessions: List[SessionItem]


# ========== Student search ==========

class StudentSearchResponse(BaseModel):
    success: bool
    data: List[StudentInfo]
