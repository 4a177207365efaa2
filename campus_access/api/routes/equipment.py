# =======================================================================================
# campus_access/api/routes/equipment.py - Equipment Desk Endpoints
# =======================================================================================
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from ...models.schemas import (
    InventoryResponse,
    IssueRequest,
    IssueResult,
    MissingEquipmentResponse,
    ReturnRequest,
    ReturnResult,
    StudentHistoryResponse,
)
from ...services.equipment_desk import EquipmentDesk
from ...utils.exceptions import StudentNotFoundError
from ..dependencies import get_equipment_desk, require_admin

router = APIRouter()


@router.post("/sports-room/issue", response_model=IssueResult)
def issue_equipment(
    request: IssueRequest,
    admin: Dict[str, Any] = Depends(require_admin),
    desk: EquipmentDesk = Depends(get_equipment_desk),
):
    """Hand out equipment; the signed-in operator is recorded as assistant."""
    return desk.issue(request.student_id, str(admin["id"]), request.items)


@router.post("/sports-room/return", response_model=ReturnResult)
def return_equipment(
    request: ReturnRequest,
    admin: Dict[str, Any] = Depends(require_admin),
    desk: EquipmentDesk = Depends(get_equipment_desk),
):
    return desk.return_items(request.issue_id, str(admin["id"]), request.returns)


@router.get("/sports-room/missing", response_model=MissingEquipmentResponse)
def get_missing_equipment(
    admin: Dict[str, Any] = Depends(require_admin),
    desk: EquipmentDesk = Depends(get_equipment_desk),
):
    items = desk.missing_report()
    return MissingEquipmentResponse(items=items, total_missing_items=len(items))


@router.get("/sports-room/equipment", response_model=InventoryResponse)
def get_inventory(
    admin: Dict[str, Any] = Depends(require_admin),
    desk: EquipmentDesk = Depends(get_equipment_desk),
):
    return InventoryResponse(facility=desk.custody.desk_facility_id, equipment=desk.inventory())


@router.get("/equipment/history/{student_id}", response_model=StudentHistoryResponse)
def get_student_history(
    student_id: str,
    admin: Dict[str, Any] = Depends(require_admin),
    desk: EquipmentDesk = Depends(get_equipment_desk),
):
    try:
        return desk.student_history(student_id)
    except StudentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.reason)
