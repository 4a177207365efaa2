# =======================================================================================
# campus_access/api/routes/scan.py - Scan Endpoints
# =======================================================================================
from typing import Union
from fastapi import APIRouter, Depends
from ...models.schemas import DeskDecision, ScanDecision, ScanRequest
from ...services.scan_router import ScanRouter
from ..dependencies import get_scan_router

router = APIRouter()

@router.post("/scan", response_model=Union[ScanDecision, DeskDecision], response_model_exclude_none=True)
def handle_scan(request: ScanRequest, scan_router: ScanRouter = Depends(get_scan_router)):
    """
    Process one RFID tap. Rejections (unknown card, double tap, facility switch
    too soon) are normal 200 responses with action/mode REJECTED or IGNORED.
    """
    return scan_router.route(request.uid, request.facility)
