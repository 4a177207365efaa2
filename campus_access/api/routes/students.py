# =======================================================================================
# campus_access/api/routes/students.py - Student Lookup Endpoints
# =======================================================================================
from fastapi import APIRouter, Depends, Query
from sqlalchemy.engine import Connection
from ...models.schemas import StudentInfo, StudentSearchResponse
from ...services.student_service import StudentService
from ..dependencies import get_db_connection

router = APIRouter()
student_service = StudentService()


# ---- search endpoint used by the equipment desk ----

@router.get("/students/search", response_model=StudentSearchResponse)
def search_students(
    query: str = Query(..., min_length=1, description="Student id or name"),
    conn: Connection = Depends(get_db_connection),
):
    students = student_service.search_students(conn, query)
    return StudentSearchResponse(
        success=True,
        data=[StudentInfo(**s) for s in students],
    )
