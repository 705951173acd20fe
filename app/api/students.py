"""Students and their attendance: records, summaries, cache, exports."""
import io
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import StreamingResponse

from app.api.deps import Attendance, Roster
from app.models import RecordFilters, StudentCreate
from app.services.qr import generate_qr_code
from app.validators import parse_optional_date

router = APIRouter()


def _filters(
    start_date: Optional[str],
    end_date: Optional[str],
    course_id: Optional[str],
    status: Optional[str],
    use_course_timeframe: bool = False,
) -> RecordFilters:
    return RecordFilters(
        start_date=parse_optional_date(start_date, "start_date"),
        end_date=parse_optional_date(end_date, "end_date"),
        course_id=course_id or None,
        status=status or None,
        use_course_timeframe=use_course_timeframe,
    )


@router.post("/", status_code=201)
async def create_student(data: StudentCreate, roster: Roster):
    student = await roster.create_student(data)
    return {"success": True, "data": student}


@router.get("/{student_id}")
async def get_student(student_id: str, roster: Roster):
    student = await roster.get_student(student_id)
    return {"success": True, "data": student}


@router.get("/{student_id}/qr-code")
async def get_student_qr_code(student_id: str, roster: Roster):
    """Payload to print on the student's check-in QR code."""
    student = await roster.get_student(student_id)
    return {"success": True, "data": {"student_id": student.student_id, "qr_data": generate_qr_code(student.student_id)}}


@router.get("/{student_id}/attendance")
async def list_student_attendance(
    student_id: str,
    service: Attendance,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    course_id: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    page_size: Optional[int] = None,
    use_course_timeframe: bool = False,
):
    """Paginated attendance records of a student, filtered by course, dates and status."""
    filters = _filters(start_date, end_date, course_id, status, use_course_timeframe)
    result = await service.query_student_records(student_id, filters, page, page_size)
    return {"success": True, "data": result}


@router.get("/{student_id}/attendance/summary")
async def get_student_attendance_summary(
    student_id: str,
    service: Attendance,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    course_id: Optional[str] = None,
    use_course_timeframe: bool = False,
):
    """Totals with monthly and per-course breakdowns."""
    filters = _filters(start_date, end_date, course_id, None, use_course_timeframe)
    overview = await service.get_student_overview(student_id, filters)
    return {"success": True, "data": overview}


@router.get("/{student_id}/attendance/document")
async def get_student_attendance_document(
    student_id: str,
    service: Attendance,
    end_date: Optional[str] = None,
):
    """Cached per-course attendance of a student, or its state as of end_date."""
    summary = await service.get_summary_document(student_id, end_date)
    return {"success": True, "data": summary}


@router.post("/{student_id}/attendance/recompute")
async def recompute_student_attendance(student_id: str, service: Attendance):
    summary = await service.recompute_summary(student_id)
    return {"success": True, "message": "Attendance summary recomputed", "data": summary}


@router.get("/{student_id}/attendance/export")
async def export_student_attendance(
    student_id: str,
    service: Attendance,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    course_id: Optional[str] = None,
    status: Optional[str] = None,
    use_course_timeframe: bool = False,
    format: str = Query("xlsx", enum=["csv", "xlsx"]),
):
    """Download a student's attendance as CSV or Excel."""
    filters = _filters(start_date, end_date, course_id, status, use_course_timeframe)
    content, media_type, filename = await service.export_student_attendance(student_id, filters, format)
    return StreamingResponse(
        io.BytesIO(content),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
