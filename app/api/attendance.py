"""Course attendance: marking, corrections, QR check-in and per-date views."""
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from app.api.deps import Attendance

router = APIRouter()


class AttendanceMarkRequest(BaseModel):
    course_id: str
    date: str  # YYYY-MM-DD
    present_student_ids: list[str]
    teacher_id: str
    teacher_name: Optional[str] = None
    expected_version: Optional[int] = None


class CheckInRequest(BaseModel):
    course_id: str
    qr_data: str
    teacher_id: str
    teacher_name: Optional[str] = None


@router.post("/mark")
async def mark_attendance(data: AttendanceMarkRequest, service: Attendance):
    """Mark attendance for a course on a date; replaces any earlier list."""
    result = await service.mark_attendance(
        data.course_id,
        data.date,
        data.present_student_ids,
        data.teacher_id,
        data.teacher_name,
        data.expected_version,
    )
    return {"success": True, "message": result.message, "data": result}


@router.put("/mark")
async def update_attendance(data: AttendanceMarkRequest, service: Attendance):
    """Correct attendance already submitted for a date."""
    result = await service.update_attendance(
        data.course_id,
        data.date,
        data.present_student_ids,
        data.teacher_id,
        data.teacher_name,
        data.expected_version,
    )
    return {"success": True, "message": result.message, "data": result}


@router.post("/check-in")
async def check_in(data: CheckInRequest, service: Attendance):
    """Mark one student present from a scanned QR code."""
    result = await service.check_in(data.course_id, data.qr_data, data.teacher_id, data.teacher_name)
    return {"success": True, "message": result.message, "data": result}


@router.get("/{course_id}")
async def get_course_attendance(
    course_id: str,
    service: Attendance,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
):
    """Attendance records of a course, oldest first, optionally within a date range."""
    records = await service.get_course_attendance(course_id, start_date, end_date)
    return {"success": True, "data": {"records": records, "count": len(records)}}


@router.get("/{course_id}/{date_str}")
async def get_attendance_by_date(course_id: str, date_str: str, service: Attendance):
    """Attendance record and statistics for a course on one date."""
    record, stats = await service.get_daily_stats(course_id, date_str)
    return {"success": True, "data": {"attendance": record, "stats": stats}}


@router.post("/{course_id}/rebuild-summaries")
async def rebuild_course_summaries(course_id: str, service: Attendance):
    """Recompute cached student summaries from the course's attendance records."""
    count = await service.rebuild_course_summaries(course_id)
    return {
        "success": True,
        "message": f"Rebuilt attendance summaries for {count} students",
        "data": {"course_id": course_id, "students": count},
    }
