"""Courses and enrollment rosters."""
from fastapi import APIRouter

from app.api.deps import Roster
from app.models import CourseCreate, EnrollRequest

router = APIRouter()


@router.post("/", status_code=201)
async def create_course(data: CourseCreate, roster: Roster):
    course = await roster.create_course(data)
    return {"success": True, "data": course}


@router.get("/{course_id}")
async def get_course(course_id: str, roster: Roster):
    course = await roster.get_course(course_id)
    return {"success": True, "data": course}


@router.post("/{course_id}/enroll")
async def enroll_students(course_id: str, data: EnrollRequest, roster: Roster):
    """Add students to the course roster."""
    course = await roster.enroll(course_id, data.student_ids)
    return {
        "success": True,
        "message": f"{len(data.student_ids)} students enrolled",
        "data": course,
    }
