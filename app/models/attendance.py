"""Attendance for a course on one date, and the per-student rollup cache."""
import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field, field_validator
from pymongo import ASCENDING, IndexModel


class AttendanceDate(BaseModel):
    """Which students were present for one course on one calendar date."""

    course_id: str
    date: datetime.date
    present_student_ids: list[str] = Field(default_factory=list)
    marked_by: str
    marked_by_name: str = "admin"
    marked_at: datetime.datetime = Field(default_factory=datetime.datetime.utcnow)
    version: int = 1

    @field_validator("present_student_ids")
    @classmethod
    def _unique_sorted(cls, value: list[str]) -> list[str]:
        return sorted(set(value))


class AttendanceDateDocument(Document):
    """Stored shape of AttendanceDate; one per (course_id, date)."""

    course_id: str
    date: str  # YYYY-MM-DD
    present_student_ids: list[str] = Field(default_factory=list)
    marked_by: str
    marked_by_name: str = "admin"
    marked_at: datetime.datetime
    version: int = 1

    class Settings:
        name = "attendance_dates"
        indexes = [
            IndexModel([("course_id", ASCENDING), ("date", ASCENDING)], unique=True),
        ]


class CourseAttendance(BaseModel):
    """One student's cached attendance in one course."""

    dates_present: list[datetime.date] = Field(default_factory=list)
    total_classes: int = 0
    attended: int = 0
    percentage: float = 0.0


class StudentAttendanceSummary(BaseModel):
    student_id: str
    attendance_by_course: dict[str, CourseAttendance] = Field(default_factory=dict)
    last_updated: datetime.datetime = Field(default_factory=datetime.datetime.utcnow)


class StoredCourseAttendance(BaseModel):
    dates_present: list[str] = Field(default_factory=list)  # YYYY-MM-DD, ascending
    total_classes: int = 0
    attended: int = 0
    percentage: float = 0.0


class StudentAttendanceSummaryDocument(Document):
    """Denormalized cache, rebuilt from attendance_dates on demand."""

    student_id: Indexed(str, unique=True)
    attendance_by_course: dict[str, StoredCourseAttendance] = Field(default_factory=dict)
    last_updated: Optional[datetime.datetime] = None

    class Settings:
        name = "student_attendance"
