"""Derived views: student records, filters, statistics, pages."""
import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AttendanceRecord(BaseModel):
    """One student's status for one course on one date."""

    student_id: str
    course_id: str
    course_name: str
    date: datetime.date
    status: str  # present, absent
    marked_by: str
    marked_by_name: Optional[str] = None
    marked_at: Optional[datetime.datetime] = None


class RecordFilters(BaseModel):
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    course_id: Optional[str] = None
    status: Optional[str] = None
    use_course_timeframe: bool = False  # clip to each course's start/end dates


class DailyStats(BaseModel):
    total_students: int
    present_students: int
    absent_students: int
    attendance_percentage: float


class Page(BaseModel):
    records: list[AttendanceRecord] = Field(default_factory=list)
    current_page: int
    total_pages: int
    total_records: int
    page_size: int


class StudentAttendanceTotals(BaseModel):
    total_classes: int
    attended: int
    percentage: float
    records: list[AttendanceRecord] = Field(default_factory=list)


class MonthlySummary(BaseModel):
    month: str  # YYYY-MM
    present_days: int
    absent_days: int
    present_percentage: float


class CourseBreakdown(BaseModel):
    course_id: str
    course_name: str
    present_days: int
    absent_days: int
    present_percentage: float


class StudentAttendanceOverview(BaseModel):
    total_classes: int
    attended: int
    absent: int
    percentage: float
    monthly: list[MonthlySummary] = Field(default_factory=list)
    courses: list[CourseBreakdown] = Field(default_factory=list)


class MarkResult(BaseModel):
    course_id: str
    date: datetime.date
    present_count: int
    version: int
    updated_students: int
    message: str
