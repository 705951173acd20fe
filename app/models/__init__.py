"""Beanie document models and Pydantic schemas."""
from app.models.attendance import (
    AttendanceDate,
    AttendanceDateDocument,
    CourseAttendance,
    StoredCourseAttendance,
    StudentAttendanceSummary,
    StudentAttendanceSummaryDocument,
)
from app.models.course import Course, CourseCreate, CourseDocument, EnrollRequest
from app.models.report import (
    AttendanceRecord,
    CourseBreakdown,
    DailyStats,
    MarkResult,
    MonthlySummary,
    Page,
    RecordFilters,
    StudentAttendanceOverview,
    StudentAttendanceTotals,
)
from app.models.student import Student, StudentCreate, StudentDocument

__all__ = [
    "AttendanceDate",
    "AttendanceDateDocument",
    "CourseAttendance",
    "StoredCourseAttendance",
    "StudentAttendanceSummary",
    "StudentAttendanceSummaryDocument",
    "Course",
    "CourseCreate",
    "CourseDocument",
    "EnrollRequest",
    "AttendanceRecord",
    "CourseBreakdown",
    "DailyStats",
    "MarkResult",
    "MonthlySummary",
    "Page",
    "RecordFilters",
    "StudentAttendanceOverview",
    "StudentAttendanceTotals",
    "Student",
    "StudentCreate",
    "StudentDocument",
]
