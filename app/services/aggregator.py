"""Attendance statistics, filtering and paging over plain records.

Nothing here touches the store: every function takes already-fetched
records, so the same code serves lazy recomputation on read and the
maintenance rebuild jobs.
"""
import datetime
import math
from collections import defaultdict
from typing import Iterable, Mapping, Optional, Sequence

from app.errors import ValidationError
from app.models import (
    AttendanceDate,
    AttendanceRecord,
    CourseAttendance,
    CourseBreakdown,
    DailyStats,
    MonthlySummary,
    Page,
    RecordFilters,
    StudentAttendanceSummary,
    StudentAttendanceTotals,
)

VALID_STATUSES = ("present", "absent")


def calculate_percentage(attended: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(attended / total * 100, 2)


def compute_daily_stats(attendance_date: AttendanceDate, roster_size: int) -> DailyStats:
    """Present/absent counts for one course date against the roster size.

    Present ids outside the roster still count as present, but the roster
    size stays the denominator and absences never go negative.
    """
    total = max(roster_size, 0)
    present = len(attendance_date.present_student_ids)
    return DailyStats(
        total_students=total,
        present_students=present,
        absent_students=max(total - present, 0),
        attendance_percentage=calculate_percentage(present, total),
    )


def _record_order(record: AttendanceRecord):
    return (record.date, record.course_id)


def filter_records(records: Iterable[AttendanceRecord], filters: RecordFilters) -> list[AttendanceRecord]:
    """Apply course, then inclusive date range, then status."""
    if filters.status and filters.status not in VALID_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(VALID_STATUSES)}")

    result = list(records)
    if filters.course_id:
        result = [r for r in result if r.course_id == filters.course_id]
    if filters.start_date:
        result = [r for r in result if r.date >= filters.start_date]
    if filters.end_date:
        result = [r for r in result if r.date <= filters.end_date]
    if filters.status:
        result = [r for r in result if r.status == filters.status]
    result.sort(key=_record_order)
    return result


def paginate(records: Sequence[AttendanceRecord], page: int, page_size: int) -> Page:
    if page < 1:
        raise ValidationError("Page must be 1 or greater")
    if page_size < 1:
        raise ValidationError("Page size must be 1 or greater")

    total = len(records)
    offset = (page - 1) * page_size
    return Page(
        records=list(records[offset:offset + page_size]),
        current_page=page,
        total_pages=math.ceil(total / page_size),
        total_records=total,
        page_size=page_size,
    )


def build_course_attendance(
    student_id: str,
    attendance_dates: Iterable[AttendanceDate],
    end: Optional[datetime.date] = None,
) -> CourseAttendance:
    """One student's cache entry for a course, from that course's full history."""
    held = set()
    present = set()
    for record in attendance_dates:
        if end and record.date > end:
            continue
        held.add(record.date)
        if student_id in record.present_student_ids:
            present.add(record.date)
    return CourseAttendance(
        dates_present=sorted(present),
        total_classes=len(held),
        attended=len(present),
        percentage=calculate_percentage(len(present), len(held)),
    )


def update_course_attendance(
    entry: Optional[CourseAttendance],
    day: datetime.date,
    present: bool,
    total_classes: int,
) -> CourseAttendance:
    """Write-through update of a cached entry after one date was (re)marked."""
    dates = set(entry.dates_present) if entry else set()
    if present:
        dates.add(day)
    else:
        dates.discard(day)
    return CourseAttendance(
        dates_present=sorted(dates),
        total_classes=total_classes,
        attended=len(dates),
        percentage=calculate_percentage(len(dates), total_classes),
    )


def recompute_summary(
    student_id: str,
    dates_by_course: Mapping[str, Sequence[AttendanceDate]],
    end: Optional[datetime.date] = None,
) -> StudentAttendanceSummary:
    """Rebuild from full history; with ``end`` only classes held up to that date count."""
    return StudentAttendanceSummary(
        student_id=student_id,
        attendance_by_course={
            course_id: build_course_attendance(student_id, dates, end)
            for course_id, dates in dates_by_course.items()
        },
    )


def build_student_records(
    student_id: str,
    dates_by_course: Mapping[str, Sequence[AttendanceDate]],
    course_names: Mapping[str, str],
) -> list[AttendanceRecord]:
    records = []
    for course_id, dates in dates_by_course.items():
        course_name = course_names.get(course_id) or f"Course {course_id}"
        for record in dates:
            records.append(
                AttendanceRecord(
                    student_id=student_id,
                    course_id=course_id,
                    course_name=course_name,
                    date=record.date,
                    status="present" if student_id in record.present_student_ids else "absent",
                    marked_by=record.marked_by,
                    marked_by_name=record.marked_by_name,
                    marked_at=record.marked_at,
                )
            )
    records.sort(key=_record_order)
    return records


def summarize_records(records: Sequence[AttendanceRecord]) -> StudentAttendanceTotals:
    attended = sum(1 for r in records if r.status == "present")
    return StudentAttendanceTotals(
        total_classes=len(records),
        attended=attended,
        percentage=calculate_percentage(attended, len(records)),
        records=list(records),
    )


def monthly_summary(records: Iterable[AttendanceRecord]) -> list[MonthlySummary]:
    counts: dict[str, list[int]] = defaultdict(lambda: [0, 0])
    for record in records:
        month = record.date.strftime("%Y-%m")
        counts[month][0 if record.status == "present" else 1] += 1
    return [
        MonthlySummary(
            month=month,
            present_days=present,
            absent_days=absent,
            present_percentage=calculate_percentage(present, present + absent),
        )
        for month, (present, absent) in sorted(counts.items())
    ]


def course_breakdown(records: Iterable[AttendanceRecord]) -> list[CourseBreakdown]:
    names: dict[str, str] = {}
    counts: dict[str, list[int]] = defaultdict(lambda: [0, 0])
    for record in records:
        names[record.course_id] = record.course_name
        counts[record.course_id][0 if record.status == "present" else 1] += 1
    return [
        CourseBreakdown(
            course_id=course_id,
            course_name=names[course_id],
            present_days=present,
            absent_days=absent,
            present_percentage=calculate_percentage(present, present + absent),
        )
        for course_id, (present, absent) in sorted(counts.items())
    ]
