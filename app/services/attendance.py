"""Attendance marking, per-student rollups and exports."""
import datetime
import logging
from typing import Iterable, Optional

from app.config import settings
from app.errors import ConflictError, NotFoundError, StoreError, ValidationError
from app.models import (
    AttendanceDate,
    AttendanceRecord,
    Course,
    DailyStats,
    MarkResult,
    Page,
    RecordFilters,
    Student,
    StudentAttendanceOverview,
    StudentAttendanceSummary,
    StudentAttendanceTotals,
)
from app.services import aggregator, export
from app.services.qr import parse_qr_code
from app.services.store import AttendanceRepository
from app.validators import normalize_student_ids, parse_date, parse_optional_date, require_non_empty

logger = logging.getLogger(__name__)


def _clip_to_course(
    course: Course,
    start: Optional[datetime.date],
    end: Optional[datetime.date],
) -> tuple[Optional[datetime.date], Optional[datetime.date]]:
    """Narrow a date range to the course's own start and end dates."""
    if course.start_date and (start is None or course.start_date > start):
        start = course.start_date
    if course.end_date and (end is None or course.end_date < end):
        end = course.end_date
    return start, end


class AttendanceService:
    def __init__(self, repository: AttendanceRepository):
        self.repository = repository

    # Marking

    async def mark_attendance(
        self,
        course_id: str,
        date,
        present_student_ids: Iterable[str],
        teacher_id: str,
        teacher_name: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> MarkResult:
        """Record who was present; the new list replaces any earlier one for the date."""
        return await self._write_attendance(
            course_id, date, present_student_ids, teacher_id, teacher_name, expected_version,
            require_existing=False,
        )

    async def update_attendance(
        self,
        course_id: str,
        date,
        present_student_ids: Iterable[str],
        teacher_id: str,
        teacher_name: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> MarkResult:
        """Correct an already submitted date. Students left out lose that date."""
        return await self._write_attendance(
            course_id, date, present_student_ids, teacher_id, teacher_name, expected_version,
            require_existing=True,
        )

    async def _write_attendance(
        self,
        course_id,
        date,
        present_student_ids,
        teacher_id,
        teacher_name,
        expected_version,
        require_existing: bool,
    ) -> MarkResult:
        course_id = require_non_empty(course_id, "course_id")
        teacher_id = require_non_empty(teacher_id, "teacher_id")
        day = parse_date(date)
        present = normalize_student_ids(present_student_ids)
        if expected_version is not None and expected_version < 0:
            raise ValidationError("expected_version cannot be negative")

        previous = await self.repository.get_attendance_date(course_id, day)
        if require_existing and not previous:
            raise NotFoundError(f"No attendance recorded for course {course_id} on {day.isoformat()}")
        current_version = previous.version if previous else 0
        if expected_version is not None and expected_version != current_version:
            raise ConflictError(
                f"Attendance for {course_id} on {day.isoformat()} is at version {current_version}, "
                f"not {expected_version}"
            )

        record = AttendanceDate(
            course_id=course_id,
            date=day,
            present_student_ids=present,
            marked_by=teacher_id,
            marked_by_name=teacher_name or "admin",
            version=current_version + 1,
        )
        await self.repository.save_attendance_date(record, expected_version)
        logger.info(
            f"Attendance for {course_id} on {day.isoformat()} saved by {teacher_id}: "
            f"{len(present)} present (version {record.version})"
        )

        course = await self.repository.get_course(course_id)
        affected = set(present)
        if course:
            affected.update(course.student_ids)
        if previous:
            affected.update(previous.present_student_ids)
        await self._update_summaries(course_id, day, set(present), sorted(affected))

        action = "updated" if require_existing else "marked"
        return MarkResult(
            course_id=course_id,
            date=day,
            present_count=len(present),
            version=record.version,
            updated_students=len(affected),
            message=f"Attendance {action} successfully for {len(present)} students on {day.isoformat()}",
        )

    async def _update_summaries(
        self,
        course_id: str,
        day: datetime.date,
        present: set[str],
        student_ids: list[str],
    ) -> None:
        """Write-through to each student's cache, one document at a time.

        A failed write does not stop the others; the failures are reported
        together afterwards and ``recompute_summary`` repairs them.
        """
        total_classes = await self.repository.count_attendance_dates(course_id)
        failed = []
        for student_id in student_ids:
            try:
                summary = await self.repository.get_summary(student_id)
                if summary is None:
                    summary = StudentAttendanceSummary(student_id=student_id)
                summary.attendance_by_course[course_id] = aggregator.update_course_attendance(
                    summary.attendance_by_course.get(course_id),
                    day,
                    student_id in present,
                    total_classes,
                )
                summary.last_updated = datetime.datetime.utcnow()
                await self.repository.save_summary(summary)
            except StoreError:
                failed.append(student_id)

        if failed:
            logger.error(
                f"Attendance summaries not updated for course {course_id} on {day.isoformat()}: "
                f"{', '.join(failed)}"
            )
            raise StoreError(
                f"Attendance was saved but the summaries of {len(failed)} students could not be "
                f"updated: {', '.join(failed)}"
            )

    async def check_in(
        self,
        course_id: str,
        qr_data: str,
        teacher_id: str,
        teacher_name: Optional[str] = None,
    ) -> MarkResult:
        """Add one scanned student to the day's present list."""
        course_id = require_non_empty(course_id, "course_id")
        scan = parse_qr_code(qr_data)
        student = await self.repository.get_student(scan.student_id)
        if not student:
            raise NotFoundError(f"Student with ID {scan.student_id} not found")

        existing = await self.repository.get_attendance_date(course_id, scan.date)
        present = list(existing.present_student_ids) if existing else []
        if student.student_id in present:
            raise ConflictError(
                f"Attendance already marked for {student.full_name} on {scan.date.isoformat()}"
            )

        result = await self.mark_attendance(
            course_id,
            scan.date,
            present + [student.student_id],
            teacher_id,
            teacher_name,
            expected_version=existing.version if existing else 0,
        )
        result.message = f"Attendance marked successfully for {student.full_name}"
        return result

    # Course queries

    async def get_attendance_by_date(self, course_id: str, date) -> AttendanceDate:
        day = parse_date(date)
        record = await self.repository.get_attendance_date(course_id, day)
        if not record:
            raise NotFoundError(f"No attendance recorded for course {course_id} on {day.isoformat()}")
        return record

    async def get_course_attendance(self, course_id: str, start_date=None, end_date=None) -> list[AttendanceDate]:
        start = parse_optional_date(start_date, "start_date")
        end = parse_optional_date(end_date, "end_date")
        return await self.repository.list_attendance_dates(course_id, start, end)

    async def get_daily_stats(self, course_id: str, date) -> tuple[AttendanceDate, DailyStats]:
        record = await self.get_attendance_by_date(course_id, date)
        course = await self.repository.get_course(course_id)
        if course:
            roster_size = len(course.student_ids)
        else:
            roster_size = len(record.present_student_ids)
        return record, aggregator.compute_daily_stats(record, roster_size)

    # Student queries

    async def _require_student(self, student_id: str) -> Student:
        student = await self.repository.get_student(student_id)
        if not student:
            raise NotFoundError(f"Student with ID {student_id} not found")
        return student

    async def _course_ids_for(self, student_id: str, enrolled: Iterable[str]) -> set[str]:
        course_ids = set(enrolled)
        cached = await self.repository.get_summary(student_id)
        if cached:
            course_ids.update(cached.attendance_by_course)
        return course_ids

    async def _student_records(
        self,
        student: Student,
        filters: RecordFilters,
    ) -> list[AttendanceRecord]:
        if filters.course_id:
            course_ids = [filters.course_id]
        else:
            course_ids = sorted(await self._course_ids_for(student.student_id, student.course_ids))

        dates_by_course = {}
        course_names = {}
        for course_id in course_ids:
            course = await self.repository.get_course(course_id)
            start, end = filters.start_date, filters.end_date
            if course:
                course_names[course_id] = course.title
                if filters.use_course_timeframe:
                    start, end = _clip_to_course(course, start, end)
            dates_by_course[course_id] = await self.repository.list_attendance_dates(course_id, start, end)

        records = aggregator.build_student_records(student.student_id, dates_by_course, course_names)
        return aggregator.filter_records(records, filters)

    async def get_student_records(self, student_id: str, filters: RecordFilters) -> list[AttendanceRecord]:
        student = await self._require_student(student_id)
        return await self._student_records(student, filters)

    async def query_student_records(
        self,
        student_id: str,
        filters: RecordFilters,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Page:
        if page_size is None:
            page_size = settings.default_page_size
        if page_size > settings.max_page_size:
            raise ValidationError(f"Page size cannot exceed {settings.max_page_size}")
        records = await self.get_student_records(student_id, filters)
        return aggregator.paginate(records, page, page_size)

    async def get_student_attendance_summary(
        self, student_id: str, start_date=None, end_date=None
    ) -> StudentAttendanceTotals:
        """Totals derived from the per-date records, never from the cache."""
        filters = RecordFilters(
            start_date=parse_optional_date(start_date, "start_date"),
            end_date=parse_optional_date(end_date, "end_date"),
        )
        records = await self.get_student_records(student_id, filters)
        return aggregator.summarize_records(records)

    async def get_student_overview(self, student_id: str, filters: RecordFilters) -> StudentAttendanceOverview:
        records = await self.get_student_records(student_id, filters)
        totals = aggregator.summarize_records(records)
        return StudentAttendanceOverview(
            total_classes=totals.total_classes,
            attended=totals.attended,
            absent=totals.total_classes - totals.attended,
            percentage=totals.percentage,
            monthly=aggregator.monthly_summary(records),
            courses=aggregator.course_breakdown(records),
        )

    # Summary cache maintenance

    async def _rebuild_summary(self, student_id: str, course_ids: Iterable[str]) -> StudentAttendanceSummary:
        dates_by_course = {}
        for course_id in sorted(set(course_ids)):
            dates_by_course[course_id] = await self.repository.list_attendance_dates(course_id)
        summary = aggregator.recompute_summary(student_id, dates_by_course)
        await self.repository.save_summary(summary)
        return summary

    async def recompute_summary(self, student_id: str) -> StudentAttendanceSummary:
        """Rebuild a student's cached summary from the authoritative history."""
        student = await self._require_student(student_id)
        course_ids = await self._course_ids_for(student_id, student.course_ids)
        return await self._rebuild_summary(student_id, course_ids)

    async def get_summary_document(self, student_id: str, end_date=None) -> StudentAttendanceSummary:
        """Cached summary, recomputed and stored if it does not exist yet.

        With ``end_date`` the summary is computed as of that date instead,
        counting only classes held up to it; the cache is left untouched.
        """
        student = await self._require_student(student_id)
        end = parse_optional_date(end_date, "end_date")
        if end:
            course_ids = await self._course_ids_for(student_id, student.course_ids)
            dates_by_course = {}
            for course_id in sorted(course_ids):
                dates_by_course[course_id] = await self.repository.list_attendance_dates(course_id)
            return aggregator.recompute_summary(student_id, dates_by_course, end)

        summary = await self.repository.get_summary(student_id)
        if summary is None:
            logger.info(f"No cached attendance summary for {student_id}; recomputing")
            summary = await self._rebuild_summary(student_id, student.course_ids)
        return summary

    async def rebuild_course_summaries(self, course_id: str) -> int:
        """Recompute the summary of every student the course's records touch."""
        course = await self.repository.get_course(course_id)
        dates = await self.repository.list_attendance_dates(course_id)
        if not course and not dates:
            raise NotFoundError(f"Course {course_id} not found")

        student_ids = set(course.student_ids) if course else set()
        for record in dates:
            student_ids.update(record.present_student_ids)

        for student_id in sorted(student_ids):
            student = await self.repository.get_student(student_id)
            course_ids = await self._course_ids_for(student_id, student.course_ids if student else [])
            course_ids.add(course_id)
            await self._rebuild_summary(student_id, course_ids)
        logger.info(f"Rebuilt attendance summaries of {len(student_ids)} students for course {course_id}")
        return len(student_ids)

    # Export

    async def export_student_attendance(
        self, student_id: str, filters: RecordFilters, fmt: str = "xlsx"
    ) -> tuple[bytes, str, str]:
        """Returns (content, media type, filename)."""
        if fmt not in export.EXPORT_FORMATS:
            raise ValidationError(f"Export format must be one of: {', '.join(export.EXPORT_FORMATS)}")
        student = await self._require_student(student_id)
        records = await self._student_records(student, filters)
        rows = export.format_for_export(records)
        workbook = export.build_workbook(rows, student, filters)
        filename = export.generate_filename(student, filters, fmt)
        logger.info(f"Exporting {len(rows)} attendance rows for {student_id} as {filename}")
        return export.render(workbook, fmt), export.EXPORT_FORMATS[fmt], filename
