"""Document-store boundary: attendance dates, summaries, courses, students.

Services talk to ``AttendanceRepository`` only. ``BeanieAttendanceRepository``
stores dates as ``YYYY-MM-DD`` strings and validates every document it reads
into the domain models, so a document with an unexpected shape surfaces as a
``StoreError`` instead of leaking into the aggregation code.
"""
import datetime
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import ValidationError as SchemaError
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.errors import ConflictError, StoreError
from app.models import (
    AttendanceDate,
    AttendanceDateDocument,
    Course,
    CourseDocument,
    Student,
    StudentAttendanceSummary,
    StudentAttendanceSummaryDocument,
    StudentDocument,
)

logger = logging.getLogger(__name__)

_DOCUMENT_META = {"id", "revision_id"}


class AttendanceRepository(ABC):
    @abstractmethod
    async def get_attendance_date(self, course_id: str, day: datetime.date) -> Optional[AttendanceDate]:
        ...

    @abstractmethod
    async def save_attendance_date(
        self, record: AttendanceDate, expected_version: Optional[int] = None
    ) -> AttendanceDate:
        """Write or overwrite the (course_id, date) record.

        With ``expected_version`` the write only lands if the stored version
        matches; 0 means the record must not exist yet. A mismatch raises
        ``ConflictError``.
        """

    @abstractmethod
    async def list_attendance_dates(
        self,
        course_id: str,
        start: Optional[datetime.date] = None,
        end: Optional[datetime.date] = None,
    ) -> list[AttendanceDate]:
        """Records of a course, ascending by date, bounds inclusive."""

    @abstractmethod
    async def count_attendance_dates(self, course_id: str) -> int:
        ...

    @abstractmethod
    async def get_summary(self, student_id: str) -> Optional[StudentAttendanceSummary]:
        ...

    @abstractmethod
    async def save_summary(self, summary: StudentAttendanceSummary) -> None:
        ...

    @abstractmethod
    async def get_course(self, course_id: str) -> Optional[Course]:
        ...

    @abstractmethod
    async def save_course(self, course: Course) -> Course:
        ...

    @abstractmethod
    async def get_student(self, student_id: str) -> Optional[Student]:
        ...

    @abstractmethod
    async def save_student(self, student: Student) -> Student:
        ...


def _store_failure(action: str, exc: Exception) -> StoreError:
    logger.error(f"Document store failed to {action}: {exc}")
    return StoreError(f"Failed to {action}")


def _iso(value: Optional[datetime.date]) -> Optional[str]:
    return value.isoformat() if value else None


def _date_range(start: Optional[datetime.date], end: Optional[datetime.date]) -> dict[str, str]:
    bounds = {}
    if start:
        bounds["$gte"] = start.isoformat()
    if end:
        bounds["$lte"] = end.isoformat()
    return bounds


class BeanieAttendanceRepository(AttendanceRepository):
    """MongoDB-backed repository; requires ``init_beanie`` to have run."""

    def _load(self, model, doc, what: str):
        try:
            return model.model_validate(doc.model_dump(exclude=_DOCUMENT_META))
        except SchemaError as e:
            logger.error(f"Rejected malformed {what} document {doc.id}: {e}")
            raise StoreError(f"Stored {what} document has an unexpected shape") from e

    async def get_attendance_date(self, course_id: str, day: datetime.date) -> Optional[AttendanceDate]:
        try:
            doc = await AttendanceDateDocument.find_one(
                {"course_id": course_id, "date": day.isoformat()}
            )
        except PyMongoError as e:
            raise _store_failure("read attendance", e) from e
        if not doc:
            return None
        return self._load(AttendanceDate, doc, "attendance")

    async def save_attendance_date(
        self, record: AttendanceDate, expected_version: Optional[int] = None
    ) -> AttendanceDate:
        body: dict[str, Any] = record.model_dump()
        body["date"] = record.date.isoformat()
        key = {"course_id": record.course_id, "date": body["date"]}
        collection = AttendanceDateDocument.get_motor_collection()
        try:
            if expected_version is None:
                await collection.replace_one(key, body, upsert=True)
            elif expected_version == 0:
                await collection.insert_one(body)
            else:
                result = await collection.replace_one({**key, "version": expected_version}, body)
                if result.matched_count == 0:
                    raise ConflictError(
                        f"Attendance for {record.course_id} on {body['date']} changed since version {expected_version}"
                    )
        except DuplicateKeyError as e:
            raise ConflictError(
                f"Attendance for {record.course_id} on {body['date']} was already recorded"
            ) from e
        except PyMongoError as e:
            raise _store_failure("write attendance", e) from e
        return record

    async def list_attendance_dates(
        self,
        course_id: str,
        start: Optional[datetime.date] = None,
        end: Optional[datetime.date] = None,
    ) -> list[AttendanceDate]:
        query: dict[str, Any] = {"course_id": course_id}
        bounds = _date_range(start, end)
        if bounds:
            query["date"] = bounds
        try:
            docs = await AttendanceDateDocument.find(query).sort("+date").to_list()
        except PyMongoError as e:
            raise _store_failure("query attendance", e) from e
        return [self._load(AttendanceDate, d, "attendance") for d in docs]

    async def count_attendance_dates(self, course_id: str) -> int:
        try:
            return await AttendanceDateDocument.find({"course_id": course_id}).count()
        except PyMongoError as e:
            raise _store_failure("count attendance", e) from e

    async def get_summary(self, student_id: str) -> Optional[StudentAttendanceSummary]:
        try:
            doc = await StudentAttendanceSummaryDocument.find_one({"student_id": student_id})
        except PyMongoError as e:
            raise _store_failure("read attendance summary", e) from e
        if not doc:
            return None
        return self._load(StudentAttendanceSummary, doc, "attendance summary")

    async def save_summary(self, summary: StudentAttendanceSummary) -> None:
        body = {
            "student_id": summary.student_id,
            "attendance_by_course": {
                course_id: entry.model_dump(mode="json")
                for course_id, entry in summary.attendance_by_course.items()
            },
            "last_updated": summary.last_updated,
        }
        collection = StudentAttendanceSummaryDocument.get_motor_collection()
        try:
            await collection.replace_one({"student_id": summary.student_id}, body, upsert=True)
        except PyMongoError as e:
            raise _store_failure(f"write attendance summary of {summary.student_id}", e) from e

    async def get_course(self, course_id: str) -> Optional[Course]:
        try:
            doc = await CourseDocument.find_one(CourseDocument.course_id == course_id)
        except PyMongoError as e:
            raise _store_failure("read course", e) from e
        if not doc:
            return None
        return self._load(Course, doc, "course")

    async def save_course(self, course: Course) -> Course:
        fields = course.model_dump()
        fields["start_date"] = _iso(course.start_date)
        fields["end_date"] = _iso(course.end_date)
        try:
            doc = await CourseDocument.find_one(CourseDocument.course_id == course.course_id)
            if doc:
                for key, value in fields.items():
                    setattr(doc, key, value)
                await doc.save()
            else:
                await CourseDocument(**fields).insert()
        except PyMongoError as e:
            raise _store_failure("write course", e) from e
        return course

    async def get_student(self, student_id: str) -> Optional[Student]:
        try:
            doc = await StudentDocument.find_one(StudentDocument.student_id == student_id)
        except PyMongoError as e:
            raise _store_failure("read student", e) from e
        if not doc:
            return None
        return self._load(Student, doc, "student")

    async def save_student(self, student: Student) -> Student:
        fields = student.model_dump()
        try:
            doc = await StudentDocument.find_one(StudentDocument.student_id == student.student_id)
            if doc:
                for key, value in fields.items():
                    setattr(doc, key, value)
                await doc.save()
            else:
                await StudentDocument(**fields).insert()
        except PyMongoError as e:
            raise _store_failure("write student", e) from e
        return student
