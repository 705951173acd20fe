import datetime
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.deps import get_repository
from app.errors import ConflictError, StoreError
from app.main import app
from app.models import AttendanceDate, Course, Student, StudentAttendanceSummary
from app.services.attendance import AttendanceService
from app.services.roster import RosterService
from app.services.store import AttendanceRepository


class InMemoryAttendanceRepository(AttendanceRepository):
    """Dictionary-backed stand-in for MongoDB with the same write semantics."""

    def __init__(self):
        self.dates: dict[tuple[str, datetime.date], AttendanceDate] = {}
        self.summaries: dict[str, StudentAttendanceSummary] = {}
        self.courses: dict[str, Course] = {}
        self.students: dict[str, Student] = {}
        self.failing_summary_ids: set[str] = set()

    async def get_attendance_date(self, course_id: str, day: datetime.date) -> Optional[AttendanceDate]:
        record = self.dates.get((course_id, day))
        return record.model_copy(deep=True) if record else None

    async def save_attendance_date(
        self, record: AttendanceDate, expected_version: Optional[int] = None
    ) -> AttendanceDate:
        key = (record.course_id, record.date)
        if expected_version is not None:
            stored = self.dates.get(key)
            current = stored.version if stored else 0
            if current != expected_version:
                raise ConflictError(f"Attendance for {record.course_id} on {record.date} changed")
        self.dates[key] = record.model_copy(deep=True)
        return record

    async def list_attendance_dates(
        self,
        course_id: str,
        start: Optional[datetime.date] = None,
        end: Optional[datetime.date] = None,
    ) -> list[AttendanceDate]:
        records = [
            r.model_copy(deep=True)
            for (cid, day), r in self.dates.items()
            if cid == course_id and (not start or day >= start) and (not end or day <= end)
        ]
        return sorted(records, key=lambda r: r.date)

    async def count_attendance_dates(self, course_id: str) -> int:
        return len(await self.list_attendance_dates(course_id))

    async def get_summary(self, student_id: str) -> Optional[StudentAttendanceSummary]:
        summary = self.summaries.get(student_id)
        return summary.model_copy(deep=True) if summary else None

    async def save_summary(self, summary: StudentAttendanceSummary) -> None:
        if summary.student_id in self.failing_summary_ids:
            raise StoreError(f"Failed to write attendance summary of {summary.student_id}")
        self.summaries[summary.student_id] = summary.model_copy(deep=True)

    async def get_course(self, course_id: str) -> Optional[Course]:
        course = self.courses.get(course_id)
        return course.model_copy(deep=True) if course else None

    async def save_course(self, course: Course) -> Course:
        self.courses[course.course_id] = course.model_copy(deep=True)
        return course

    async def get_student(self, student_id: str) -> Optional[Student]:
        student = self.students.get(student_id)
        return student.model_copy(deep=True) if student else None

    async def save_student(self, student: Student) -> Student:
        self.students[student.student_id] = student.model_copy(deep=True)
        return student


STUDENT_NAMES = {
    "S1": "Ada Lovelace",
    "S2": "Alan Turing",
    "S3": "Grace Hopper",
    "S4": "Edsger Dijkstra",
    "S5": "Barbara Liskov",
}


@pytest.fixture()
def repository() -> InMemoryAttendanceRepository:
    """Course C1 with a roster of S1-S5, course C2 with S1 and S2."""
    repo = InMemoryAttendanceRepository()
    repo.courses["C1"] = Course(
        course_id="C1", title="Python Basics", teacher_id="T1", student_ids=list(STUDENT_NAMES)
    )
    repo.courses["C2"] = Course(
        course_id="C2", title="Algorithms, Part I", teacher_id="T2", student_ids=["S1", "S2"]
    )
    for student_id, name in STUDENT_NAMES.items():
        course_ids = ["C1", "C2"] if student_id in ("S1", "S2") else ["C1"]
        repo.students[student_id] = Student(student_id=student_id, full_name=name, course_ids=course_ids)
    return repo


@pytest.fixture()
def service(repository: InMemoryAttendanceRepository) -> AttendanceService:
    return AttendanceService(repository)


@pytest.fixture()
def roster(repository: InMemoryAttendanceRepository) -> RosterService:
    return RosterService(repository)


@pytest.fixture()
async def client(repository: InMemoryAttendanceRepository) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app, backed by the in-memory repository."""
    app.dependency_overrides[get_repository] = lambda: repository
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
