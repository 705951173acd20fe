"""Courses, students and enrollment rosters."""
import logging

from app.errors import ConflictError, NotFoundError
from app.models import Course, CourseCreate, Student, StudentCreate
from app.services.store import AttendanceRepository

logger = logging.getLogger(__name__)


class RosterService:
    def __init__(self, repository: AttendanceRepository):
        self.repository = repository

    async def create_course(self, data: CourseCreate) -> Course:
        if await self.repository.get_course(data.course_id):
            raise ConflictError(f"Course {data.course_id} already exists")
        course = Course(**data.model_dump(exclude={"student_ids"}))
        await self.repository.save_course(course)
        if data.student_ids:
            course = await self.enroll(course.course_id, data.student_ids)
        logger.info(f"Created course {course.course_id} with {len(course.student_ids)} students")
        return course

    async def get_course(self, course_id: str) -> Course:
        course = await self.repository.get_course(course_id)
        if not course:
            raise NotFoundError(f"Course {course_id} not found")
        return course

    async def create_student(self, data: StudentCreate) -> Student:
        if await self.repository.get_student(data.student_id):
            raise ConflictError(f"Student {data.student_id} already exists")
        student = Student(**data.model_dump(exclude={"course_ids"}))
        await self.repository.save_student(student)
        for course_id in data.course_ids:
            await self.enroll(course_id, [student.student_id])
        return await self.get_student(student.student_id)

    async def get_student(self, student_id: str) -> Student:
        student = await self.repository.get_student(student_id)
        if not student:
            raise NotFoundError(f"Student with ID {student_id} not found")
        return student

    async def enroll(self, course_id: str, student_ids: list[str]) -> Course:
        """Add students to the roster and the course to each student."""
        course = await self.get_course(course_id)
        students = [await self.get_student(student_id) for student_id in student_ids]

        course.student_ids = sorted(set(course.student_ids) | {s.student_id for s in students})
        await self.repository.save_course(course)
        for student in students:
            if course_id not in student.course_ids:
                student.course_ids.append(course_id)
                await self.repository.save_student(student)
        return course
