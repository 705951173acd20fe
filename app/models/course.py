"""Courses and their enrollment rosters."""
import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field, field_validator


class Course(BaseModel):
    course_id: str
    title: str
    teacher_id: Optional[str] = None
    student_ids: list[str] = Field(default_factory=list)  # roster
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    created_at: datetime.datetime = Field(default_factory=datetime.datetime.utcnow)

    @field_validator("student_ids")
    @classmethod
    def _unique_sorted(cls, value: list[str]) -> list[str]:
        return sorted(set(value))


class CourseDocument(Document):
    """Course document; course_id is the external key used by attendance."""

    course_id: Indexed(str, unique=True)
    title: str
    teacher_id: Optional[str] = None
    student_ids: list[str] = Field(default_factory=list)
    start_date: Optional[str] = None  # YYYY-MM-DD
    end_date: Optional[str] = None
    created_at: datetime.datetime = Field(default_factory=datetime.datetime.utcnow)

    class Settings:
        name = "courses"
        use_state_management = True


class CourseCreate(BaseModel):
    course_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    teacher_id: Optional[str] = None
    student_ids: list[str] = Field(default_factory=list)
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None


class EnrollRequest(BaseModel):
    student_ids: list[str] = Field(min_length=1)
