"""Student identity and course enrollments."""
import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field


class Student(BaseModel):
    student_id: str
    full_name: str
    email: Optional[str] = None
    course_ids: list[str] = Field(default_factory=list)
    created_at: datetime.datetime = Field(default_factory=datetime.datetime.utcnow)


class StudentDocument(Document):
    """Student document: identity, enrolled courses."""

    student_id: Indexed(str, unique=True)
    full_name: str
    email: Optional[str] = None
    course_ids: list[str] = Field(default_factory=list)
    created_at: datetime.datetime = Field(default_factory=datetime.datetime.utcnow)

    class Settings:
        name = "students"
        use_state_management = True


class StudentCreate(BaseModel):
    student_id: str = Field(min_length=1)
    full_name: str = Field(min_length=1)
    email: Optional[str] = None
    course_ids: list[str] = Field(default_factory=list)
