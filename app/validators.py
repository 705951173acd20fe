"""Input checks shared by the attendance services."""
import datetime
import re
from typing import Iterable, Optional

from app.errors import ValidationError

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def parse_date(value, field_name: str = "date") -> datetime.date:
    """Accept a calendar date or a YYYY-MM-DD string naming a real date."""
    if isinstance(value, datetime.datetime):
        raise ValidationError(f"{field_name} must be a date without a time component")
    if isinstance(value, datetime.date):
        return value
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        raise ValidationError(f"{field_name} must be in YYYY-MM-DD format")
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field_name} is not a valid calendar date: {value}")


def parse_optional_date(value, field_name: str) -> Optional[datetime.date]:
    if value is None or value == "":
        return None
    return parse_date(value, field_name)


def normalize_student_ids(values: Optional[Iterable[str]]) -> list[str]:
    """Sorted, de-duplicated ids; every id must be a non-empty string."""
    if values is None or isinstance(values, str):
        raise ValidationError("present_student_ids must be a list of student ids")
    ids = set()
    for value in values:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError("present_student_ids must contain only non-empty strings")
        ids.add(value.strip())
    return sorted(ids)
