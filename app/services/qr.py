"""QR check-in payloads: ``<studentId>`` or ``<studentId>-YYYY-MM-DD``."""
import datetime
import re
from dataclasses import dataclass
from typing import Optional

from app.errors import ValidationError
from app.validators import parse_date

QR_PATTERN = re.compile(r"^([A-Za-z0-9]+)(?:-(\d{4}-\d{2}-\d{2}))?$")


@dataclass(frozen=True)
class QRCheckIn:
    student_id: str
    date: datetime.date


def parse_qr_code(data: str, today: Optional[datetime.date] = None) -> QRCheckIn:
    """Decode a scanned payload; without a date part the scan counts for today (UTC)."""
    if not isinstance(data, str) or not data.strip():
        raise ValidationError("QR code data must be a non-empty string")
    match = QR_PATTERN.match(data.strip())
    if not match:
        raise ValidationError("Invalid QR code format: expected studentId or studentId-YYYY-MM-DD")

    student_id, date_part = match.groups()
    if date_part:
        day = parse_date(date_part, "QR code date")
    else:
        day = today or datetime.datetime.utcnow().date()
    return QRCheckIn(student_id=student_id, date=day)


def generate_qr_code(student_id: str) -> str:
    """Payload printed on a student's card; the date is taken at scan time."""
    if not re.fullmatch(r"[A-Za-z0-9]+", student_id or ""):
        raise ValidationError("Student id must be alphanumeric to be encoded in a QR code")
    return student_id
