"""CSV / Excel rendering of student attendance records."""
import datetime
import io
import re
import unicodedata
from dataclasses import dataclass
from typing import Optional

import pandas as pd
from openpyxl.utils import get_column_letter

from app.config import settings
from app.errors import EmptyResultError, ValidationError
from app.models import AttendanceRecord, RecordFilters, Student

EXPORT_COLUMNS = ["Date", "Course", "Status", "Marked By", "Timestamp"]
COLUMN_WIDTHS = {"Date": 12, "Course": 30, "Status": 10, "Marked By": 20, "Timestamp": 20}

CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
EXPORT_FORMATS = {"csv": CSV_MEDIA_TYPE, "xlsx": XLSX_MEDIA_TYPE}

EMPTY_EXPORT_MESSAGE = "No attendance records found for the specified criteria"


@dataclass
class AttendanceWorkbook:
    frame: pd.DataFrame
    title: str
    generated_at: datetime.datetime
    filters: RecordFilters

    @property
    def filter_description(self) -> str:
        applied = self.filters.model_dump(exclude_defaults=True, mode="json")
        if not applied:
            return "Filters: none"
        return "Filters: " + ", ".join(f"{key}={value}" for key, value in applied.items())


def _export_date(value: datetime.date) -> str:
    return value.strftime(settings.export_date_format)


def format_for_export(records: list[AttendanceRecord]) -> list[dict[str, str]]:
    """Rows in EXPORT_COLUMNS order; every value is a string so CSV round-trips."""
    if not records:
        raise EmptyResultError(EMPTY_EXPORT_MESSAGE)
    return [
        {
            "Date": _export_date(record.date),
            "Course": record.course_name or "N/A",
            "Status": record.status.capitalize(),
            "Marked By": record.marked_by_name or record.marked_by or "N/A",
            "Timestamp": (
                record.marked_at.strftime(settings.export_timestamp_format)
                if record.marked_at
                else "N/A"
            ),
        }
        for record in records
    ]


def build_workbook(
    rows: list[dict[str, str]],
    student: Optional[Student],
    filters: RecordFilters,
) -> AttendanceWorkbook:
    if not rows:
        raise EmptyResultError(EMPTY_EXPORT_MESSAGE)

    title = "Student Attendance Report"
    if student:
        title += f" for {student.full_name}"
    if filters.start_date and filters.end_date:
        title += f" ({_export_date(filters.start_date)} to {_export_date(filters.end_date)})"
    if filters.status:
        title += f" - {filters.status.capitalize()} Only"

    return AttendanceWorkbook(
        frame=pd.DataFrame(rows, columns=EXPORT_COLUMNS),
        title=title,
        generated_at=datetime.datetime.utcnow(),
        filters=filters,
    )


def to_csv(workbook: AttendanceWorkbook) -> str:
    stream = io.StringIO()
    workbook.frame.to_csv(stream, index=False)
    return stream.getvalue()


def parse_csv(content: str) -> list[dict[str, str]]:
    """Read an exported CSV back into rows, keeping every value as text."""
    frame = pd.read_csv(io.StringIO(content), dtype=str, keep_default_na=False)
    return frame.to_dict(orient="records")


def to_xlsx(workbook: AttendanceWorkbook) -> bytes:
    output = io.BytesIO()
    sheet_name = settings.export_sheet_name
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        workbook.frame.to_excel(writer, index=False, sheet_name=sheet_name)

        props = writer.book.properties
        props.title = workbook.title
        props.subject = "Attendance Records"
        props.creator = settings.export_author
        props.created = workbook.generated_at
        props.description = workbook.filter_description
        props.keywords = "attendance"

        sheet = writer.sheets[sheet_name]
        for index, column in enumerate(EXPORT_COLUMNS, start=1):
            sheet.column_dimensions[get_column_letter(index)].width = COLUMN_WIDTHS[column]
    return output.getvalue()


def render(workbook: AttendanceWorkbook, fmt: str) -> bytes:
    if fmt == "csv":
        return to_csv(workbook).encode("utf-8")
    if fmt == "xlsx":
        return to_xlsx(workbook)
    raise ValidationError(f"Export format must be one of: {', '.join(EXPORT_FORMATS)}")


def _filename_part(value: str) -> str:
    # accents decompose to their ASCII base letter; other scripts drop out
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"\s+", "_", value.strip())
    return re.sub(r"[^A-Za-z0-9_.-]", "", value)


def generate_filename(student: Optional[Student], filters: RecordFilters, fmt: str) -> str:
    """Same student and filters always give the same name."""
    if student:
        name = _filename_part(student.full_name)
        student_id = _filename_part(student.student_id)
        prefix = "_".join(part for part in (name, student_id) if part) or "student"
    else:
        prefix = "student"
    parts = [f"{prefix}_attendance"]
    if filters.course_id:
        parts.append(_filename_part(filters.course_id))
    if filters.status:
        parts.append(filters.status)

    start = filters.start_date.isoformat() if filters.start_date else "all"
    end = filters.end_date.isoformat() if filters.end_date else "latest"
    return f"{'_'.join(parts)}_{start}_to_{end}.{fmt}"
