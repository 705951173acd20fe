"""Attendance error taxonomy, mapped to HTTP status codes by app.main."""


class AttendanceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AttendanceError):
    """Malformed input: bad date, missing fields, bad paging values."""

    status_code = 400


class NotFoundError(AttendanceError):
    status_code = 404


class ConflictError(AttendanceError):
    """Stale version on a guarded write, or a repeated QR check-in."""

    status_code = 409


class StoreError(AttendanceError):
    """The document store failed. Never retried here."""

    status_code = 500


class EmptyResultError(AttendanceError):
    """Export requested for a record set with no rows."""

    status_code = 404
