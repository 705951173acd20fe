"""Shared dependencies: repository and service injection."""
from typing import Annotated

from fastapi import Depends

from app.services.attendance import AttendanceService
from app.services.roster import RosterService
from app.services.store import AttendanceRepository, BeanieAttendanceRepository


def get_repository() -> AttendanceRepository:
    return BeanieAttendanceRepository()


def get_attendance_service(
    repository: Annotated[AttendanceRepository, Depends(get_repository)],
) -> AttendanceService:
    return AttendanceService(repository)


def get_roster_service(
    repository: Annotated[AttendanceRepository, Depends(get_repository)],
) -> RosterService:
    return RosterService(repository)


# Type aliases for route injection
Attendance = Annotated[AttendanceService, Depends(get_attendance_service)]
Roster = Annotated[RosterService, Depends(get_roster_service)]
