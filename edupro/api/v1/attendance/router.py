"""Attendance API router."""

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.auth.dependencies import require_active_user
from edupro.auth.rbac import require_admin
from edupro.auth.schemas import CurrentUser
from edupro.core.enums import UserRole
from edupro.core.exceptions import PermissionDeniedError, ServiceError, http_error
from edupro.db.session import get_db

from . import service
from .schemas import AttendanceDayResponse, AttendanceSaveRequest, StudentAttendanceHistory

router = APIRouter(prefix="/api/v1/attendance", tags=["attendance"])


@router.get("/students/{student_id}/history", response_model=StudentAttendanceHistory)
async def get_student_history(
    student_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_active_user),
):
    """Admins see any student; a student only sees their own history."""
    try:
        if current_user.role == UserRole.STUDENT.value and current_user.id != student_id:
            raise PermissionDeniedError("Not allowed to view this student's attendance")
        if current_user.role == UserRole.PARENT.value:
            raise PermissionDeniedError("Parents see attendance on the parent dashboard")
        return await service.student_history(db, current_user.tenant_id, student_id)
    except ServiceError as e:
        raise http_error(e)


@router.get("/{att_date}", response_model=AttendanceDayResponse)
async def get_attendance_day(
    att_date: date,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    """The day's register and whether it can still be edited."""
    return await service.get_day(db, current_user.tenant_id, att_date)


@router.post("/{att_date}", response_model=AttendanceDayResponse)
async def save_attendance_day(
    att_date: date,
    payload: AttendanceSaveRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        return await service.save_day(
            db,
            current_user.tenant_id,
            att_date,
            marked_by=current_user.id,
            records=payload.records,
            mark_all=payload.mark_all,
        )
    except ServiceError as e:
        raise http_error(e)
