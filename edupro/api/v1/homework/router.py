"""Homework API router."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.auth.dependencies import require_active_user
from edupro.auth.models import UserProfile
from edupro.auth.rbac import require_admin, require_roles
from edupro.auth.schemas import CurrentUser
from edupro.core.enums import UserRole
from edupro.core.exceptions import PermissionDeniedError, ServiceError, http_error
from edupro.db.session import get_db
from edupro.notifications.sender import NotificationSender, get_notification_sender

from . import service
from .schemas import (
    HomeworkCreate,
    HomeworkResponse,
    SubmissionCreate,
    SubmissionResponse,
    SubmissionVerify,
)

router = APIRouter(prefix="/api/v1/homework", tags=["homework"])


def _hw_to_resp(hw) -> HomeworkResponse:
    return HomeworkResponse(
        id=hw.id,
        tenant_id=hw.tenant_id,
        grade=hw.grade,
        subject=hw.subject,
        title=hw.title,
        description=hw.description,
        due_date=hw.due_date,
        attachment_url=hw.attachment_url,
        created_by=hw.created_by,
        created_at=hw.created_at,
    )


def _sub_to_resp(sub) -> SubmissionResponse:
    return SubmissionResponse(
        id=sub.id,
        homework_id=sub.homework_id,
        student_id=sub.student_id,
        status=sub.status,
        file_url=sub.file_url,
        teacher_comment=sub.teacher_comment,
        teacher_file_url=sub.teacher_file_url,
        submitted_at=sub.submitted_at,
        checked_at=sub.checked_at,
    )


@router.post("", response_model=HomeworkResponse, status_code=status.HTTP_201_CREATED)
async def create_homework(
    payload: HomeworkCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
    sender: NotificationSender = Depends(get_notification_sender),
):
    try:
        hw = await service.create_homework(db, current_user.tenant_id, current_user.id, payload, sender=sender)
    except ServiceError as e:
        raise http_error(e)
    return _hw_to_resp(hw)


@router.get("", response_model=List[HomeworkResponse])
async def list_homework(
    grade: Optional[str] = Query(None),
    due_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_active_user),
):
    """Admins filter freely; students always get their own grade."""
    try:
        if current_user.role == UserRole.STUDENT.value:
            student = await db.get(UserProfile, current_user.id)
            grade = student.grade
        elif current_user.role != UserRole.ADMIN.value:
            raise PermissionDeniedError("Parents see homework on the parent dashboard")
    except ServiceError as e:
        raise http_error(e)
    items = await service.list_homework(db, current_user.tenant_id, grade=grade, due_date=due_date)
    return [_hw_to_resp(hw) for hw in items]


@router.post("/{homework_id}/submission", response_model=SubmissionResponse)
async def submit_homework(
    homework_id: str,
    payload: SubmissionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.STUDENT)),
):
    try:
        sub = await service.submit_homework(db, current_user.tenant_id, current_user.id, homework_id, payload)
    except ServiceError as e:
        raise http_error(e)
    return _sub_to_resp(sub)


@router.get("/{homework_id}/submissions", response_model=List[SubmissionResponse])
async def list_submissions(
    homework_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        subs = await service.list_submissions(db, current_user.tenant_id, homework_id)
    except ServiceError as e:
        raise http_error(e)
    return [_sub_to_resp(s) for s in subs]


@router.post("/{homework_id}/submissions/{student_id}/verify", response_model=SubmissionResponse)
async def verify_submission(
    homework_id: str,
    student_id: str,
    payload: SubmissionVerify,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
    sender: NotificationSender = Depends(get_notification_sender),
):
    try:
        sub = await service.verify_submission(
            db, current_user.tenant_id, homework_id, student_id, payload, sender=sender
        )
    except ServiceError as e:
        raise http_error(e)
    return _sub_to_resp(sub)
