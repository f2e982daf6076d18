"""Admin user management, device resets and the parent dashboard."""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.api.v1.attendance.service import student_history
from edupro.auth import approval
from edupro.auth.device_guard import DeviceBindingGuard
from edupro.auth.models import DeviceBindingEvent, UserProfile
from edupro.auth.routing import find_linked_students
from edupro.auth.security import hash_password
from edupro.auth.services import new_profile
from edupro.core.enums import AccountSource, UserRole, UserStatus
from edupro.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from edupro.core.models import Homework, Submission
from edupro.core.phone import normalize_phone
from edupro.notifications.sender import NotificationSender

from .schemas import (
    HomeworkStatusItem,
    LinkedStudentView,
    ParentDashboardResponse,
    UserCreate,
    UserUpdate,
)

logger = logging.getLogger(__name__)


async def get_user_or_404(db: AsyncSession, tenant_id: str, user_id: str) -> UserProfile:
    user = await db.get(UserProfile, user_id)
    if not user or user.tenant_id != tenant_id:
        raise NotFoundError("User not found")
    return user


async def list_users(
    db: AsyncSession,
    tenant_id: str,
    role: Optional[UserRole] = None,
    status_filter: Optional[UserStatus] = None,
) -> List[UserProfile]:
    stmt = select(UserProfile).where(UserProfile.tenant_id == tenant_id)
    if role is not None:
        stmt = stmt.where(UserProfile.role == role.value)
    if status_filter is not None:
        stmt = stmt.where(UserProfile.status == status_filter.value)
    stmt = stmt.order_by(UserProfile.created_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def create_user(db: AsyncSession, tenant_id: str, payload: UserCreate) -> UserProfile:
    """Admin-provisioned account: ACTIVE, hashed temporary secret, rotation forced on first login."""
    user = new_profile(
        tenant_id=tenant_id,
        role=payload.role,
        name=payload.name,
        secret=payload.password,
        status=UserStatus.ACTIVE,
        source=AccountSource.ADMIN,
        phone_number=payload.phone_number,
        grade=payload.grade,
        linked_student_phone=payload.linked_student_phone,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("An account with this phone number already exists") from e
    await db.refresh(user)
    logger.info("Provisioned %s account %s in tenant %s", user.role, user.id, tenant_id)
    return user


async def update_user(db: AsyncSession, tenant_id: str, user_id: str, payload: UserUpdate) -> UserProfile:
    user = await get_user_or_404(db, tenant_id, user_id)
    if payload.name is not None:
        user.name = payload.name.strip()
    if payload.grade is not None:
        if user.role != UserRole.STUDENT.value:
            raise ValidationError("Only students have a grade")
        user.grade = payload.grade.strip()
    if payload.linked_student_phone is not None:
        if user.role != UserRole.PARENT.value:
            raise ValidationError("Only parents have a linked student phone")
        digits = normalize_phone(payload.linked_student_phone)
        if not digits:
            raise ValidationError("linked_student_phone is required for parents")
        user.linked_student_phone = digits
    if payload.password is not None:
        user.secret_hash = hash_password(payload.password)
        user.must_rotate_secret = user.role != UserRole.ADMIN.value
    await db.commit()
    await db.refresh(user)
    return user


async def delete_user(db: AsyncSession, tenant_id: str, user_id: str, actor_id: str) -> None:
    user = await get_user_or_404(db, tenant_id, user_id)
    if user.id == actor_id:
        raise PermissionDeniedError("You cannot delete your own account")
    await db.delete(user)
    await db.commit()
    logger.info("User %s deleted by %s", user_id, actor_id)


async def set_status(
    db: AsyncSession,
    tenant_id: str,
    user_id: str,
    target: UserStatus,
    actor_id: str,
    sender: Optional[NotificationSender] = None,
) -> UserProfile:
    if user_id == actor_id:
        raise PermissionDeniedError("You cannot change your own status")
    return await approval.change_status(
        db, tenant_id, user_id, target.value, actor_id=actor_id, sender=sender
    )


async def reset_device(db: AsyncSession, tenant_id: str, user_id: str, actor_id: str) -> UserProfile:
    """Clear the device lock so the account can bind exactly one new device."""
    user = await get_user_or_404(db, tenant_id, user_id)
    await DeviceBindingGuard(db).reset(user, actor_id=actor_id)
    await db.commit()
    await db.refresh(user)
    return user


async def device_events(db: AsyncSession, tenant_id: str, user_id: str) -> List[DeviceBindingEvent]:
    await get_user_or_404(db, tenant_id, user_id)
    return await DeviceBindingGuard(db).history(user_id)


# ----- Parent dashboard -----
async def _homework_view(db: AsyncSession, student: UserProfile) -> List[HomeworkStatusItem]:
    if not student.grade:
        return []
    hw_result = await db.execute(
        select(Homework)
        .where(Homework.tenant_id == student.tenant_id, Homework.grade == student.grade)
        .order_by(Homework.due_date.desc())
    )
    homework = list(hw_result.scalars().all())
    if not homework:
        return []
    sub_result = await db.execute(
        select(Submission).where(
            Submission.student_id == student.id,
            Submission.homework_id.in_([hw.id for hw in homework]),
        )
    )
    by_homework: Dict[str, Submission] = {s.homework_id: s for s in sub_result.scalars().all()}
    items = []
    for hw in homework:
        sub = by_homework.get(hw.id)
        items.append(
            HomeworkStatusItem(
                homework_id=hw.id,
                title=hw.title,
                subject=hw.subject,
                due_date=hw.due_date,
                submission_status=sub.status if sub else None,
                teacher_comment=sub.teacher_comment if sub else None,
            )
        )
    return items


async def parent_dashboard(db: AsyncSession, tenant_id: str, parent_id: str) -> ParentDashboardResponse:
    parent = await get_user_or_404(db, tenant_id, parent_id)
    students = await find_linked_students(db, parent)
    if not students:
        # Degraded view; the client shows "student not found" instead of an error
        return ParentDashboardResponse(student_not_found=True)
    views = []
    for student in students:
        views.append(
            LinkedStudentView(
                student_id=student.id,
                name=student.name,
                grade=student.grade,
                attendance=await student_history(db, tenant_id, student.id),
                homework=await _homework_view(db, student),
            )
        )
    return ParentDashboardResponse(student_not_found=False, students=views)
