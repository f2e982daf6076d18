"""Homework service: assignment per grade, student submissions and teacher verification."""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.auth.models import UserProfile
from edupro.core.clock import local_today, utcnow
from edupro.core.enums import SubmissionStatus, UserRole
from edupro.core.exceptions import ConflictError, NotFoundError, ValidationError
from edupro.core.models import Homework, Submission
from edupro.core.tenant_service import get_tenant_or_404
from edupro.notifications.fanout import notify_parents, students_in_grade
from edupro.notifications.sender import NotificationSender

from .schemas import HomeworkCreate, SubmissionCreate, SubmissionVerify

logger = logging.getLogger(__name__)

VERIFIED_STATUSES = (SubmissionStatus.CHECKED.value, SubmissionStatus.INCOMPLETE.value)


async def _get_homework_or_404(db: AsyncSession, tenant_id: str, homework_id: str) -> Homework:
    hw = await db.get(Homework, homework_id)
    if not hw or hw.tenant_id != tenant_id:
        raise NotFoundError("Homework not found")
    return hw


async def _get_student_or_404(db: AsyncSession, tenant_id: str, student_id: str) -> UserProfile:
    student = await db.get(UserProfile, student_id)
    if not student or student.tenant_id != tenant_id or student.role != UserRole.STUDENT.value:
        raise NotFoundError("Student not found")
    return student


async def _get_submission(db: AsyncSession, homework_id: str, student_id: str) -> Optional[Submission]:
    result = await db.execute(
        select(Submission).where(
            Submission.homework_id == homework_id,
            Submission.student_id == student_id,
        )
    )
    return result.scalar_one_or_none()


# ----- Homework -----
async def create_homework(
    db: AsyncSession,
    tenant_id: str,
    user_id: str,
    payload: HomeworkCreate,
    sender: Optional[NotificationSender] = None,
    today: Optional[date] = None,
) -> Homework:
    """Assign homework to a grade. Due today is allowed; earlier dates are rejected."""
    today = today or local_today()
    if payload.due_date < today:
        raise ValidationError("Due date cannot be in the past")
    tenant = await get_tenant_or_404(db, tenant_id)
    grade = payload.grade.strip()
    if tenant.grade_list and grade not in tenant.grade_list:
        raise ValidationError(f"Unknown grade: {grade}")

    hw = Homework(
        tenant_id=tenant_id,
        grade=grade,
        subject=payload.subject.strip(),
        title=payload.title.strip(),
        description=payload.description,
        due_date=payload.due_date,
        attachment_url=payload.attachment_url,
        created_by=user_id,
    )
    db.add(hw)
    await db.commit()
    await db.refresh(hw)
    logger.info("Homework %s created for grade %s", hw.id, hw.grade)

    if sender is not None:
        students = await students_in_grade(db, tenant_id, hw.grade)
        await notify_parents(
            db,
            sender,
            tenant_id,
            students,
            f"New homework: {hw.subject}",
            f"{hw.title} is due on {hw.due_date.isoformat()}.",
            route_hint="homework",
        )
    return hw


async def list_homework(
    db: AsyncSession,
    tenant_id: str,
    grade: Optional[str] = None,
    due_date: Optional[date] = None,
) -> List[Homework]:
    stmt = select(Homework).where(Homework.tenant_id == tenant_id)
    if grade:
        stmt = stmt.where(Homework.grade == grade)
    if due_date:
        stmt = stmt.where(Homework.due_date == due_date)
    stmt = stmt.order_by(Homework.due_date.desc(), Homework.created_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


# ----- Submissions -----
async def submit_homework(
    db: AsyncSession,
    tenant_id: str,
    student_id: str,
    homework_id: str,
    payload: SubmissionCreate,
) -> Submission:
    """Create or replace the student's single submission. Checked work is final."""
    hw = await _get_homework_or_404(db, tenant_id, homework_id)
    student = await _get_student_or_404(db, tenant_id, student_id)
    if student.grade != hw.grade:
        # Homework of another grade is invisible to the student
        raise NotFoundError("Homework not found")

    sub = await _get_submission(db, hw.id, student.id)
    if sub is not None and sub.status == SubmissionStatus.CHECKED.value:
        raise ConflictError("This homework has already been checked")
    if sub is None:
        sub = Submission(homework_id=hw.id, student_id=student.id, tenant_id=tenant_id)
        db.add(sub)
    sub.status = SubmissionStatus.SUBMITTED.value
    sub.file_url = payload.file_url
    sub.submitted_at = utcnow()
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("Submission was updated concurrently; please retry") from e
    await db.refresh(sub)
    logger.info("Student %s submitted homework %s", student.id, hw.id)
    return sub


async def list_submissions(db: AsyncSession, tenant_id: str, homework_id: str) -> List[Submission]:
    hw = await _get_homework_or_404(db, tenant_id, homework_id)
    result = await db.execute(
        select(Submission)
        .where(Submission.homework_id == hw.id)
        .order_by(Submission.submitted_at.desc())
    )
    return list(result.scalars().all())


async def verify_submission(
    db: AsyncSession,
    tenant_id: str,
    homework_id: str,
    student_id: str,
    payload: SubmissionVerify,
    sender: Optional[NotificationSender] = None,
) -> Submission:
    """
    Record the teacher's outcome. Creates the submission when the student never
    submitted (``submitted_at`` stays empty), then notifies the student's parents.
    """
    status_value = payload.status.value
    if status_value not in VERIFIED_STATUSES:
        raise ValidationError("status must be CHECKED or INCOMPLETE")
    hw = await _get_homework_or_404(db, tenant_id, homework_id)
    student = await _get_student_or_404(db, tenant_id, student_id)
    if student.grade != hw.grade:
        raise NotFoundError("Homework not found")

    sub = await _get_submission(db, hw.id, student.id)
    if sub is None:
        sub = Submission(
            homework_id=hw.id,
            student_id=student.id,
            tenant_id=tenant_id,
            submitted_at=None,
        )
        db.add(sub)
    sub.status = status_value
    sub.teacher_comment = payload.teacher_comment
    sub.teacher_file_url = payload.teacher_file_url
    sub.checked_at = utcnow()
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("Submission was updated concurrently; please retry") from e
    await db.refresh(sub)
    logger.info("Homework %s for student %s marked %s", hw.id, student.id, status_value)

    if sender is not None:
        outcome = "checked" if status_value == SubmissionStatus.CHECKED.value else "marked incomplete"
        await notify_parents(
            db,
            sender,
            tenant_id,
            [student],
            f"Homework {outcome}",
            f"{student.name}'s homework \"{hw.title}\" was {outcome}.",
            route_hint="parent-dashboard",
        )
    return sub
