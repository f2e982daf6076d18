"""Parent lookup by phone number and notification fan-out to parents."""

import logging
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.auth.models import UserProfile
from edupro.core.enums import UserRole
from edupro.core.phone import phones_match
from edupro.notifications.sender import NotificationSender, notify

logger = logging.getLogger(__name__)


async def _tenant_parents(db: AsyncSession, tenant_id: str) -> List[UserProfile]:
    result = await db.execute(
        select(UserProfile).where(
            UserProfile.tenant_id == tenant_id,
            UserProfile.role == UserRole.PARENT.value,
            UserProfile.linked_student_phone.is_not(None),
        )
    )
    return list(result.scalars().all())


async def parents_of_students(
    db: AsyncSession, tenant_id: str, students: Iterable[UserProfile]
) -> List[UserProfile]:
    """Parents whose linked phone matches any of the students' phones (digits-only comparison)."""
    phones = [s.phone_number for s in students if s.phone_number]
    if not phones:
        return []
    return [
        parent
        for parent in await _tenant_parents(db, tenant_id)
        if any(phones_match(parent.linked_student_phone, phone) for phone in phones)
    ]


async def students_in_grade(db: AsyncSession, tenant_id: str, grade: str) -> List[UserProfile]:
    result = await db.execute(
        select(UserProfile).where(
            UserProfile.tenant_id == tenant_id,
            UserProfile.role == UserRole.STUDENT.value,
            UserProfile.grade == grade,
        )
    )
    return list(result.scalars().all())


async def notify_parents(
    db: AsyncSession,
    sender: NotificationSender,
    tenant_id: str,
    students: Iterable[UserProfile],
    title: str,
    body: str,
    route_hint: Optional[str] = None,
) -> int:
    """Best-effort fan-out; lookup and transport errors are logged, never raised."""
    try:
        parents = await parents_of_students(db, tenant_id, students)
    except Exception:
        logger.exception("Could not resolve parents for notification %r", title)
        return 0
    if not parents:
        logger.debug("No linked parents for notification %r", title)
        return 0
    return await notify(sender, [p.push_token for p in parents], title, body, route_hint)
