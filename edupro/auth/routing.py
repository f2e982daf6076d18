"""Decide where an authenticated client lands, and resolve a parent's linked student."""

from dataclasses import dataclass, field
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.auth.models import UserProfile
from edupro.core.enums import ClientRoute, UserRole, UserStatus
from edupro.core.phone import phones_match


@dataclass
class RouteDecision:
    route: ClientRoute
    linked_students: List[UserProfile] = field(default_factory=list)
    # Degraded parent state: no student matches linked_student_phone
    student_not_found: bool = False


async def find_linked_students(db: AsyncSession, parent: UserProfile) -> List[UserProfile]:
    """Students in the parent's tenant whose phone equals linked_student_phone, digits only."""
    if not parent.linked_student_phone:
        return []
    result = await db.execute(
        select(UserProfile)
        .where(
            UserProfile.tenant_id == parent.tenant_id,
            UserProfile.role == UserRole.STUDENT.value,
            UserProfile.id != parent.id,
            UserProfile.phone_number.is_not(None),
        )
        .order_by(UserProfile.created_at)
    )
    return [s for s in result.scalars().all() if phones_match(s.phone_number, parent.linked_student_phone)]


async def resolve_route(db: AsyncSession, user: UserProfile) -> RouteDecision:
    if user.role == UserRole.ADMIN.value:
        return RouteDecision(route=ClientRoute.ADMIN_CONSOLE)
    if user.status == UserStatus.PENDING.value:
        return RouteDecision(route=ClientRoute.APPROVAL_PENDING)
    if user.role == UserRole.PARENT.value:
        students = await find_linked_students(db, user)
        return RouteDecision(
            route=ClientRoute.PARENT_DASHBOARD,
            linked_students=students,
            student_not_found=not students,
        )
    return RouteDecision(route=ClientRoute.LEARNING_HOME)
