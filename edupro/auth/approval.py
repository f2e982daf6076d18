"""
Account approval workflow.

    PENDING -> ACTIVE | REJECTED
    ACTIVE  -> BLOCKED

REJECTED and BLOCKED are terminal. Only admins change status; every change is
published on the change feed so a waiting client is pushed the new status.
"""
import logging
from typing import Dict, FrozenSet, Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.auth.models import RefreshToken, UserProfile
from edupro.core.enums import UserStatus
from edupro.core.events import ChangeFeed, change_feed, user_topic
from edupro.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from edupro.notifications.sender import NotificationSender, notify

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    UserStatus.PENDING.value: frozenset({UserStatus.ACTIVE.value, UserStatus.REJECTED.value}),
    UserStatus.ACTIVE.value: frozenset({UserStatus.BLOCKED.value}),
    UserStatus.REJECTED.value: frozenset(),
    UserStatus.BLOCKED.value: frozenset(),
}

# Statuses that end every live session of the account
SESSION_ENDING_STATUSES = frozenset({UserStatus.BLOCKED.value, UserStatus.REJECTED.value})


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: str, target: str) -> None:
    if target not in ALLOWED_TRANSITIONS:
        raise ValidationError(f"Unknown status: {target}")
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)


async def change_status(
    db: AsyncSession,
    tenant_id: str,
    user_id: str,
    target: str,
    actor_id: Optional[str] = None,
    sender: Optional[NotificationSender] = None,
    feed: ChangeFeed = change_feed,
) -> UserProfile:
    user = await db.get(UserProfile, user_id)
    if not user or user.tenant_id != tenant_id:
        raise NotFoundError("User not found")
    ensure_transition(user.status, target)

    previous = user.status
    user.status = target
    if target in SESSION_ENDING_STATUSES:
        await db.execute(delete(RefreshToken).where(RefreshToken.user_id == user.id))
    await db.commit()
    await db.refresh(user)
    logger.info("User %s status %s -> %s by %s", user.id, previous, target, actor_id)

    feed.publish(user_topic(user.id), {"user_id": user.id, "status": user.status, "role": user.role})
    if target == UserStatus.ACTIVE.value and sender is not None:
        await notify(
            sender,
            [user.push_token],
            "Account approved",
            "Your institute has approved your account. You can start learning now.",
            route_hint="home",
        )
    return user


async def approve(db: AsyncSession, tenant_id: str, user_id: str, **kwargs) -> UserProfile:
    return await change_status(db, tenant_id, user_id, UserStatus.ACTIVE.value, **kwargs)


async def reject(db: AsyncSession, tenant_id: str, user_id: str, **kwargs) -> UserProfile:
    return await change_status(db, tenant_id, user_id, UserStatus.REJECTED.value, **kwargs)


async def block(db: AsyncSession, tenant_id: str, user_id: str, **kwargs) -> UserProfile:
    return await change_status(db, tenant_id, user_id, UserStatus.BLOCKED.value, **kwargs)
