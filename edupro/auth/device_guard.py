"""
Device binding guard: one active device per student/parent account.

States: UNBOUND -> BOUND(fingerprint) on first login, BOUND -> RESET_PENDING on an
admin reset, RESET_PENDING -> BOUND(fingerprint) on the next login. Every
transition, and every refused login, is appended to device_binding_events.
Admin accounts are never bound.
"""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.auth.models import DeviceBindingEvent, UserProfile
from edupro.core.enums import DeviceBindingState, UserRole
from edupro.core.exceptions import DeviceMismatchError, ValidationError

logger = logging.getLogger(__name__)

REASON_BIND = "BIND"
REASON_REBIND = "REBIND"
REASON_RESET = "RESET"
REASON_REJECTED_LOGIN = "REJECTED_LOGIN"


def is_guarded(user: UserProfile) -> bool:
    return user.role != UserRole.ADMIN.value


def device_matches(user: UserProfile, fingerprint: Optional[str]) -> bool:
    """True when the account is not bound or is bound to this fingerprint."""
    if not is_guarded(user):
        return True
    if user.device_binding_state != DeviceBindingState.BOUND.value or not user.device_id:
        return True
    return user.device_id == fingerprint


class DeviceBindingGuard:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    def _record(
        self,
        user: UserProfile,
        to_state: str,
        reason: str,
        fingerprint: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> DeviceBindingEvent:
        event = DeviceBindingEvent(
            user_id=user.id,
            from_state=user.device_binding_state,
            to_state=to_state,
            fingerprint=fingerprint,
            reason=reason,
            actor_id=actor_id,
        )
        self.db.add(event)
        return event

    async def enforce(self, user: UserProfile, fingerprint: Optional[str]) -> None:
        """
        Bind on first use or after a reset; refuse a different device otherwise.
        Changes are added to the session; the caller commits.
        """
        if not is_guarded(user):
            return
        fingerprint = (fingerprint or "").strip()
        if not fingerprint:
            raise ValidationError("Device id is required")

        state = user.device_binding_state
        if state == DeviceBindingState.BOUND.value and user.device_id:
            if user.device_id == fingerprint:
                return
            self._record(user, state, REASON_REJECTED_LOGIN, fingerprint=fingerprint)
            logger.warning("Login refused for user %s: device mismatch", user.id)
            raise DeviceMismatchError()

        reason = REASON_REBIND if state == DeviceBindingState.RESET_PENDING.value else REASON_BIND
        self._record(user, DeviceBindingState.BOUND.value, reason, fingerprint=fingerprint)
        user.device_id = fingerprint
        user.device_binding_state = DeviceBindingState.BOUND.value
        logger.info("User %s bound to a device (%s)", user.id, reason)

    async def reset(self, user: UserProfile, actor_id: Optional[str] = None) -> None:
        """Admin reset: clear the fingerprint so exactly one new device can bind."""
        if not is_guarded(user):
            raise ValidationError("Admin accounts are not device bound")
        self._record(user, DeviceBindingState.RESET_PENDING.value, REASON_RESET, actor_id=actor_id)
        user.device_id = None
        user.device_binding_state = DeviceBindingState.RESET_PENDING.value
        logger.info("Device lock reset for user %s by %s", user.id, actor_id)

    async def history(self, user_id: str) -> List[DeviceBindingEvent]:
        result = await self.db.execute(
            select(DeviceBindingEvent)
            .where(DeviceBindingEvent.user_id == user_id)
            .order_by(DeviceBindingEvent.created_at)
        )
        return list(result.scalars().all())
