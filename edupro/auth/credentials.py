"""
Credential verification.

Primary path: the identifier is turned into a canonical login handle (raw email,
or ``<digits>@<login_domain>`` for phone numbers) and checked against the
profile's bcrypt hash.

Fallback path: entered only when the primary path finds no account or the secret
does not match. Admin-provisioned accounts are looked up by phone number (digits
only, tolerant to a country-code prefix) and the secret is checked against the
same bcrypt hash. No plaintext secret is stored or compared anywhere.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.auth.models import UserProfile
from edupro.auth.security import verify_password
from edupro.core.config import settings
from edupro.core.enums import AccountSource, UserStatus
from edupro.core.exceptions import AccountDisabledError, InvalidCredentialError, ValidationError
from edupro.core.phone import login_handle_for, looks_like_phone, normalize_phone, phones_match

logger = logging.getLogger(__name__)

PRIMARY = "primary"
PROVISIONED = "provisioned"

DISABLED_STATUSES = (UserStatus.BLOCKED.value, UserStatus.REJECTED.value)


@dataclass
class VerifiedIdentity:
    user: UserProfile
    path: str


def canonical_login_handle(identifier: str, domain: Optional[str] = None) -> str:
    """Raises ValidationError for phone identifiers that are too short to be real."""
    identifier = (identifier or "").strip()
    if not identifier:
        raise ValidationError("Please enter your email or phone number")
    if "@" not in identifier:
        if len(normalize_phone(identifier)) < settings.min_phone_digits:
            raise ValidationError("Invalid phone number length.")
    return login_handle_for(identifier, domain or settings.login_domain)


class CredentialVerifier:
    def __init__(self, db: AsyncSession, login_domain: Optional[str] = None) -> None:
        self.db = db
        self.login_domain = login_domain or settings.login_domain

    async def verify(
        self,
        identifier: str,
        secret: str,
        tenant_id: Optional[str] = None,
    ) -> VerifiedIdentity:
        """
        Resolve (identifier, secret) to a profile.

        Raises InvalidCredentialError when neither path succeeds and
        AccountDisabledError when the resolved account is BLOCKED or REJECTED.
        """
        handle = canonical_login_handle(identifier, self.login_domain)
        user = await self._verify_primary(handle, secret, tenant_id)
        path = PRIMARY
        if user is None and looks_like_phone(identifier):
            user = await self._verify_provisioned(identifier, secret, tenant_id)
            path = PROVISIONED
        if user is None:
            logger.info("Credential check failed for handle %s", handle)
            raise InvalidCredentialError()

        if user.status in DISABLED_STATUSES:
            raise AccountDisabledError(user.status, user_id=user.id)
        if path == PROVISIONED:
            logger.info("User %s authenticated through the provisioned-account path", user.id)
        return VerifiedIdentity(user=user, path=path)

    async def _verify_primary(
        self, handle: str, secret: str, tenant_id: Optional[str]
    ) -> Optional[UserProfile]:
        stmt = select(UserProfile).where(UserProfile.login_handle == handle)
        if tenant_id:
            stmt = stmt.where(UserProfile.tenant_id == tenant_id)
        result = await self.db.execute(stmt.order_by(UserProfile.created_at))
        for user in result.scalars().all():
            if verify_password(secret, user.secret_hash):
                return user
        return None

    async def _verify_provisioned(
        self, identifier: str, secret: str, tenant_id: Optional[str]
    ) -> Optional[UserProfile]:
        for user in await self._provisioned_candidates(identifier, tenant_id):
            if verify_password(secret, user.secret_hash):
                return user
        return None

    async def _provisioned_candidates(
        self, identifier: str, tenant_id: Optional[str]
    ) -> List[UserProfile]:
        stmt = select(UserProfile).where(
            UserProfile.source == AccountSource.ADMIN.value,
            UserProfile.phone_number.is_not(None),
        )
        if tenant_id:
            stmt = stmt.where(UserProfile.tenant_id == tenant_id)
        result = await self.db.execute(stmt.order_by(UserProfile.created_at))
        return [u for u in result.scalars().all() if phones_match(u.phone_number, identifier)]
