from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.auth.device_guard import device_matches
from edupro.auth.models import UserProfile
from edupro.auth.schemas import CurrentUser
from edupro.auth.security import decode_access_token
from edupro.core.enums import UserStatus
from edupro.db.session import get_db


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login-oauth")

SESSION_STATUSES = (UserStatus.PENDING.value, UserStatus.ACTIVE.value)


async def load_session_user(db: AsyncSession, token: str) -> Optional[UserProfile]:
    """
    Resolve the profile behind an access token, or None when the session is no
    longer valid: bad token, unknown user, disabled account or replaced device.
    """
    try:
        payload = decode_access_token(token)
    except JWTError:
        return None

    user_id = payload.get("user_id") or payload.get("sub")
    tenant_id = payload.get("tenant_id")
    if not user_id or not tenant_id:
        return None

    user = await db.get(UserProfile, user_id)
    if not user or user.tenant_id != tenant_id:
        return None
    if user.status not in SESSION_STATUSES:
        return None
    if not device_matches(user, payload.get("device_id")):
        return None
    return user


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Resolve the authenticated user from the access token. PENDING users are allowed."""
    user = await load_session_user(db, token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentUser(
        id=user.id,
        tenant_id=user.tenant_id,
        role=user.role,
        status=user.status,
        device_id=user.device_id,
    )


async def require_active_user(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Dependency: block accounts still waiting for approval."""
    if current_user.status != UserStatus.ACTIVE.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account is waiting for approval.",
        )
    return current_user
