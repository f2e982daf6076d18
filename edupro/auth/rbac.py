from fastapi import Depends, HTTPException, status

from edupro.auth.dependencies import require_active_user
from edupro.auth.schemas import CurrentUser
from edupro.core.enums import UserRole


async def require_admin(
    current_user: CurrentUser = Depends(require_active_user),
) -> CurrentUser:
    """Require an ACTIVE institute admin. Used for approvals, device resets and content management."""
    if current_user.role != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only institute admins can perform this action",
        )
    return current_user


def require_roles(*roles: UserRole):
    """
    Dependency factory restricting an endpoint to ACTIVE users with one of ``roles``.

    Example:
        Depends(require_roles(UserRole.STUDENT))
    """
    allowed = {r.value for r in roles}

    async def _checker(current_user: CurrentUser = Depends(require_active_user)) -> CurrentUser:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker
