"""Institute user administration: approvals, provisioning, device resets."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.auth.rbac import require_admin, require_roles
from edupro.auth.schemas import CurrentUser
from edupro.core.enums import UserRole, UserStatus
from edupro.core.exceptions import ServiceError, http_error
from edupro.db.session import get_db
from edupro.notifications.sender import NotificationSender, get_notification_sender

from . import service
from .schemas import (
    DeviceEventResponse,
    ParentDashboardResponse,
    StatusChangeRequest,
    UserCreate,
    UserResponse,
    UserUpdate,
)

router = APIRouter(prefix="/api/v1/users", tags=["users"])


def _user_to_resp(user) -> UserResponse:
    return UserResponse(
        id=user.id,
        tenant_id=user.tenant_id,
        role=user.role,
        name=user.name,
        status=user.status,
        source=user.source,
        phone_number=user.phone_number,
        email=user.email,
        grade=user.grade,
        linked_student_phone=user.linked_student_phone,
        device_id=user.device_id,
        device_binding_state=user.device_binding_state,
        must_rotate_secret=bool(user.must_rotate_secret),
        created_at=user.created_at,
    )


def _event_to_resp(event) -> DeviceEventResponse:
    return DeviceEventResponse(
        id=event.id,
        user_id=event.user_id,
        from_state=event.from_state,
        to_state=event.to_state,
        reason=event.reason,
        fingerprint=event.fingerprint,
        actor_id=event.actor_id,
        created_at=event.created_at,
    )


@router.get("", response_model=List[UserResponse])
async def list_users(
    role: Optional[UserRole] = Query(None),
    status_filter: Optional[UserStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    """All accounts of the institute; filter by ``status=PENDING`` for the approval queue."""
    users = await service.list_users(db, current_user.tenant_id, role=role, status_filter=status_filter)
    return [_user_to_resp(u) for u in users]


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        user = await service.create_user(db, current_user.tenant_id, payload)
    except ServiceError as e:
        raise http_error(e)
    return _user_to_resp(user)


@router.get("/me/parent-dashboard", response_model=ParentDashboardResponse)
async def parent_dashboard(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.PARENT)),
):
    """Linked student's attendance and homework. ``student_not_found`` when the linked phone matches no student."""
    try:
        return await service.parent_dashboard(db, current_user.tenant_id, current_user.id)
    except ServiceError as e:
        raise http_error(e)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        user = await service.get_user_or_404(db, current_user.tenant_id, user_id)
    except ServiceError as e:
        raise http_error(e)
    return _user_to_resp(user)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        user = await service.update_user(db, current_user.tenant_id, user_id, payload)
    except ServiceError as e:
        raise http_error(e)
    return _user_to_resp(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> None:
    try:
        await service.delete_user(db, current_user.tenant_id, user_id, current_user.id)
    except ServiceError as e:
        raise http_error(e)


async def _change_status(
    db: AsyncSession,
    current_user: CurrentUser,
    user_id: str,
    target: UserStatus,
    sender: NotificationSender,
) -> UserResponse:
    try:
        user = await service.set_status(
            db, current_user.tenant_id, user_id, target, actor_id=current_user.id, sender=sender
        )
    except ServiceError as e:
        raise http_error(e)
    return _user_to_resp(user)


@router.post("/{user_id}/approve", response_model=UserResponse)
async def approve_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
    sender: NotificationSender = Depends(get_notification_sender),
):
    return await _change_status(db, current_user, user_id, UserStatus.ACTIVE, sender)


@router.post("/{user_id}/reject", response_model=UserResponse)
async def reject_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
    sender: NotificationSender = Depends(get_notification_sender),
):
    return await _change_status(db, current_user, user_id, UserStatus.REJECTED, sender)


@router.post("/{user_id}/block", response_model=UserResponse)
async def block_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
    sender: NotificationSender = Depends(get_notification_sender),
):
    return await _change_status(db, current_user, user_id, UserStatus.BLOCKED, sender)


@router.put("/{user_id}/status", response_model=UserResponse)
async def set_user_status(
    user_id: str,
    payload: StatusChangeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
    sender: NotificationSender = Depends(get_notification_sender),
):
    """Generic status change; only PENDING->ACTIVE|REJECTED and ACTIVE->BLOCKED are accepted."""
    return await _change_status(db, current_user, user_id, payload.status, sender)


@router.post("/{user_id}/reset-device", response_model=UserResponse)
async def reset_device(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        user = await service.reset_device(db, current_user.tenant_id, user_id, current_user.id)
    except ServiceError as e:
        raise http_error(e)
    return _user_to_resp(user)


@router.get("/{user_id}/device-events", response_model=List[DeviceEventResponse])
async def list_device_events(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        events = await service.device_events(db, current_user.tenant_id, user_id)
    except ServiceError as e:
        raise http_error(e)
    return [_event_to_resp(ev) for ev in events]
