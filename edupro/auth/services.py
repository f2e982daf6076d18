import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.auth.credentials import CredentialVerifier, canonical_login_handle
from edupro.auth.device_guard import DeviceBindingGuard
from edupro.auth.models import RefreshToken, UserProfile
from edupro.auth.routing import resolve_route
from edupro.auth.schemas import (
    LoginRequest,
    MeResponse,
    RegisterRequest,
    RegisterResponse,
    RotateSecretRequest,
    SessionResponse,
    SignupRequest,
    TenantInfo,
    UserInfo,
)
from edupro.auth.security import (
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
)
from edupro.core.enums import AccountSource, DeviceBindingState, UserRole, UserStatus
from edupro.core.exceptions import (
    AccountDisabledError,
    ConflictError,
    DeviceMismatchError,
    InvalidCredentialError,
    NotFoundError,
    PermissionDeniedError,
    ServiceError,
    ValidationError,
)
from edupro.core.models import Tenant
from edupro.core.phone import normalize_phone
from edupro.core.tenant_service import create_tenant, get_tenant_or_404

logger = logging.getLogger(__name__)


def user_info(user: UserProfile) -> UserInfo:
    return UserInfo(
        id=user.id,
        tenant_id=user.tenant_id,
        name=user.name,
        role=user.role,
        status=user.status,
        phone_number=user.phone_number,
        email=user.email,
        grade=user.grade,
        linked_student_phone=user.linked_student_phone,
    )


def tenant_info(tenant: Tenant) -> TenantInfo:
    return TenantInfo(id=tenant.id, display_code=tenant.display_code, name=tenant.name)


def new_profile(
    *,
    tenant_id: str,
    role: UserRole,
    name: str,
    secret: str,
    status: UserStatus,
    source: AccountSource,
    phone_number: Optional[str] = None,
    email: Optional[str] = None,
    grade: Optional[str] = None,
    linked_student_phone: Optional[str] = None,
) -> UserProfile:
    """Build a profile enforcing the role invariants. Not added to any session."""
    phone_digits = normalize_phone(phone_number) or None
    linked_digits = normalize_phone(linked_student_phone) or None
    if role == UserRole.STUDENT and not (grade and grade.strip()):
        raise ValidationError("grade is required for students")
    if role == UserRole.PARENT and not linked_digits:
        raise ValidationError("linked_student_phone is required for parents")
    if role != UserRole.PARENT:
        linked_digits = None
    identifier = email if email else phone_number
    if not identifier:
        raise ValidationError("An email or phone number is required")
    return UserProfile(
        tenant_id=tenant_id,
        role=role.value,
        name=name.strip(),
        email=email.lower() if email else None,
        phone_number=phone_digits,
        grade=grade.strip() if grade else None,
        linked_student_phone=linked_digits,
        status=status.value,
        source=source.value,
        login_handle=canonical_login_handle(identifier),
        secret_hash=hash_password(secret),
        # Secrets chosen by an admin are temporary
        must_rotate_secret=source == AccountSource.ADMIN and role != UserRole.ADMIN,
        device_binding_state=DeviceBindingState.UNBOUND.value,
    )


async def _issue_session(
    db: AsyncSession,
    user: UserProfile,
    tenant: Tenant,
    device_id: Optional[str],
) -> SessionResponse:
    """Persist a refresh token, mint the access token and decide the landing route."""
    issued_at = datetime.now(timezone.utc)
    access_payload = {
        "sub": user.id,
        "user_id": user.id,
        "tenant_id": user.tenant_id,
        "role": user.role,
        "status": user.status,
        # Bound device at issue time; requests from a replaced device are refused
        "device_id": user.device_id,
        "iat": int(issued_at.timestamp()),
    }
    access_token = create_access_token(subject=access_payload)
    refresh_token_str, refresh_expires_at = create_refresh_token()
    db.add(
        RefreshToken(
            user_id=user.id,
            token=refresh_token_str,
            device_id=device_id,
            expires_at=refresh_expires_at,
        )
    )
    try:
        await db.commit()
    except Exception as e:
        await db.rollback()
        raise ServiceError("Failed to persist authentication state") from e

    decision = await resolve_route(db, user)
    return SessionResponse(
        access_token=access_token,
        refresh_token=refresh_token_str,
        user=user_info(user),
        tenant=tenant_info(tenant),
        route=decision.route,
        must_rotate_secret=bool(user.must_rotate_secret),
        issued_at=issued_at,
    )


async def terminate_sessions(db: AsyncSession, user_id: str) -> None:
    """Explicit sign-out of every session of the account."""
    await db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
    await db.commit()
    logger.info("All sessions terminated for user %s", user_id)


# ----- Registration -----
async def register_tenant_and_admin(
    db: AsyncSession, payload: RegisterRequest
) -> RegisterResponse:
    """Admin self-registration. The admin account is ACTIVE immediately."""
    try:
        tenant = await create_tenant(
            db,
            name=payload.institute_name,
            display_code=payload.display_code,
            grade_list=payload.grade_list,
            subject_list=payload.subject_list,
        )
        is_email = "@" in payload.identifier
        admin = new_profile(
            tenant_id=tenant.id,
            role=UserRole.ADMIN,
            name=payload.admin_name,
            secret=payload.password,
            status=UserStatus.ACTIVE,
            source=AccountSource.SELF,
            email=payload.identifier.strip() if is_email else None,
            phone_number=None if is_email else payload.identifier,
        )
        db.add(admin)
        await db.flush()
        tenant.admin_user_id = admin.id
        await db.commit()
        await db.refresh(tenant)
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("Conflict while creating institute or user") from e
    except ServiceError:
        raise
    except Exception as e:
        await db.rollback()
        raise ServiceError("Failed to create account") from e

    logger.info("Registered tenant %s with admin %s", tenant.id, admin.id)
    return RegisterResponse(
        success=True,
        message="Account created successfully",
        tenant_id=tenant.id,
        display_code=tenant.display_code,
    )


async def signup_user(db: AsyncSession, payload: SignupRequest) -> SessionResponse:
    """Student/parent sign-up. Starts PENDING, binds the device and lands on the waiting view."""
    tenant = await get_tenant_or_404(db, payload.tenant_id)
    if not tenant.is_active:
        raise PermissionDeniedError("Institute is inactive")
    if payload.role == UserRole.STUDENT and tenant.grade_list and payload.grade not in tenant.grade_list:
        raise ValidationError(f"Unknown grade: {payload.grade}")

    user = new_profile(
        tenant_id=tenant.id,
        role=payload.role,
        name=payload.name,
        secret=payload.password,
        status=UserStatus.PENDING,
        source=AccountSource.SELF,
        phone_number=payload.phone_number,
        grade=payload.grade,
        linked_student_phone=payload.linked_student_phone,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("An account with this phone number already exists") from e
    await DeviceBindingGuard(db).enforce(user, payload.device_id)
    logger.info("New %s sign-up %s in tenant %s (PENDING)", user.role, user.id, tenant.id)
    return await _issue_session(db, user, tenant, payload.device_id)


# ----- Login -----
async def login_user(db: AsyncSession, payload: LoginRequest) -> SessionResponse:
    if payload.tenant_id:
        scoped_tenant = await get_tenant_or_404(db, payload.tenant_id)
        if not scoped_tenant.is_active:
            raise PermissionDeniedError("Institute is inactive")

    try:
        identity = await CredentialVerifier(db).verify(
            payload.identifier, payload.secret, payload.tenant_id
        )
    except AccountDisabledError as e:
        # Disabled accounts must not keep any half-established session around
        if e.user_id:
            await terminate_sessions(db, e.user_id)
        raise
    user = identity.user

    tenant = await db.get(Tenant, user.tenant_id)
    if not tenant:
        raise NotFoundError("Institute not found")
    if not tenant.is_active:
        raise PermissionDeniedError("Institute is inactive")

    try:
        await DeviceBindingGuard(db).enforce(user, payload.device_id)
    except DeviceMismatchError:
        # No token has been issued; keep only the audit entry
        await db.commit()
        raise

    logger.info("User %s logged in (%s path)", user.id, identity.path)
    return await _issue_session(db, user, tenant, payload.device_id)


async def logout_user(db: AsyncSession, user_id: str, refresh_token: Optional[str] = None) -> None:
    stmt = delete(RefreshToken).where(RefreshToken.user_id == user_id)
    if refresh_token:
        stmt = stmt.where(RefreshToken.token == refresh_token)
    await db.execute(stmt)
    await db.commit()


async def rotate_secret(db: AsyncSession, user_id: str, payload: RotateSecretRequest) -> None:
    user = await db.get(UserProfile, user_id)
    if not user:
        raise NotFoundError("User not found")
    if not verify_password(payload.current_secret, user.secret_hash):
        raise InvalidCredentialError("Current secret is incorrect")
    user.secret_hash = hash_password(payload.new_secret)
    user.must_rotate_secret = False
    await db.commit()
    logger.info("User %s rotated their secret", user.id)


# ----- Session info -----
async def get_me(db: AsyncSession, user_id: str) -> MeResponse:
    user = await db.get(UserProfile, user_id)
    if not user:
        raise NotFoundError("User not found")
    decision = await resolve_route(db, user)
    return MeResponse(
        user=user_info(user),
        route=decision.route,
        student_not_found=decision.student_not_found,
        linked_student_ids=[s.id for s in decision.linked_students],
    )


async def set_push_token(db: AsyncSession, user_id: str, token: str) -> None:
    user = await db.get(UserProfile, user_id)
    if not user:
        raise NotFoundError("User not found")
    user.push_token = token
    user.push_token_updated_at = datetime.now(timezone.utc)
    await db.commit()
