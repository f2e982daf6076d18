import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from fastapi import status as http_status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.auth.dependencies import get_current_user, load_session_user
from edupro.auth.schemas import (
    CurrentUser,
    LoginRequest,
    LogoutRequest,
    MeResponse,
    PushTokenRequest,
    RegisterRequest,
    RegisterResponse,
    RotateSecretRequest,
    SessionResponse,
    SignupRequest,
)
from edupro.auth.services import (
    get_me,
    login_user,
    logout_user,
    register_tenant_and_admin,
    rotate_secret,
    set_push_token,
    signup_user,
)
from edupro.core.enums import UserStatus
from edupro.core.events import change_feed, user_topic
from edupro.core.exceptions import ServiceError, http_error
from edupro.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

# WebSocket close code for an invalid or expired session
WS_CLOSE_UNAUTHORIZED = 4401


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=http_status.HTTP_201_CREATED,
)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> RegisterResponse:
    try:
        return await register_tenant_and_admin(db, payload)
    except ServiceError as e:
        raise http_error(e)


@router.post(
    "/signup",
    response_model=SessionResponse,
    status_code=http_status.HTTP_201_CREATED,
)
async def signup(
    payload: SignupRequest,
    db: AsyncSession = Depends(get_db),
) -> SessionResponse:
    """Student/parent sign-up; the returned session lands on the approval-pending view."""
    try:
        return await signup_user(db, payload)
    except ServiceError as e:
        raise http_error(e)


@router.post(
    "/login",
    response_model=SessionResponse,
    status_code=http_status.HTTP_200_OK,
)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> SessionResponse:
    try:
        return await login_user(db, payload)
    except ServiceError as e:
        raise http_error(e)


@router.post("/login-oauth")
async def login_oauth(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """Admin login for the OpenAPI docs form (no device binding for admins)."""
    payload = LoginRequest(
        identifier=form_data.username.strip(),
        secret=form_data.password,
    )
    try:
        result = await login_user(db, payload)
    except ServiceError as e:
        raise http_error(e)
    return {
        "access_token": result.access_token,
        "token_type": "bearer",
    }


@router.post("/logout", status_code=http_status.HTTP_204_NO_CONTENT)
async def logout(
    payload: LogoutRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    await logout_user(db, current_user.id, payload.refresh_token)


@router.post("/rotate-secret", status_code=http_status.HTTP_204_NO_CONTENT)
async def rotate(
    payload: RotateSecretRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    try:
        await rotate_secret(db, current_user.id, payload)
    except ServiceError as e:
        raise http_error(e)


@router.get("/me", response_model=MeResponse)
async def me(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> MeResponse:
    """Role, status and landing route of the current session."""
    try:
        return await get_me(db, current_user.id)
    except ServiceError as e:
        raise http_error(e)


@router.put("/me/push-token", status_code=http_status.HTTP_204_NO_CONTENT)
async def register_push_token(
    payload: PushTokenRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    try:
        await set_push_token(db, current_user.id, payload.token)
    except ServiceError as e:
        raise http_error(e)


@router.websocket("/me/status/ws")
async def status_stream(
    websocket: WebSocket,
    token: str,
    db: AsyncSession = Depends(get_db),
) -> None:
    """
    Push the caller's account status. The current value is sent first, then every
    change; the stream closes once the account leaves PENDING.
    """
    user = await load_session_user(db, token)
    if user is None:
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return
    current = {"user_id": user.id, "status": user.status, "role": user.role}
    # Release the connection; the stream itself only reads the change feed
    await db.close()
    await websocket.accept()
    async with change_feed.subscribe(user_topic(current["user_id"])) as queue:
        try:
            await websocket.send_json(current)
            status = current["status"]
            while status == UserStatus.PENDING.value:
                event = await queue.get()
                status = event.get("status", status)
                await websocket.send_json(event)
        except WebSocketDisconnect:
            logger.debug("Status stream closed by client for user %s", current["user_id"])
            return
    await websocket.close()
