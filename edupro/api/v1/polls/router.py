"""Poll API router."""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.auth.dependencies import load_session_user, require_active_user
from edupro.auth.rbac import require_admin
from edupro.auth.schemas import CurrentUser
from edupro.core.enums import UserStatus
from edupro.core.events import change_feed, poll_topic
from edupro.core.exceptions import ServiceError, http_error
from edupro.db.session import get_db

from . import service
from .schemas import PollActiveRequest, PollCreate, PollOptionResponse, PollResponse, VoteRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/polls", tags=["polls"])

WS_CLOSE_UNAUTHORIZED = 4401
WS_CLOSE_NOT_FOUND = 4404


def _poll_to_resp(poll, viewer_id: str) -> PollResponse:
    voters = [v.user_id for v in poll.votes]
    return PollResponse(
        id=poll.id,
        tenant_id=poll.tenant_id,
        question=poll.question,
        active=poll.active,
        total_votes=poll.total_votes,
        options=[PollOptionResponse(index=o.position, text=o.text, votes=o.votes) for o in poll.options],
        voted_user_ids=voters,
        has_voted=viewer_id in voters,
        created_by=poll.created_by,
        created_at=poll.created_at,
    )


@router.post("", response_model=PollResponse, status_code=status.HTTP_201_CREATED)
async def create_poll(
    payload: PollCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        poll = await service.create_poll(db, current_user.tenant_id, current_user.id, payload)
    except ServiceError as e:
        raise http_error(e)
    return _poll_to_resp(poll, current_user.id)


@router.get("", response_model=List[PollResponse])
async def list_polls(
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_active_user),
):
    polls = await service.list_polls(db, current_user.tenant_id, active_only=active_only)
    return [_poll_to_resp(p, current_user.id) for p in polls]


@router.get("/{poll_id}", response_model=PollResponse)
async def get_poll(
    poll_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_active_user),
):
    try:
        poll = await service.get_poll_or_404(db, current_user.tenant_id, poll_id)
    except ServiceError as e:
        raise http_error(e)
    return _poll_to_resp(poll, current_user.id)


@router.post("/{poll_id}/vote", response_model=PollResponse)
async def vote(
    poll_id: str,
    payload: VoteRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_active_user),
):
    """One vote per user. 409 when the user already voted or the poll has ended."""
    try:
        poll = await service.vote(db, current_user.tenant_id, poll_id, current_user.id, payload.option_index)
    except ServiceError as e:
        raise http_error(e)
    return _poll_to_resp(poll, current_user.id)


@router.put("/{poll_id}/active", response_model=PollResponse)
async def set_poll_active(
    poll_id: str,
    payload: PollActiveRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        poll = await service.set_active(db, current_user.tenant_id, poll_id, payload.active)
    except ServiceError as e:
        raise http_error(e)
    return _poll_to_resp(poll, current_user.id)


@router.delete("/{poll_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_poll(
    poll_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> None:
    try:
        await service.delete_poll(db, current_user.tenant_id, poll_id)
    except ServiceError as e:
        raise http_error(e)


@router.websocket("/{poll_id}/ws")
async def poll_results_stream(
    websocket: WebSocket,
    poll_id: str,
    token: str,
    db: AsyncSession = Depends(get_db),
) -> None:
    """Live results: the current counts first, then every vote and open/close."""
    user = await load_session_user(db, token)
    if user is None or user.status != UserStatus.ACTIVE.value:
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return
    try:
        poll = await service.get_poll_or_404(db, user.tenant_id, poll_id)
    except ServiceError:
        await websocket.close(code=WS_CLOSE_NOT_FOUND)
        return
    initial = service.results_payload(poll)
    # Release the connection; the stream itself only reads the change feed
    await db.close()
    await websocket.accept()
    async with change_feed.subscribe(poll_topic(poll_id)) as queue:
        try:
            await websocket.send_json(initial)
            while True:
                await websocket.send_json(await queue.get())
        except WebSocketDisconnect:
            logger.debug("Results stream for poll %s closed by client", poll_id)
