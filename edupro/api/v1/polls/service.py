"""
Live polls.

A vote is a single transaction: the ``poll_votes`` row (unique per poll and
user) plus server-side increments of the option and poll counters. The poll
counter update is conditioned on ``active`` so a vote racing a close is
rolled back. Counters are never written from values read by the client.
"""

import logging
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from edupro.core.events import ChangeFeed, change_feed, poll_topic
from edupro.core.exceptions import (
    DuplicateVoteError,
    NotFoundError,
    PollClosedError,
    ServiceError,
    ValidationError,
)
from edupro.core.models import Poll, PollOption, PollVote

from .schemas import PollCreate

logger = logging.getLogger(__name__)


def _poll_query():
    return select(Poll).options(selectinload(Poll.options), selectinload(Poll.votes))


async def get_poll_or_404(db: AsyncSession, tenant_id: str, poll_id: str, fresh: bool = False) -> Poll:
    stmt = _poll_query().where(Poll.id == poll_id)
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await db.execute(stmt)
    poll = result.scalar_one_or_none()
    if not poll or poll.tenant_id != tenant_id:
        raise NotFoundError("Poll not found")
    return poll


def results_payload(poll: Poll) -> dict:
    return {
        "poll_id": poll.id,
        "active": poll.active,
        "total_votes": poll.total_votes,
        "options": [{"index": o.position, "text": o.text, "votes": o.votes} for o in poll.options],
    }


async def create_poll(db: AsyncSession, tenant_id: str, user_id: str, payload: PollCreate) -> Poll:
    poll = Poll(
        tenant_id=tenant_id,
        question=payload.question,
        active=True,
        total_votes=0,
        created_by=user_id,
    )
    poll.options = [PollOption(position=i, text=text, votes=0) for i, text in enumerate(payload.options)]
    db.add(poll)
    await db.commit()
    logger.info("Poll %s created with %d options", poll.id, len(payload.options))
    return await get_poll_or_404(db, tenant_id, poll.id, fresh=True)


async def list_polls(db: AsyncSession, tenant_id: str, active_only: bool = False) -> List[Poll]:
    stmt = _poll_query().where(Poll.tenant_id == tenant_id)
    if active_only:
        stmt = stmt.where(Poll.active.is_(True))
    stmt = stmt.order_by(Poll.created_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def vote(
    db: AsyncSession,
    tenant_id: str,
    poll_id: str,
    user_id: str,
    option_index: int,
    feed: Optional[ChangeFeed] = change_feed,
) -> Poll:
    poll = await get_poll_or_404(db, tenant_id, poll_id)
    if not poll.active:
        raise PollClosedError()
    if option_index < 0 or option_index >= len(poll.options):
        raise ValidationError(f"Option index must be between 0 and {len(poll.options) - 1}")

    db.add(PollVote(poll_id=poll.id, user_id=user_id, option_position=option_index))
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateVoteError() from e

    try:
        closed = await db.execute(
            update(Poll)
            .where(Poll.id == poll.id, Poll.active.is_(True))
            .values(total_votes=Poll.total_votes + 1)
            .execution_options(synchronize_session=False)
        )
        if closed.rowcount == 0:
            # Ended between the read above and this write
            await db.rollback()
            raise PollClosedError()
        await db.execute(
            update(PollOption)
            .where(PollOption.poll_id == poll.id, PollOption.position == option_index)
            .values(votes=PollOption.votes + 1)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateVoteError() from e
    except ServiceError:
        raise
    except Exception as e:
        await db.rollback()
        raise ServiceError("Failed to record vote") from e

    poll = await get_poll_or_404(db, tenant_id, poll_id, fresh=True)
    logger.info("Vote recorded on poll %s (option %d)", poll.id, option_index)
    if feed is not None:
        feed.publish(poll_topic(poll.id), results_payload(poll))
    return poll


async def set_active(
    db: AsyncSession,
    tenant_id: str,
    poll_id: str,
    active: bool,
    feed: Optional[ChangeFeed] = change_feed,
) -> Poll:
    """End or reopen a poll. Ended polls stay readable and refuse votes."""
    poll = await get_poll_or_404(db, tenant_id, poll_id)
    poll.active = active
    await db.commit()
    poll = await get_poll_or_404(db, tenant_id, poll_id, fresh=True)
    logger.info("Poll %s %s", poll.id, "reopened" if active else "ended")
    if feed is not None:
        feed.publish(poll_topic(poll.id), results_payload(poll))
    return poll


async def delete_poll(db: AsyncSession, tenant_id: str, poll_id: str) -> None:
    poll = await get_poll_or_404(db, tenant_id, poll_id)
    await db.delete(poll)
    await db.commit()
    logger.info("Poll %s deleted", poll_id)
