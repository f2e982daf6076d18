"""Live classroom polls. Counters are only ever changed with server-side increments."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from edupro.db.session import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Poll(Base):
    __tablename__ = "polls"

    id = Column(String(64), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    question = Column(Text, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    total_votes = Column(Integer, nullable=False, default=0)
    created_by = Column(String(64), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    options = relationship(
        "PollOption",
        back_populates="poll",
        cascade="all, delete-orphan",
        order_by="PollOption.position",
    )
    votes = relationship("PollVote", back_populates="poll", cascade="all, delete-orphan")


class PollOption(Base):
    __tablename__ = "poll_options"
    __table_args__ = (
        UniqueConstraint("poll_id", "position", name="uq_poll_option_position"),
    )

    id = Column(String(64), primary_key=True, default=_uuid)
    poll_id = Column(String(64), ForeignKey("polls.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    text = Column(Text, nullable=False)
    votes = Column(Integer, nullable=False, default=0)

    poll = relationship("Poll", back_populates="options")


class PollVote(Base):
    """One row per voter; the unique key is what makes voting at-most-once."""

    __tablename__ = "poll_votes"
    __table_args__ = (
        UniqueConstraint("poll_id", "user_id", name="uq_poll_vote_user"),
    )

    id = Column(String(64), primary_key=True, default=_uuid)
    poll_id = Column(String(64), ForeignKey("polls.id", ondelete="CASCADE"), nullable=False)
    # No FK: votes outlive a deleted account so the counters stay consistent
    user_id = Column(String(64), nullable=False)
    option_position = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    poll = relationship("Poll", back_populates="votes")
