"""Homework models."""

import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from edupro.db.session import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Homework(Base):
    """Homework assigned by an admin to every student of one grade."""

    __tablename__ = "homework"

    id = Column(String(64), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    grade = Column(String(50), nullable=False)
    subject = Column(String(100), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(Date, nullable=False)
    attachment_url = Column(Text, nullable=True)
    created_by = Column(String(64), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    submissions = relationship("Submission", back_populates="homework", cascade="all, delete-orphan")


class Submission(Base):
    """At most one per (homework, student); the unique constraint enforces it."""

    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("homework_id", "student_id", name="uq_submission_homework_student"),
    )

    id = Column(String(64), primary_key=True, default=_uuid)
    homework_id = Column(String(64), ForeignKey("homework.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    tenant_id = Column(String(64), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False)  # SUBMITTED | CHECKED | INCOMPLETE
    file_url = Column(Text, nullable=True)
    teacher_comment = Column(Text, nullable=True)
    teacher_file_url = Column(Text, nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)  # NULL = outcome recorded by the teacher
    checked_at = Column(DateTime(timezone=True), nullable=True)

    homework = relationship("Homework", back_populates="submissions")
