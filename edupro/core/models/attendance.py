"""Daily attendance register. One row per (tenant, date); per-student statuses live in ``records``."""

from datetime import date, datetime

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Integer, String

from edupro.db.session import Base


def attendance_record_id(tenant_id: str, att_date: date) -> str:
    """Structural key: literal concatenation of tenant id and ISO date."""
    return f"{tenant_id}_{att_date.isoformat()}"


class AttendanceRecord(Base):
    __tablename__ = "attendance"

    id = Column(String(96), primary_key=True)
    tenant_id = Column(String(64), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    records = Column(JSON, nullable=False, default=dict)  # {student_id: PRESENT|ABSENT|LATE}
    present_count = Column(Integer, nullable=False, default=0)
    absent_count = Column(Integer, nullable=False, default=0)
    late_count = Column(Integer, nullable=False, default=0)
    total_students = Column(Integer, nullable=False, default=0)
    marked_by = Column(String(64), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
