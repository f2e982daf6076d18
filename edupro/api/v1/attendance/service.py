"""
Daily attendance register.

One record per (tenant, date) keyed ``{tenant_id}_{YYYY-MM-DD}``. A day can be
written from today back to ``attendance_edit_window_days`` calendar days ago in
the institute's local timezone; older days are locked and future days rejected.
"""

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.auth.models import UserProfile
from edupro.core.clock import days_between, local_today, utcnow
from edupro.core.config import settings
from edupro.core.enums import AttendanceStatus, UserRole, UserStatus
from edupro.core.exceptions import (
    AttendanceLockedError,
    FutureDateError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from edupro.core.models import AttendanceRecord, attendance_record_id

from .schemas import AttendanceDayResponse, StudentAttendanceEntry, StudentAttendanceHistory

logger = logging.getLogger(__name__)

# Records scanned for one student's history
HISTORY_LIMIT = 30


def check_editable(att_date: date, today: Optional[date] = None) -> None:
    today = today or local_today()
    age = days_between(att_date, today)
    if age < 0:
        raise FutureDateError("Cannot mark attendance for future dates")
    if age > settings.attendance_edit_window_days:
        raise AttendanceLockedError(
            f"Attendance older than {settings.attendance_edit_window_days} days is locked"
        )


def is_editable(att_date: date, today: Optional[date] = None) -> bool:
    try:
        check_editable(att_date, today)
    except (FutureDateError, AttendanceLockedError):
        return False
    return True


class AttendanceRegister:
    """In-memory draft for one day over the tenant's ACTIVE students."""

    def __init__(
        self,
        tenant_id: str,
        att_date: date,
        students: Iterable[UserProfile],
        marks: Optional[Dict[str, str]] = None,
    ) -> None:
        self.tenant_id = tenant_id
        self.date = att_date
        self.student_ids = [s.id for s in students]
        self._known = set(self.student_ids)
        self.marks: Dict[str, str] = dict(marks or {})

    @property
    def record_id(self) -> str:
        return attendance_record_id(self.tenant_id, self.date)

    def mark(self, student_id: str, status: AttendanceStatus) -> None:
        if student_id not in self._known:
            raise ValidationError(f"Unknown or inactive student: {student_id}")
        self.marks[student_id] = AttendanceStatus(status).value

    def mark_all(self, status: AttendanceStatus) -> None:
        value = AttendanceStatus(status).value
        self.marks = {sid: value for sid in self.student_ids}

    def count(self, status: AttendanceStatus) -> int:
        return sum(1 for v in self.marks.values() if v == status.value)

    def _apply(self, record: AttendanceRecord, marked_by: Optional[str]) -> None:
        record.records = dict(self.marks)
        record.present_count = self.count(AttendanceStatus.PRESENT)
        record.absent_count = self.count(AttendanceStatus.ABSENT)
        record.late_count = self.count(AttendanceStatus.LATE)
        record.total_students = len(self.student_ids)
        record.marked_by = marked_by
        record.updated_at = utcnow()

    async def save(self, db: AsyncSession, marked_by: Optional[str] = None, today: Optional[date] = None) -> AttendanceRecord:
        """Write the whole day, replacing any previous save. Counters are recomputed from the marks."""
        check_editable(self.date, today)
        record = await db.get(AttendanceRecord, self.record_id)
        created = record is None
        if created:
            record = AttendanceRecord(id=self.record_id, tenant_id=self.tenant_id, date=self.date)
            db.add(record)
        self._apply(record, marked_by)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            if not created:
                raise ServiceError("Failed to save attendance") from e
            # Another save inserted the day first; overwrite it
            logger.info("Attendance %s created concurrently, overwriting", self.record_id)
            record = await db.get(AttendanceRecord, self.record_id)
            if record is None:
                raise ServiceError("Failed to save attendance") from e
            self._apply(record, marked_by)
            await self._commit(db)
        except SQLAlchemyError as e:
            await db.rollback()
            raise ServiceError("Failed to save attendance") from e
        await db.refresh(record)
        logger.info(
            "Attendance %s saved: %d present, %d absent, %d late of %d",
            record.id, record.present_count, record.absent_count, record.late_count, record.total_students,
        )
        return record

    @staticmethod
    async def _commit(db: AsyncSession) -> None:
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise ServiceError("Failed to save attendance") from e


async def active_students(db: AsyncSession, tenant_id: str) -> List[UserProfile]:
    result = await db.execute(
        select(UserProfile)
        .where(
            UserProfile.tenant_id == tenant_id,
            UserProfile.role == UserRole.STUDENT.value,
            UserProfile.status == UserStatus.ACTIVE.value,
        )
        .order_by(UserProfile.name)
    )
    return list(result.scalars().all())


def _day_to_resp(tenant_id: str, att_date: date, record: Optional[AttendanceRecord], today: Optional[date]) -> AttendanceDayResponse:
    editable = is_editable(att_date, today)
    if record is None:
        return AttendanceDayResponse(
            id=attendance_record_id(tenant_id, att_date),
            tenant_id=tenant_id,
            date=att_date,
            editable=editable,
        )
    return AttendanceDayResponse(
        id=record.id,
        tenant_id=record.tenant_id,
        date=record.date,
        records=dict(record.records or {}),
        present_count=record.present_count,
        absent_count=record.absent_count,
        late_count=record.late_count,
        total_students=record.total_students,
        marked_by=record.marked_by,
        updated_at=record.updated_at,
        exists=True,
        editable=editable,
    )


async def get_day(db: AsyncSession, tenant_id: str, att_date: date, today: Optional[date] = None) -> AttendanceDayResponse:
    record = await db.get(AttendanceRecord, attendance_record_id(tenant_id, att_date))
    return _day_to_resp(tenant_id, att_date, record, today)


async def save_day(
    db: AsyncSession,
    tenant_id: str,
    att_date: date,
    marked_by: str,
    records: Dict[str, AttendanceStatus],
    mark_all: Optional[AttendanceStatus] = None,
    today: Optional[date] = None,
) -> AttendanceDayResponse:
    # Fail fast before loading the roster
    check_editable(att_date, today)
    register = AttendanceRegister(tenant_id, att_date, await active_students(db, tenant_id))
    if mark_all is not None:
        register.mark_all(mark_all)
    for student_id, status in records.items():
        register.mark(student_id, status)
    record = await register.save(db, marked_by=marked_by, today=today)
    return _day_to_resp(tenant_id, att_date, record, today)


async def student_history(db: AsyncSession, tenant_id: str, student_id: str) -> StudentAttendanceHistory:
    student = await db.get(UserProfile, student_id)
    if not student or student.tenant_id != tenant_id or student.role != UserRole.STUDENT.value:
        raise NotFoundError("Student not found")
    result = await db.execute(
        select(AttendanceRecord)
        .where(AttendanceRecord.tenant_id == tenant_id)
        .order_by(AttendanceRecord.date.desc())
        .limit(HISTORY_LIMIT)
    )
    history = StudentAttendanceHistory(student_id=student_id)
    for record in result.scalars().all():
        status = (record.records or {}).get(student_id)
        if status is None:
            continue
        history.entries.append(StudentAttendanceEntry(date=record.date, status=status))
        if status == AttendanceStatus.PRESENT.value:
            history.present += 1
        elif status == AttendanceStatus.ABSENT.value:
            history.absent += 1
        elif status == AttendanceStatus.LATE.value:
            history.late += 1
    return history
