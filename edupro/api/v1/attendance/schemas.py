from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from edupro.core.enums import AttendanceStatus


class AttendanceSaveRequest(BaseModel):
    """
    Full draft for one day. ``mark_all`` is applied first to every ACTIVE student,
    then ``records`` overrides individual students. The saved day replaces any
    previous save (last write wins).
    """

    mark_all: Optional[AttendanceStatus] = None
    records: Dict[str, AttendanceStatus] = Field(default_factory=dict)


class AttendanceDayResponse(BaseModel):
    id: str
    tenant_id: str
    date: date
    records: Dict[str, str] = Field(default_factory=dict)
    present_count: int = 0
    absent_count: int = 0
    late_count: int = 0
    total_students: int = 0
    marked_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    exists: bool = False
    editable: bool = False


class StudentAttendanceEntry(BaseModel):
    date: date
    status: str


class StudentAttendanceHistory(BaseModel):
    student_id: str
    entries: List[StudentAttendanceEntry] = Field(default_factory=list)
    present: int = 0
    absent: int = 0
    late: int = 0
