from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from edupro.api.v1.attendance.schemas import StudentAttendanceHistory
from edupro.core.enums import UserRole, UserStatus


class UserCreate(BaseModel):
    """Account provisioned by an admin. ACTIVE immediately; the secret must be rotated on first login."""

    role: UserRole = UserRole.STUDENT
    name: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=8)
    password: str = Field(..., min_length=6)
    grade: Optional[str] = None
    linked_student_phone: Optional[str] = None

    @model_validator(mode="after")
    def validate_role_fields(self) -> "UserCreate":
        if self.role == UserRole.ADMIN:
            raise ValueError("Admins cannot be provisioned here")
        return self


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    grade: Optional[str] = Field(None, min_length=1)
    linked_student_phone: Optional[str] = Field(None, min_length=8)
    # Sets a new temporary secret (stored hashed); the user must rotate it
    password: Optional[str] = Field(None, min_length=6)


class StatusChangeRequest(BaseModel):
    status: UserStatus


class UserResponse(BaseModel):
    id: str
    tenant_id: str
    role: str
    name: str
    status: str
    source: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    grade: Optional[str] = None
    linked_student_phone: Optional[str] = None
    device_id: Optional[str] = None
    device_binding_state: str
    must_rotate_secret: bool = False
    created_at: datetime


class DeviceEventResponse(BaseModel):
    id: str
    user_id: str
    from_state: str
    to_state: str
    reason: str
    fingerprint: Optional[str] = None
    actor_id: Optional[str] = None
    created_at: datetime


class HomeworkStatusItem(BaseModel):
    homework_id: str
    title: str
    subject: str
    due_date: date
    submission_status: Optional[str] = None  # None = not submitted yet
    teacher_comment: Optional[str] = None


class LinkedStudentView(BaseModel):
    student_id: str
    name: str
    grade: Optional[str] = None
    attendance: StudentAttendanceHistory
    homework: List[HomeworkStatusItem] = Field(default_factory=list)


class ParentDashboardResponse(BaseModel):
    student_not_found: bool
    students: List[LinkedStudentView] = Field(default_factory=list)
