from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from edupro.core.enums import SubmissionStatus


class HomeworkCreate(BaseModel):
    grade: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    due_date: date
    attachment_url: Optional[str] = None


class HomeworkResponse(BaseModel):
    id: str
    tenant_id: str
    grade: str
    subject: str
    title: str
    description: Optional[str] = None
    due_date: date
    attachment_url: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime


class SubmissionCreate(BaseModel):
    file_url: Optional[str] = None


class SubmissionVerify(BaseModel):
    status: SubmissionStatus
    teacher_comment: Optional[str] = None
    teacher_file_url: Optional[str] = None

    @field_validator("status")
    @classmethod
    def outcome_only(cls, v: SubmissionStatus) -> SubmissionStatus:
        if v == SubmissionStatus.SUBMITTED:
            raise ValueError("status must be CHECKED or INCOMPLETE")
        return v


class SubmissionResponse(BaseModel):
    id: str
    homework_id: str
    student_id: str
    status: str
    file_url: Optional[str] = None
    teacher_comment: Optional[str] = None
    teacher_file_url: Optional[str] = None
    submitted_at: Optional[datetime] = None
    checked_at: Optional[datetime] = None
