from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from edupro.core.enums import ClientRoute, UserRole


class TenantConfig(BaseModel):
    name: str
    is_active: bool
    grade_list: List[str] = Field(default_factory=list)
    subject_list: List[str] = Field(default_factory=list)
    topic_list: List[str] = Field(default_factory=list)


class ResolveTenantRequest(BaseModel):
    code: str = Field(..., min_length=1, description="Institute code typed by the user")


class ResolveTenantResponse(BaseModel):
    tenant_id: str
    config: TenantConfig


class TenantInfo(BaseModel):
    id: str
    display_code: str  # Public institute code; id remains the internal key
    name: str


class RegisterRequest(BaseModel):
    """Admin self-registration: creates the institute and an ACTIVE admin account."""

    institute_name: str = Field(..., min_length=3)
    display_code: Optional[str] = Field(None, max_length=64)
    admin_name: str = Field(..., min_length=1)
    identifier: str = Field(..., min_length=3, description="Email or phone number")
    password: str = Field(..., min_length=6)
    confirm_password: str = Field(..., min_length=6)
    grade_list: List[str] = Field(default_factory=list)
    subject_list: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_passwords(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("password and confirm_password do not match")
        return self


class RegisterResponse(BaseModel):
    success: bool
    message: str
    tenant_id: str
    display_code: str


class SignupRequest(BaseModel):
    """Student/parent self sign-up. The account starts PENDING until an admin approves it."""

    tenant_id: str
    role: UserRole = UserRole.STUDENT
    name: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=8)
    password: str = Field(..., min_length=6)
    grade: Optional[str] = None
    linked_student_phone: Optional[str] = None
    device_id: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_role_fields(self) -> "SignupRequest":
        if self.role == UserRole.ADMIN:
            raise ValueError("Admin accounts are created through institute registration")
        if self.role == UserRole.STUDENT and not (self.grade and self.grade.strip()):
            raise ValueError("grade is required for students")
        if self.role == UserRole.PARENT and not (self.linked_student_phone and self.linked_student_phone.strip()):
            raise ValueError("linked_student_phone is required for parents")
        return self


class LoginRequest(BaseModel):
    identifier: str = Field(..., min_length=1, description="Email (admins) or phone number")
    secret: str = Field(..., min_length=1)
    tenant_id: Optional[str] = None
    device_id: Optional[str] = None


class UserInfo(BaseModel):
    id: str
    tenant_id: str
    name: str
    role: str
    status: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    grade: Optional[str] = None
    linked_student_phone: Optional[str] = None


class SessionResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserInfo
    tenant: TenantInfo
    route: ClientRoute
    must_rotate_secret: bool = False
    issued_at: datetime


class MeResponse(BaseModel):
    user: UserInfo
    route: ClientRoute
    student_not_found: bool = False
    linked_student_ids: List[str] = Field(default_factory=list)


class RotateSecretRequest(BaseModel):
    current_secret: str
    new_secret: str = Field(..., min_length=6)
    confirm_secret: str = Field(..., min_length=6)

    @model_validator(mode="after")
    def validate_secrets(self) -> "RotateSecretRequest":
        if self.new_secret != self.confirm_secret:
            raise ValueError("new_secret and confirm_secret do not match")
        if self.new_secret == self.current_secret:
            raise ValueError("New secret must differ from the current one")
        return self


class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = None


class PushTokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for role checks."""

    id: str
    tenant_id: str
    role: str
    status: str
    device_id: Optional[str] = None
