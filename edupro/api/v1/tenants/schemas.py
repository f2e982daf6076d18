from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from edupro.auth.schemas import TenantConfig
from edupro.core.models import Tenant


class TenantUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    display_code: Optional[str] = Field(None, min_length=1, max_length=64)
    grade_list: Optional[List[str]] = None
    subject_list: Optional[List[str]] = None
    topic_list: Optional[List[str]] = None


class TenantResponse(BaseModel):
    id: str
    display_code: str
    name: str
    is_active: bool
    grade_list: List[str]
    subject_list: List[str]
    topic_list: List[str]
    created_at: datetime


def tenant_config(tenant: Tenant) -> TenantConfig:
    return TenantConfig(
        name=tenant.name,
        is_active=tenant.is_active,
        grade_list=list(tenant.grade_list or []),
        subject_list=list(tenant.subject_list or []),
        topic_list=list(tenant.topic_list or []),
    )


def tenant_response(tenant: Tenant) -> TenantResponse:
    return TenantResponse(
        id=tenant.id,
        display_code=tenant.display_code,
        name=tenant.name,
        is_active=tenant.is_active,
        grade_list=list(tenant.grade_list or []),
        subject_list=list(tenant.subject_list or []),
        topic_list=list(tenant.topic_list or []),
        created_at=tenant.created_at,
    )
