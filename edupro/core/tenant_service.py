"""
Tenant service: display code resolution, creation and renaming.

- display_code is the human-entered institute code used at login.
- tenant.id is the internal key; it never changes when the code is renamed.
- Code uniqueness is enforced by the unique index, not by a pre-check, so two
  concurrent creations or renames with the same code cannot both succeed.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.core.exceptions import ConflictError, NotFoundError, ValidationError
from edupro.core.models import Tenant
from edupro.core.models.tenant import generate_tenant_id

logger = logging.getLogger(__name__)


@dataclass
class ResolvedTenant:
    tenant_id: str
    tenant: Tenant


async def resolve_tenant(db: AsyncSession, code: str) -> ResolvedTenant:
    """
    Look up the tenant whose display_code equals ``code`` exactly (case-sensitive).
    Surrounding whitespace from the input box is ignored. Read-only.
    """
    code = (code or "").strip()
    if not code:
        raise ValidationError("Please enter an Institute Code")
    result = await db.execute(
        select(Tenant).where(Tenant.display_code == code).order_by(Tenant.created_at).limit(1)
    )
    tenant = result.scalars().first()
    if tenant is None:
        raise NotFoundError("No institute found with this code")
    return ResolvedTenant(tenant_id=tenant.id, tenant=tenant)


async def get_tenant_or_404(db: AsyncSession, tenant_id: str) -> Tenant:
    tenant = await db.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFoundError("Institute not found")
    return tenant


async def create_tenant(
    db: AsyncSession,
    name: str,
    display_code: Optional[str] = None,
    grade_list: Optional[List[str]] = None,
    subject_list: Optional[List[str]] = None,
    topic_list: Optional[List[str]] = None,
) -> Tenant:
    """
    Add a tenant to the session and flush. The caller owns the commit.
    Without an explicit code the public code starts out equal to the internal id.
    """
    tenant_id = generate_tenant_id()
    code = display_code.strip() if display_code and display_code.strip() else tenant_id
    tenant = Tenant(
        id=tenant_id,
        display_code=code,
        name=name,
        is_active=True,
        grade_list=list(grade_list or []),
        subject_list=list(subject_list or []),
        topic_list=list(topic_list or []),
    )
    db.add(tenant)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError(f"The code '{code}' is already taken. Please choose another.") from e
    logger.info("Created tenant %s with code %s", tenant.id, tenant.display_code)
    return tenant


async def update_tenant(
    db: AsyncSession,
    tenant_id: str,
    name: Optional[str] = None,
    display_code: Optional[str] = None,
    grade_list: Optional[List[str]] = None,
    subject_list: Optional[List[str]] = None,
    topic_list: Optional[List[str]] = None,
) -> Tenant:
    """Admin profile edit. Renaming the code keeps tenant.id; students log in with the new code."""
    tenant = await get_tenant_or_404(db, tenant_id)
    previous_code = tenant.display_code
    if name is not None:
        if not name.strip():
            raise ValidationError("Name is required")
        tenant.name = name.strip()
    if display_code is not None:
        if not display_code.strip():
            raise ValidationError("Code is required")
        tenant.display_code = display_code.strip()
    if grade_list is not None:
        tenant.grade_list = list(grade_list)
    if subject_list is not None:
        tenant.subject_list = list(subject_list)
    if topic_list is not None:
        tenant.topic_list = list(topic_list)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError(
            f"The code '{display_code}' is already taken. Please choose another."
        ) from e
    await db.refresh(tenant)
    if tenant.display_code != previous_code:
        logger.info("Tenant %s code changed from %s to %s", tenant.id, previous_code, tenant.display_code)
    return tenant
