"""Institute lookup and profile edits."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.auth.rbac import require_admin
from edupro.auth.schemas import CurrentUser, ResolveTenantRequest, ResolveTenantResponse
from edupro.core import tenant_service
from edupro.core.exceptions import ServiceError, http_error
from edupro.db.session import get_db

from .schemas import TenantResponse, TenantUpdate, tenant_config, tenant_response

router = APIRouter(prefix="/api/v1/tenants", tags=["tenants"])


@router.post("/resolve", response_model=ResolveTenantResponse)
async def resolve_tenant(
    payload: ResolveTenantRequest,
    db: AsyncSession = Depends(get_db),
) -> ResolveTenantResponse:
    """Map the institute code typed at login to the internal tenant id and its configuration."""
    try:
        resolved = await tenant_service.resolve_tenant(db, payload.code)
    except ServiceError as e:
        raise http_error(e)
    return ResolveTenantResponse(tenant_id=resolved.tenant_id, config=tenant_config(resolved.tenant))


@router.get("/me", response_model=TenantResponse)
async def get_my_tenant(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> TenantResponse:
    try:
        tenant = await tenant_service.get_tenant_or_404(db, current_user.tenant_id)
    except ServiceError as e:
        raise http_error(e)
    return tenant_response(tenant)


@router.patch("/me", response_model=TenantResponse)
async def update_my_tenant(
    payload: TenantUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> TenantResponse:
    """Rename the institute or change its public code. The internal id never changes."""
    try:
        tenant = await tenant_service.update_tenant(
            db,
            current_user.tenant_id,
            name=payload.name,
            display_code=payload.display_code,
            grade_list=payload.grade_list,
            subject_list=payload.subject_list,
            topic_list=payload.topic_list,
        )
    except ServiceError as e:
        raise http_error(e)
    return tenant_response(tenant)


@router.get("/{tenant_id}", response_model=ResolveTenantResponse)
async def get_tenant(
    tenant_id: str,
    db: AsyncSession = Depends(get_db),
) -> ResolveTenantResponse:
    """Configuration by internal id (clients cache the id after resolving the code once)."""
    try:
        tenant = await tenant_service.get_tenant_or_404(db, tenant_id)
    except ServiceError as e:
        raise http_error(e)
    return ResolveTenantResponse(tenant_id=tenant.id, config=tenant_config(tenant))
