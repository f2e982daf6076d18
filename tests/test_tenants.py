import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from edupro.core import tenant_service
from edupro.core.exceptions import ConflictError, NotFoundError


async def test_resolve_round_trip(client: AsyncClient, institute) -> None:
    response = await client.post("/api/v1/tenants/resolve", json={"code": "ACME"})
    assert response.status_code == 200
    data = response.json()
    assert data["tenant_id"] == institute.tenant_id
    assert data["config"]["name"] == "Acme Academy"
    assert data["config"]["grade_list"] == ["9", "10"]
    assert data["config"]["is_active"] is True

    by_id = await client.get(f"/api/v1/tenants/{data['tenant_id']}")
    assert by_id.status_code == 200
    assert by_id.json()["config"]["name"] == "Acme Academy"


async def test_resolve_trims_whitespace_but_is_case_sensitive(client: AsyncClient, institute) -> None:
    padded = await client.post("/api/v1/tenants/resolve", json={"code": "  ACME  "})
    assert padded.status_code == 200

    lower = await client.post("/api/v1/tenants/resolve", json={"code": "acme"})
    assert lower.status_code == 404
    assert lower.json()["detail"] == "No institute found with this code"


async def test_rename_keeps_internal_id(client: AsyncClient, institute) -> None:
    response = await client.patch(
        "/api/v1/tenants/me",
        json={"display_code": "ACME2026", "name": "Acme Academy North"},
        headers=institute.admin.headers,
    )
    assert response.status_code == 200, response.text
    assert response.json()["id"] == institute.tenant_id

    old = await client.post("/api/v1/tenants/resolve", json={"code": "ACME"})
    assert old.status_code == 404
    new = await client.post("/api/v1/tenants/resolve", json={"code": "ACME2026"})
    assert new.json()["tenant_id"] == institute.tenant_id


async def test_duplicate_display_code_conflicts(client: AsyncClient, institute) -> None:
    response = await client.post(
        "/api/v1/auth/register",
        json={
            "institute_name": "Another Academy",
            "display_code": "ACME",
            "admin_name": "Bala",
            "identifier": "bala@another.test",
            "password": "adminpass",
            "confirm_password": "adminpass",
        },
    )
    assert response.status_code == 409


async def test_create_tenant_defaults_code_to_id(db_session: AsyncSession) -> None:
    tenant = await tenant_service.create_tenant(db_session, name="Solo Tutor")
    await db_session.commit()
    assert tenant.display_code == tenant.id
    resolved = await tenant_service.resolve_tenant(db_session, tenant.id)
    assert resolved.tenant_id == tenant.id


async def test_service_rename_collision(db_session: AsyncSession) -> None:
    first = await tenant_service.create_tenant(db_session, name="First", display_code="ONE")
    second = await tenant_service.create_tenant(db_session, name="Second", display_code="TWO")
    await db_session.commit()
    first_id, second_id = first.id, second.id

    with pytest.raises(ConflictError):
        await tenant_service.update_tenant(db_session, second_id, display_code="ONE")

    resolved = await tenant_service.resolve_tenant(db_session, "ONE")
    assert resolved.tenant_id == first_id
    with pytest.raises(NotFoundError):
        await tenant_service.resolve_tenant(db_session, "THREE")


async def test_tenant_profile_requires_admin(client: AsyncClient, institute, active_user) -> None:
    student = await active_user("9876543210")
    response = await client.get("/api/v1/tenants/me", headers=student.headers)
    assert response.status_code == 403
