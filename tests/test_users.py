from httpx import AsyncClient


async def test_admin_creates_parent_and_student(client: AsyncClient, institute) -> None:
    parent = await client.post(
        "/api/v1/users",
        json={
            "role": "PARENT",
            "name": "Lakshmi",
            "phone_number": "9000000001",
            "password": "temp1234",
            "linked_student_phone": "+91 98765 43210",
        },
        headers=institute.admin.headers,
    )
    assert parent.status_code == 201, parent.text
    assert parent.json()["linked_student_phone"] == "919876543210"
    assert parent.json()["grade"] is None

    no_grade = await client.post(
        "/api/v1/users",
        json={"role": "STUDENT", "name": "Ravi", "phone_number": "9876543210", "password": "temp1234"},
        headers=institute.admin.headers,
    )
    assert no_grade.status_code == 422

    admin_role = await client.post(
        "/api/v1/users",
        json={"role": "ADMIN", "name": "Other", "phone_number": "9876543210", "password": "temp1234"},
        headers=institute.admin.headers,
    )
    assert admin_role.status_code == 422


async def test_update_user_fields(client: AsyncClient, institute, active_user) -> None:
    student = await active_user("9876543210", grade="10")
    moved = await client.patch(
        f"/api/v1/users/{student.id}", json={"grade": "9", "name": "Ravi K"}, headers=institute.admin.headers
    )
    assert moved.status_code == 200
    assert moved.json()["grade"] == "9"
    assert moved.json()["name"] == "Ravi K"

    not_parent = await client.patch(
        f"/api/v1/users/{student.id}", json={"linked_student_phone": "9123456780"}, headers=institute.admin.headers
    )
    assert not_parent.status_code == 422

    new_secret = await client.patch(
        f"/api/v1/users/{student.id}", json={"password": "reset123"}, headers=institute.admin.headers
    )
    assert new_secret.json()["must_rotate_secret"] is True
    login = await client.post(
        "/api/v1/auth/login",
        json={"identifier": "9876543210", "secret": "reset123", "device_id": "device-1"},
    )
    assert login.status_code == 200
    assert login.json()["must_rotate_secret"] is True


async def test_delete_user(client: AsyncClient, institute, active_user) -> None:
    student = await active_user("9876543210")
    deleted = await client.delete(f"/api/v1/users/{student.id}", headers=institute.admin.headers)
    assert deleted.status_code == 204

    missing = await client.get(f"/api/v1/users/{student.id}", headers=institute.admin.headers)
    assert missing.status_code == 404
    me = await client.get("/api/v1/auth/me", headers=student.headers)
    assert me.status_code == 401

    self_delete = await client.delete(f"/api/v1/users/{institute.admin.id}", headers=institute.admin.headers)
    assert self_delete.status_code == 403


async def test_users_are_tenant_scoped(client: AsyncClient, institute, active_user) -> None:
    student = await active_user("9876543210")
    other = await client.post(
        "/api/v1/auth/register",
        json={
            "institute_name": "Other Academy",
            "display_code": "OTHER",
            "admin_name": "Olu",
            "identifier": "olu@other.test",
            "password": "adminpass",
            "confirm_password": "adminpass",
        },
    )
    assert other.status_code == 201
    login = await client.post("/api/v1/auth/login", json={"identifier": "olu@other.test", "secret": "adminpass"})
    other_headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

    response = await client.get(f"/api/v1/users/{student.id}", headers=other_headers)
    assert response.status_code == 404
    approve = await client.post(f"/api/v1/users/{student.id}/block", headers=other_headers)
    assert approve.status_code == 404


async def test_health(client: AsyncClient) -> None:
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "ok"
