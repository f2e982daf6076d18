import itertools

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from edupro.auth import approval
from edupro.auth.approval import ALLOWED_TRANSITIONS, can_transition, ensure_transition
from edupro.auth.models import RefreshToken, UserProfile
from edupro.auth.security import create_refresh_token, hash_password
from edupro.core.enums import UserStatus
from edupro.core.events import ChangeFeed, change_feed, user_topic
from edupro.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from edupro.core.models import Tenant

ALLOWED_EDGES = {
    ("PENDING", "ACTIVE"),
    ("PENDING", "REJECTED"),
    ("ACTIVE", "BLOCKED"),
}


@pytest.mark.parametrize(
    "current,target",
    list(itertools.product([s.value for s in UserStatus], repeat=2)),
)
def test_only_allowed_edges(current: str, target: str) -> None:
    assert can_transition(current, target) == ((current, target) in ALLOWED_EDGES)


def test_terminal_statuses_have_no_exits() -> None:
    assert ALLOWED_TRANSITIONS["REJECTED"] == frozenset()
    assert ALLOWED_TRANSITIONS["BLOCKED"] == frozenset()
    with pytest.raises(InvalidTransitionError):
        ensure_transition("BLOCKED", "ACTIVE")
    with pytest.raises(ValidationError):
        ensure_transition("PENDING", "SUSPENDED")


async def test_approve_moves_pending_to_active(client: AsyncClient, institute, signup, sender) -> None:
    student = await signup("9876543210")
    await client.put(
        "/api/v1/auth/me/push-token", json={"token": "ExponentPushToken[ravi]"}, headers=student.headers
    )

    response = await client.post(f"/api/v1/users/{student.id}/approve", headers=institute.admin.headers)
    assert response.status_code == 200
    assert response.json()["status"] == "ACTIVE"

    me = await client.get("/api/v1/auth/me", headers=student.headers)
    assert me.json()["route"] == "LEARNING_HOME"
    assert sender.sent[-1]["tokens"] == ["ExponentPushToken[ravi]"]
    assert sender.sent[-1]["title"] == "Account approved"


async def test_invalid_transitions_are_conflicts(client: AsyncClient, institute, signup) -> None:
    student = await signup("9876543210")
    # PENDING -> BLOCKED is not an edge
    blocked = await client.post(f"/api/v1/users/{student.id}/block", headers=institute.admin.headers)
    assert blocked.status_code == 409

    rejected = await client.post(f"/api/v1/users/{student.id}/reject", headers=institute.admin.headers)
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "REJECTED"

    # REJECTED is terminal
    for target in ("ACTIVE", "PENDING", "BLOCKED"):
        response = await client.put(
            f"/api/v1/users/{student.id}/status",
            json={"status": target},
            headers=institute.admin.headers,
        )
        assert response.status_code == 409, target


async def test_status_changes_require_admin(client: AsyncClient, institute, signup, active_user) -> None:
    pending = await signup("9123456780", name="Meera")
    student = await active_user("9876543210")
    response = await client.post(f"/api/v1/users/{pending.id}/approve", headers=student.headers)
    assert response.status_code == 403

    own = await client.post(f"/api/v1/users/{institute.admin.id}/block", headers=institute.admin.headers)
    assert own.status_code == 403


async def test_status_change_is_published(client: AsyncClient, institute, signup) -> None:
    student = await signup("9876543210")
    async with change_feed.subscribe(user_topic(student.id)) as queue:
        response = await client.post(f"/api/v1/users/{student.id}/approve", headers=institute.admin.headers)
        assert response.status_code == 200
        event = queue.get_nowait()
    assert event == {"user_id": student.id, "status": "ACTIVE", "role": "STUDENT"}


async def test_service_wrappers_follow_the_state_machine(session_factory) -> None:
    feed = ChangeFeed()
    async with session_factory() as s:
        s.add(Tenant(id="inst_w", display_code="W", name="W Academy"))
        user = UserProfile(
            tenant_id="inst_w",
            role="STUDENT",
            name="Ravi",
            phone_number="9876543210",
            grade="10",
            status="PENDING",
            source="SELF",
            login_handle="9876543210@midnightcuriosity.com",
            secret_hash=hash_password("secret123"),
        )
        s.add(user)
        await s.flush()
        token, expires_at = create_refresh_token()
        s.add(RefreshToken(user_id=user.id, token=token, expires_at=expires_at))
        await s.commit()
        user_id = user.id

        async with feed.subscribe(user_topic(user_id)) as queue:
            approved = await approval.approve(s, "inst_w", user_id, actor_id="admin", feed=feed)
            assert approved.status == "ACTIVE"
            blocked = await approval.block(s, "inst_w", user_id, actor_id="admin", feed=feed)
            assert blocked.status == "BLOCKED"
            assert [queue.get_nowait()["status"] for _ in range(2)] == ["ACTIVE", "BLOCKED"]

        with pytest.raises(InvalidTransitionError):
            await approval.reject(s, "inst_w", user_id, feed=feed)
        with pytest.raises(NotFoundError):
            await approval.approve(s, "other_tenant", user_id, feed=feed)

        remaining = await s.execute(select(func.count()).select_from(RefreshToken))
        assert remaining.scalar_one() == 0


async def test_pending_queue_listing(client: AsyncClient, institute, signup) -> None:
    await signup("9876543210")
    await signup("9123456780", name="Meera")
    response = await client.get("/api/v1/users", params={"status": "PENDING"}, headers=institute.admin.headers)
    assert response.status_code == 200
    assert {u["phone_number"] for u in response.json()} == {"9876543210", "9123456780"}
    assert all(u["status"] == "PENDING" for u in response.json())
