from typing import Dict, Generator, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from starlette.websockets import WebSocketDisconnect

from edupro.db.session import Base, get_db
from edupro.main import app
from edupro.notifications.sender import get_notification_sender


@pytest.fixture()
def live_client(tmp_path, sender) -> Generator[TestClient, None, None]:
    """
    Threaded TestClient for the WebSocket endpoints. HTTP calls and streams share
    the client's event loop. The pool holds a single connection, so a request made
    while a stream is open only succeeds if the stream gave its connection back.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'streams.db'}",
        pool_size=1,
        max_overflow=0,
        pool_timeout=2,
    )
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with factory() as session:
            yield session

    async def create_tables() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_sender] = lambda: sender
    try:
        with TestClient(app) as tc:
            tc.portal.call(create_tables)
            yield tc
            tc.portal.call(engine.dispose)
    finally:
        app.dependency_overrides.clear()


def _bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _register(tc: TestClient) -> Tuple[str, Dict[str, str]]:
    response = tc.post(
        "/api/v1/auth/register",
        json={
            "institute_name": "Acme Academy",
            "display_code": "ACME",
            "admin_name": "Asha Admin",
            "identifier": "admin@acme.test",
            "password": "adminpass",
            "confirm_password": "adminpass",
            "grade_list": ["9", "10"],
        },
    )
    assert response.status_code == 201, response.text
    login = tc.post("/api/v1/auth/login", json={"identifier": "admin@acme.test", "secret": "adminpass"})
    assert login.status_code == 200, login.text
    return response.json()["tenant_id"], _bearer(login.json()["access_token"])


def _signup(tc: TestClient, tenant_id: str, phone: str = "9876543210") -> Tuple[str, str]:
    response = tc.post(
        "/api/v1/auth/signup",
        json={
            "tenant_id": tenant_id,
            "role": "STUDENT",
            "name": "Ravi",
            "phone_number": phone,
            "password": "secret123",
            "grade": "10",
            "device_id": "device-1",
        },
    )
    assert response.status_code == 201, response.text
    data = response.json()
    return data["user"]["id"], data["access_token"]


def test_pending_user_is_pushed_to_active_on_approval(live_client: TestClient) -> None:
    tenant_id, admin_headers = _register(live_client)
    student_id, token = _signup(live_client, tenant_id)

    with live_client.websocket_connect(f"/api/v1/auth/me/status/ws?token={token}") as ws:
        assert ws.receive_json() == {"user_id": student_id, "status": "PENDING", "role": "STUDENT"}

        approved = live_client.post(f"/api/v1/users/{student_id}/approve", headers=admin_headers)
        assert approved.status_code == 200

        assert ws.receive_json() == {"user_id": student_id, "status": "ACTIVE", "role": "STUDENT"}
        # The waiting view is done once the account leaves PENDING
        with pytest.raises(WebSocketDisconnect):
            ws.receive_json()


def test_status_stream_rejects_invalid_token(live_client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect) as exc:
        with live_client.websocket_connect("/api/v1/auth/me/status/ws?token=not-a-token"):
            pass
    assert exc.value.code == 4401


def test_poll_stream_sends_counts_then_every_vote(live_client: TestClient) -> None:
    tenant_id, admin_headers = _register(live_client)
    student_id, token = _signup(live_client, tenant_id)
    assert live_client.post(f"/api/v1/users/{student_id}/approve", headers=admin_headers).status_code == 200

    created = live_client.post(
        "/api/v1/polls",
        json={"question": "Picnic destination?", "options": ["Zoo", "Beach", "Fort"]},
        headers=admin_headers,
    )
    assert created.status_code == 201, created.text
    poll_id = created.json()["id"]

    with live_client.websocket_connect(f"/api/v1/polls/{poll_id}/ws?token={token}") as ws:
        initial = ws.receive_json()
        assert initial["poll_id"] == poll_id
        assert initial["total_votes"] == 0
        assert [o["votes"] for o in initial["options"]] == [0, 0, 0]

        voted = live_client.post(f"/api/v1/polls/{poll_id}/vote", json={"option_index": 1}, headers=_bearer(token))
        assert voted.status_code == 200, voted.text
        update = ws.receive_json()
        assert update["total_votes"] == 1
        assert [o["votes"] for o in update["options"]] == [0, 1, 0]

        ended = live_client.put(f"/api/v1/polls/{poll_id}/active", json={"active": False}, headers=admin_headers)
        assert ended.status_code == 200
        assert ws.receive_json()["active"] is False


def test_poll_stream_refuses_pending_users_and_unknown_polls(live_client: TestClient) -> None:
    tenant_id, admin_headers = _register(live_client)
    _, pending_token = _signup(live_client, tenant_id)
    admin_token = admin_headers["Authorization"].split(" ", 1)[1]

    with pytest.raises(WebSocketDisconnect) as pending:
        with live_client.websocket_connect(f"/api/v1/polls/some-poll/ws?token={pending_token}"):
            pass
    assert pending.value.code == 4401

    with pytest.raises(WebSocketDisconnect) as missing:
        with live_client.websocket_connect(f"/api/v1/polls/no-such-poll/ws?token={admin_token}"):
            pass
    assert missing.value.code == 4404
