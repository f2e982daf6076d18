from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from edupro.db.session import Base, get_db
from edupro.main import app
from edupro.notifications.sender import get_notification_sender


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class RecordingSender:
    """Notification transport that keeps every message instead of sending it."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []

    async def send(self, tokens, title, body, route_hint=None) -> None:
        self.sent.append({"tokens": list(tokens), "title": title, "body": body, "route": route_hint})


@dataclass
class Account:
    id: str
    token: str
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@dataclass
class Institute:
    tenant_id: str
    display_code: str
    admin: Account


@pytest.fixture()
async def engine():
    """One in-memory database per test, shared by every session through a static pool."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture()
async def client(session_factory, sender) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app; each request gets its own session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_sender] = lambda: sender
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
async def institute(client: AsyncClient) -> Institute:
    """Registered institute (code ACME, grades 9 and 10) with a logged-in admin."""
    response = await client.post(
        "/api/v1/auth/register",
        json={
            "institute_name": "Acme Academy",
            "display_code": "ACME",
            "admin_name": "Asha Admin",
            "identifier": "admin@acme.test",
            "password": "adminpass",
            "confirm_password": "adminpass",
            "grade_list": ["9", "10"],
            "subject_list": ["Maths", "Science"],
        },
    )
    assert response.status_code == 201, response.text
    registered = response.json()

    login = await client.post(
        "/api/v1/auth/login",
        json={"identifier": "admin@acme.test", "secret": "adminpass"},
    )
    assert login.status_code == 200, login.text
    session = login.json()
    admin = Account(id=session["user"]["id"], token=session["access_token"], data=session)
    return Institute(
        tenant_id=registered["tenant_id"],
        display_code=registered["display_code"],
        admin=admin,
    )


@pytest.fixture()
def signup(client: AsyncClient, institute: Institute):
    """Factory: self sign-up of a student or parent (PENDING)."""

    async def _signup(
        phone: str,
        role: str = "STUDENT",
        name: str = "Ravi",
        grade: Optional[str] = "10",
        linked_student_phone: Optional[str] = None,
        device_id: str = "device-1",
        password: str = "secret123",
    ) -> Account:
        payload = {
            "tenant_id": institute.tenant_id,
            "role": role,
            "name": name,
            "phone_number": phone,
            "password": password,
            "device_id": device_id,
        }
        if role == "STUDENT":
            payload["grade"] = grade
        if linked_student_phone is not None:
            payload["linked_student_phone"] = linked_student_phone
        response = await client.post("/api/v1/auth/signup", json=payload)
        assert response.status_code == 201, response.text
        data = response.json()
        return Account(id=data["user"]["id"], token=data["access_token"], data=data)

    return _signup


@pytest.fixture()
def active_user(client: AsyncClient, institute: Institute, signup):
    """Factory: sign-up followed by admin approval. The sign-up token stays valid."""

    async def _active_user(phone: str, **kwargs) -> Account:
        account = await signup(phone, **kwargs)
        response = await client.post(
            f"/api/v1/users/{account.id}/approve", headers=institute.admin.headers
        )
        assert response.status_code == 200, response.text
        return account

    return _active_user
