from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.accounts.schemas import SignupRequest
from app.accounts.service import account_service
from app.core.auth import create_access_token
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.main import app
from app.middleware.rate_limit import is_billable_path, reset_rate_limiter


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def configure_rate_limiter_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "false")
    monkeypatch.setenv("RATE_LIMIT_BILLABLE_PER_MINUTE", "3")
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    reset_rate_limiter()
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _headers(db_session: Session, email: str) -> dict[str, str]:
    account = account_service.signup(
        db_session,
        SignupRequest(full_name="Busy Caller", email=email, password="password123"),
    )
    return {"Authorization": f"Bearer {create_access_token(str(account.id))}"}


def _verify(client: TestClient, headers: dict[str, str]) -> int:
    response = client.post("/api/verify-email", json={"email": "jane.doe@acme.io"}, headers=headers)
    return response.status_code


def test_billable_endpoints_are_rate_limited(client: TestClient, db_session: Session) -> None:
    headers = _headers(db_session, "busy@example.com")

    statuses = [_verify(client, headers) for _ in range(5)]

    assert statuses[:3] == [200, 200, 200]
    assert statuses[3:] == [429, 429]
    limited = client.post(
        "/api/verify-email",
        json={"email": "jane.doe@acme.io"},
        headers={**headers, "X-Correlation-Id": "rl-1"},
    )
    assert limited.status_code == 429
    assert limited.headers["Retry-After"]
    assert limited.json() == {
        "code": "RATE_LIMITED",
        "message": "Too many requests",
        "details": None,
        "correlation_id": "rl-1",
    }
    assert client.get("/api/user/credits", headers=headers).json() == {"credits": 97}


def test_rate_limit_is_tracked_per_caller(client: TestClient, db_session: Session) -> None:
    first = _headers(db_session, "first@example.com")
    second = _headers(db_session, "second@example.com")

    assert [_verify(client, first) for _ in range(4)][-1] == 429
    assert _verify(client, second) == 200


def test_free_routes_are_not_rate_limited(client: TestClient, db_session: Session) -> None:
    headers = _headers(db_session, "reader@example.com")

    statuses = [client.post("/api/contacts", json={"full_name": f"Contact {index}"}, headers=headers).status_code for index in range(5)]

    assert statuses == [201] * 5


def test_rate_limit_can_be_disabled(client: TestClient, db_session: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    get_settings.cache_clear()
    headers = _headers(db_session, "unlimited@example.com")

    assert [_verify(client, headers) for _ in range(5)] == [200] * 5


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/api/enrich/search", True),
        ("/api/ai-writer/generate", True),
        ("/api/ai-writer/send-email", False),
        ("/api/email/find", True),
        ("/api/verify-email", True),
        ("/api/crm/export/contacts", True),
        ("/api/crm/connection/status", False),
        ("/api/contacts", False),
        (f"/api/contacts/{uuid.uuid4()}", False),
    ],
)
def test_billable_path_detection(path: str, expected: bool) -> None:
    assert is_billable_path(path) is expected
