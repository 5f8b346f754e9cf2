from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app import audit, events
from app.accounts.schemas import SignupRequest
from app.accounts.service import account_service
from app.core.auth import create_access_token
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.main import app
from app.middleware.rate_limit import reset_rate_limiter


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
def clear_stubs() -> Generator[None, None, None]:
    audit.audit_entries.clear()
    events.published_events.clear()
    reset_rate_limiter()
    get_settings.cache_clear()
    yield
    audit.audit_entries.clear()
    events.published_events.clear()
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


def _headers_for(db_session: Session, email: str) -> dict[str, str]:
    account = account_service.signup(
        db_session,
        SignupRequest(full_name=email.split("@")[0].title(), email=email, password="password123"),
    )
    return {"Authorization": f"Bearer {create_access_token(str(account.id))}"}


@pytest.fixture()
def owner(db_session: Session) -> dict[str, str]:
    return _headers_for(db_session, "owner@example.com")


@pytest.fixture()
def stranger(db_session: Session) -> dict[str, str]:
    return _headers_for(db_session, "stranger@example.com")


def _create_contact(client: TestClient, headers: dict[str, str], **overrides: object) -> dict:
    payload: dict[str, object] = {
        "full_name": "Sarah Johnson",
        "email": "sarah@techcorp.example.com",
        "job_title": "VP of Marketing",
        "tags": ["warm"],
    }
    payload.update(overrides)
    response = client.post("/api/contacts", json=payload, headers=headers)
    assert response.status_code == 201
    return response.json()


def test_contact_crud_round(client: TestClient, owner: dict[str, str]) -> None:
    created = _create_contact(client, owner)
    contact_id = created["id"]
    assert created["is_enriched"] is False
    assert created["tags"] == ["warm"]

    listed = client.get("/api/contacts", headers=owner)
    assert listed.status_code == 200
    assert [item["id"] for item in listed.json()["contacts"]] == [contact_id]

    fetched = client.get(f"/api/contacts/{contact_id}", headers=owner)
    assert fetched.status_code == 200
    assert fetched.json()["full_name"] == "Sarah Johnson"

    patched = client.patch(
        f"/api/contacts/{contact_id}",
        json={"job_title": "CMO", "notes": "Met at summit"},
        headers=owner,
    )
    assert patched.status_code == 200
    assert patched.json()["job_title"] == "CMO"
    assert patched.json()["notes"] == "Met at summit"

    deleted = client.delete(f"/api/contacts/{contact_id}", headers=owner)
    assert deleted.status_code == 200
    assert deleted.json() == {"status": "deleted"}
    assert client.get(f"/api/contacts/{contact_id}", headers=owner).status_code == 404

    actions = [entry["action"] for entry in audit.audit_entries if entry["entity_type"] == "crm.contact"]
    assert actions == ["create", "update", "delete"]
    event_types = [item["event_type"] for item in events.published_events if item["event_type"].startswith("crm.")]
    assert event_types == ["crm.contact.created", "crm.contact.updated", "crm.contact.deleted"]


def test_contacts_of_other_accounts_are_invisible(
    client: TestClient,
    owner: dict[str, str],
    stranger: dict[str, str],
) -> None:
    created = _create_contact(client, owner)
    contact_id = created["id"]

    assert client.get("/api/contacts", headers=stranger).json() == {"contacts": []}

    fetched = client.get(f"/api/contacts/{contact_id}", headers=stranger)
    assert fetched.status_code == 404
    assert fetched.json()["code"] == "crm_contact_get_failed"

    patched = client.patch(f"/api/contacts/{contact_id}", json={"job_title": "Hijacked"}, headers=stranger)
    assert patched.status_code == 404
    assert client.delete(f"/api/contacts/{contact_id}", headers=stranger).status_code == 404

    still_there = client.get(f"/api/contacts/{contact_id}", headers=owner)
    assert still_there.json()["job_title"] == "VP of Marketing"


def test_contact_links_owned_company_and_copies_name(client: TestClient, owner: dict[str, str]) -> None:
    company = client.post("/api/companies", json={"name": "TechCorp Inc."}, headers=owner).json()

    created = _create_contact(client, owner, company_id=company["id"])

    assert created["company_id"] == company["id"]
    assert created["company_name"] == "TechCorp Inc."


def test_contact_cannot_link_foreign_company(
    client: TestClient,
    owner: dict[str, str],
    stranger: dict[str, str],
) -> None:
    foreign = client.post("/api/companies", json={"name": "Secret Co"}, headers=stranger).json()

    response = client.post(
        "/api/contacts",
        json={"full_name": "Sarah Johnson", "company_id": foreign["id"]},
        headers=owner,
    )

    assert response.status_code == 422
    assert response.json()["code"] == "crm_contact_create_failed"


def test_contact_update_rejects_unknown_fields(client: TestClient, owner: dict[str, str]) -> None:
    created = _create_contact(client, owner)

    response = client.patch(
        f"/api/contacts/{created['id']}",
        json={"account_id": str(uuid.uuid4())},
        headers=owner,
    )

    assert response.status_code == 422


def test_contact_requires_name(client: TestClient, owner: dict[str, str]) -> None:
    response = client.post("/api/contacts", json={"full_name": ""}, headers=owner)
    assert response.status_code == 422


def test_contacts_require_authentication(client: TestClient) -> None:
    assert client.get("/api/contacts").status_code == 401
    assert client.post("/api/contacts", json={"full_name": "Anonymous"}).status_code == 401
