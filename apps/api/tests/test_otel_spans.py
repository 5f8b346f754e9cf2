from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.accounts.schemas import SignupRequest
from app.accounts.service import account_service
from app.core.auth import create_access_token
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.main import app
from app.middleware.rate_limit import reset_rate_limiter
from app.otel import setup_inmemory_otel


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
def setup_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    get_settings.cache_clear()
    reset_rate_limiter()


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel("api")
    exporter.clear()
    return exporter


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def account_id(db_session: Session) -> uuid.UUID:
    account = account_service.signup(
        db_session,
        SignupRequest(full_name="Span Owner", email="span@example.com", password="password123"),
    )
    return account.id


def test_billable_request_emits_charge_and_provider_spans(
    client: TestClient,
    account_id: uuid.UUID,
    span_exporter: InMemorySpanExporter,
) -> None:
    response = client.post(
        "/api/email/find",
        json={"first_name": "Jane", "last_name": "Doe", "domain_or_company": "acme.io"},
        headers={
            "Authorization": f"Bearer {create_access_token(str(account_id))}",
            "X-Correlation-Id": "span-corr-1",
        },
    )
    assert response.status_code == 200

    spans = {span.name: span for span in span_exporter.get_finished_spans()}
    charge = spans["billing.charge"]
    assert charge.attributes["operation"] == "find_email"
    assert charge.attributes["cost"] == 1
    assert charge.attributes["outcome"] == "charged"
    assert charge.attributes["account_id"] == str(account_id)

    provider = spans["provider.email.find"]
    assert provider.attributes["provider"] == "stub-email-finder"
    assert provider.attributes["correlation_id"] == "span-corr-1"
