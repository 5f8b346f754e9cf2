from __future__ import annotations

import dataclasses
import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app import audit, events
from app.accounts.models import Account
from app.accounts.schemas import SignupRequest
from app.accounts.service import account_service
from app.actions.service import ActionService
from app.core.auth import create_access_token
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.crm.models import CRMContact
from app.integrations.crm_sync import CRMType, StubCRMAdapter
from app.integrations.email_sender import StubEmailSender
from app.integrations.errors import ProviderError
from app.integrations.registry import Providers, build_providers, get_providers
from app.main import app
from app.middleware.rate_limit import reset_rate_limiter
from app.platform.ledger.errors import LedgerPersistenceError
from app.platform.ledger.models import LedgerEntry
from app.platform.ledger.service import LedgerStore, ledger_store


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
def clear_stubs(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
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
def providers() -> Providers:
    return build_providers()


@pytest.fixture()
def client(db_session: Session, providers: Providers) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_providers] = lambda: providers
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def account(db_session: Session) -> Account:
    return account_service.signup(
        db_session,
        SignupRequest(
            full_name="Ada Lovelace",
            email="ada@example.com",
            password="password123",
            company_name="Analytical Engines",
            role="Founder",
        ),
    )


@pytest.fixture()
def headers(account: Account) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(account.id))}"}


class _FailingEnrichment:
    name = "flaky-enrichment"

    def search_people(self, filters):  # type: ignore[no-untyped-def]
        raise ProviderError(self.name, "upstream timeout")

    def reveal_email(self, person, company_domain):  # type: ignore[no-untyped-def]
        raise ProviderError(self.name, "upstream timeout")

    def enrich(self, person, categories):  # type: ignore[no-untyped-def]
        raise ProviderError(self.name, "upstream timeout")


class _CrashingEnrichment(_FailingEnrichment):
    name = "crashing-enrichment"

    def search_people(self, filters):  # type: ignore[no-untyped-def]
        raise RuntimeError("boom")


class _MalformedCRM(StubCRMAdapter):
    def import_contacts(self):  # type: ignore[no-untyped-def]
        return [{"full_name": "Valid Person"}, {"email": "nameless@acme.io"}]


def _balance(client: TestClient, headers: dict[str, str]) -> int:
    return client.get("/api/user/credits", headers=headers).json()["credits"]


def _entry_count(db_session: Session, account: Account) -> int:
    return db_session.scalar(select(func.count()).select_from(LedgerEntry).where(LedgerEntry.account_id == account.id))


def _drain_to(db_session: Session, account: Account, remaining: int) -> None:
    balance = ledger_store.get_balance(db_session, account.id)
    ledger_store.record_debit(db_session, account.id, balance - remaining, "Earlier usage", operation="search")


def _create_contact(client: TestClient, headers: dict[str, str], **overrides: object) -> dict:
    payload: dict[str, object] = {"full_name": "Sarah Johnson", "job_title": "VP of Marketing"}
    payload.update(overrides)
    response = client.post("/api/contacts", json=payload, headers=headers)
    assert response.status_code == 201
    return response.json()


def test_search_charges_and_saves_results(client: TestClient, headers: dict[str, str]) -> None:
    response = client.post("/api/enrich/search", json={"company": "innovate"}, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["credits_used"] == 5
    assert body["credits_remaining"] == 95
    assert [item["full_name"] for item in body["results"]] == ["Robert Miller"]
    assert body["results"][0]["enrichment_source"] == "stub-enrichment"

    contacts = client.get("/api/contacts", headers=headers).json()["contacts"]
    assert [item["full_name"] for item in contacts] == ["Robert Miller"]
    assert _balance(client, headers) == 95


def test_insufficient_credits_returns_402_without_side_effects(
    client: TestClient,
    db_session: Session,
    account: Account,
    headers: dict[str, str],
) -> None:
    _drain_to(db_session, account, 2)
    entries_before = _entry_count(db_session, account)

    response = client.post("/api/enrich/search", json={"company": "TechCorp"}, headers=headers)

    assert response.status_code == 402
    body = response.json()
    assert body["code"] == "insufficient_credits"
    assert body["details"]["required"] == 5
    assert body["details"]["available"] == 2
    assert body["details"]["operation"] == "search"
    assert body["correlation_id"] == response.headers["x-correlation-id"]

    assert _balance(client, headers) == 2
    assert _entry_count(db_session, account) == entries_before
    assert db_session.scalar(select(func.count()).select_from(CRMContact)) == 0
    assert any(item["event_type"] == "billing.credits.denied" for item in events.published_events)


def test_reveal_email_uses_company_domain(client: TestClient, headers: dict[str, str]) -> None:
    company = client.post(
        "/api/companies",
        json={"name": "TechCorp Inc.", "website": "https://www.techcorp.com/about"},
        headers=headers,
    ).json()
    contact = _create_contact(client, headers, company_id=company["id"])

    response = client.post("/api/enrich/reveal-email", json={"contact_id": contact["id"]}, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "sarah.johnson@techcorp.com"
    assert body["contact"]["is_enriched"] is True
    assert body["credits_used"] == 2
    assert body["credits_remaining"] == 98


def test_reveal_email_for_missing_contact_costs_nothing(client: TestClient, headers: dict[str, str]) -> None:
    response = client.post("/api/enrich/reveal-email", json={"contact_id": str(uuid.uuid4())}, headers=headers)

    assert response.status_code == 404
    assert response.json()["code"] == "enrich_reveal_email_failed"
    assert _balance(client, headers) == 100


def test_enrich_contact_prices_by_category(client: TestClient, headers: dict[str, str]) -> None:
    contact = _create_contact(client, headers, company_name="TechCorp Inc.")

    response = client.post(
        "/api/enrich/contact",
        json={"contact_id": contact["id"], "options": ["email", "phone", "Phone"]},
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["credits_used"] == 5
    assert body["credits_remaining"] == 95
    assert body["message"] == "Contact data for Sarah Johnson has been enriched"
    assert body["contact"]["phone"] == "+1 (555) 123-4567"
    assert body["contact"]["email_verified"] is True
    assert body["contact"]["linkedin_url"] is None
    assert body["contact"]["enrichment_source"] == "stub-enrichment"


def test_enrich_contact_without_options_costs_default(client: TestClient, headers: dict[str, str]) -> None:
    contact = _create_contact(client, headers)

    response = client.post("/api/enrich/contact", json={"contact_id": contact["id"]}, headers=headers)

    assert response.status_code == 200
    assert response.json()["credits_used"] == 5


def test_enrich_contact_rejects_unknown_category_before_charging(
    client: TestClient,
    db_session: Session,
    account: Account,
    headers: dict[str, str],
    recwarn: pytest.WarningsRecorder,
) -> None:
    contact = _create_contact(client, headers)
    entries_before = _entry_count(db_session, account)

    response = client.post(
        "/api/enrich/contact",
        json={"contact_id": contact["id"], "options": ["email", "fax"]},
        headers=headers,
    )

    assert response.status_code == 422
    assert response.json()["details"]["unknown_categories"] == ["fax"]
    assert _balance(client, headers) == 100
    assert _entry_count(db_session, account) == entries_before
    assert not [item for item in recwarn if "HTTP_422" in str(item.message)]


def test_generate_message_for_contact(client: TestClient, headers: dict[str, str]) -> None:
    contact = _create_contact(client, headers, company_name="TechCorp Inc.")

    response = client.post(
        "/api/ai-writer/generate",
        json={"contact_id": contact["id"], "purpose": "introduction", "tone": "professional"},
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"].startswith("Hello Sarah,")
    assert "TechCorp Inc." in body["message"]
    assert "Ada Lovelace" in body["message"]
    assert body["credits_used"] == 3
    assert body["credits_remaining"] == 97


def test_generate_freeform_message(client: TestClient, headers: dict[str, str]) -> None:
    response = client.post(
        "/api/message/generate",
        json={
            "contact_full_name": "Robert Miller",
            "user_full_name": "Ada Lovelace",
            "purpose": "followup",
            "tone": "formal",
        },
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["message"].startswith("Dear Robert Miller,")
    assert response.json()["credits_used"] == 3


def test_generate_message_rejects_unknown_tone(client: TestClient, headers: dict[str, str]) -> None:
    response = client.post(
        "/api/message/generate",
        json={"contact_full_name": "Robert", "user_full_name": "Ada", "purpose": "followup", "tone": "rude"},
        headers=headers,
    )

    assert response.status_code == 422
    assert _balance(client, headers) == 100


def test_find_email(client: TestClient, headers: dict[str, str]) -> None:
    response = client.post(
        "/api/email/find",
        json={"first_name": "Jane", "last_name": "Doe", "domain_or_company": "acme.io"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json() == {
        "credits_used": 1,
        "credits_remaining": 99,
        "found": True,
        "email": "jane.doe@acme.io",
    }


def test_verify_email_charges_even_when_invalid(client: TestClient, headers: dict[str, str]) -> None:
    response = client.post("/api/verify-email", json={"email": "not-an-address"}, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["is_valid"] is False
    assert body["credits_used"] == 1
    assert body["credits_remaining"] == 99


def test_send_email_delivers_and_marks_contact(
    client: TestClient,
    headers: dict[str, str],
    providers: Providers,
) -> None:
    contact = _create_contact(client, headers, email="sarah@techcorp.example.com")

    response = client.post(
        "/api/email/send",
        json={"contact_id": contact["id"], "subject": "Hello", "message": "Nice to meet you."},
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["credits_used"] == 3
    assert body["contact"]["email_sent"] is True
    assert body["contact"]["last_contacted"] is not None
    assert isinstance(providers.email_sender, StubEmailSender)
    assert len(providers.email_sender.outbox) == 1
    sent = providers.email_sender.outbox[0]
    assert sent.message_id == body["message_id"]
    assert sent.email.to_email == "sarah@techcorp.example.com"
    assert sent.email.from_email == "ada@example.com"


def test_send_email_without_address_costs_nothing(
    client: TestClient,
    headers: dict[str, str],
    providers: Providers,
) -> None:
    contact = _create_contact(client, headers)

    response = client.post(
        "/api/email/send",
        json={"contact_id": contact["id"], "subject": "Hello", "message": "Hi"},
        headers=headers,
    )

    assert response.status_code == 422
    assert _balance(client, headers) == 100
    assert isinstance(providers.email_sender, StubEmailSender)
    assert providers.email_sender.outbox == []


def test_import_contacts_from_crm(client: TestClient, headers: dict[str, str]) -> None:
    response = client.post("/api/crm/import/contacts", json={"source": "hubspot"}, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    assert body["message"] == "Successfully imported 2 contacts from hubspot"
    assert body["credits_used"] == 10

    contacts = client.get("/api/contacts", headers=headers).json()["contacts"]
    assert {item["full_name"] for item in contacts} == {"Michael Chen", "Priya Patel"}
    assert all(item["tags"] == ["HubSpot Import"] for item in contacts)
    assert all(item["imported_from_crm"] and item["crm_source"] == "hubspot" for item in contacts)


def test_import_companies_from_crm(client: TestClient, headers: dict[str, str]) -> None:
    response = client.post("/api/crm/import/companies", json={"source": "salesforce"}, headers=headers)

    assert response.status_code == 200
    assert response.json()["count"] == 2
    companies = client.get("/api/companies", headers=headers).json()["companies"]
    assert {item["name"] for item in companies} == {"Northwind Traders", "Contoso"}


def test_import_rejects_unknown_crm(client: TestClient, headers: dict[str, str]) -> None:
    response = client.post("/api/crm/import/contacts", json={"source": "pipedrive"}, headers=headers)

    assert response.status_code == 422
    assert _balance(client, headers) == 100


def test_export_contacts_stores_external_ids(client: TestClient, headers: dict[str, str]) -> None:
    first = _create_contact(client, headers)
    second = _create_contact(client, headers, full_name="Robert Miller")

    response = client.post(
        "/api/crm/export/contacts",
        json={"destination": "salesforce", "contact_ids": [first["id"], second["id"], str(uuid.uuid4())]},
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Successfully exported 2 contacts to salesforce"
    assert body["credits_used"] == 5
    assert [item["record_id"] for item in body["results"]] == [first["id"], second["id"]]

    refreshed = client.get(f"/api/contacts/{first['id']}", headers=headers).json()
    assert refreshed["salesforce_id"] == body["results"][0]["external_id"]
    assert refreshed["crm_source"] == "salesforce"


def test_repeated_exports_keep_adapter_stateless(
    client: TestClient,
    headers: dict[str, str],
    providers: Providers,
) -> None:
    contact = _create_contact(client, headers)
    payload = {"destination": "salesforce", "contact_ids": [contact["id"]]}

    first = client.post("/api/crm/export/contacts", json=payload, headers=headers).json()
    second = client.post("/api/crm/export/contacts", json=payload, headers=headers).json()

    assert second["results"][0]["external_id"] == first["results"][0]["external_id"]
    assert vars(providers.crm(CRMType.SALESFORCE)) == {"crm_type": CRMType.SALESFORCE, "connected": True}


def test_export_with_no_owned_records_costs_nothing(client: TestClient, headers: dict[str, str]) -> None:
    response = client.post(
        "/api/crm/export/companies",
        json={"destination": "hubspot", "company_ids": [str(uuid.uuid4())]},
        headers=headers,
    )

    assert response.status_code == 422
    assert response.json()["message"] == "No valid companies found to export"
    assert _balance(client, headers) == 100


def test_provider_failure_refunds_charge(
    client: TestClient,
    db_session: Session,
    account: Account,
    headers: dict[str, str],
    providers: Providers,
) -> None:
    failing = dataclasses.replace(providers, enrichment=_FailingEnrichment())
    app.dependency_overrides[get_providers] = lambda: failing

    response = client.post("/api/enrich/search", json={"job_title": "CTO"}, headers=headers)

    assert response.status_code == 502
    body = response.json()
    assert body["code"] == "provider_unavailable"
    assert body["details"]["provider"] == "flaky-enrichment"
    assert body["details"]["refunded"] == 5
    assert body["details"]["credits_remaining"] == 100

    assert _balance(client, headers) == 100
    assert db_session.scalar(select(func.count()).select_from(CRMContact)) == 0
    entries = ledger_store.list_transactions(db_session, account.id)
    assert [entry.amount for entry in entries] == [5, -5, 100]
    assert entries[0].description.startswith("Refund: ")
    assert ledger_store.verify_balance(db_session, account.id) is True


def test_unexpected_provider_exception_is_refunded(
    client: TestClient,
    db_session: Session,
    account: Account,
    headers: dict[str, str],
    providers: Providers,
) -> None:
    crashing = dataclasses.replace(providers, enrichment=_CrashingEnrichment())
    app.dependency_overrides[get_providers] = lambda: crashing

    response = client.post("/api/enrich/search", json={"job_title": "CTO"}, headers=headers)

    assert response.status_code == 502
    body = response.json()
    assert body["code"] == "provider_unavailable"
    assert body["message"] == "search could not be completed"
    assert body["details"]["provider"] == "crashing-enrichment"
    assert body["correlation_id"]
    assert _balance(client, headers) == 100
    assert db_session.scalar(select(func.count()).select_from(CRMContact)) == 0
    entries = ledger_store.list_transactions(db_session, account.id)
    assert [entry.amount for entry in entries] == [5, -5, 100]
    assert entries[0].description == "Refund: search failed at crashing-enrichment"


def test_malformed_crm_record_refunds_whole_import(
    client: TestClient,
    db_session: Session,
    account: Account,
    headers: dict[str, str],
    providers: Providers,
) -> None:
    adapters = {**providers.crm_adapters, CRMType.HUBSPOT: _MalformedCRM(CRMType.HUBSPOT)}
    broken = dataclasses.replace(providers, crm_adapters=adapters)
    app.dependency_overrides[get_providers] = lambda: broken

    response = client.post("/api/crm/import/contacts", json={"source": "hubspot"}, headers=headers)

    assert response.status_code == 502
    body = response.json()
    assert body["code"] == "provider_unavailable"
    assert "missing 'full_name'" in body["message"]
    assert body["details"]["refunded"] == 10
    assert body["details"]["credits_remaining"] == 100
    assert _balance(client, headers) == 100
    assert db_session.scalar(select(func.count()).select_from(CRMContact)) == 0
    assert ledger_store.verify_balance(db_session, account.id) is True


def test_failure_while_saving_export_results_is_refunded(
    client: TestClient,
    db_session: Session,
    account: Account,
    headers: dict[str, str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    contact = _create_contact(client, headers)

    def broken_apply(self, records, results, destination):  # type: ignore[no-untyped-def]
        raise RuntimeError("disk full")

    monkeypatch.setattr(ActionService, "_apply_export_results", broken_apply)

    response = client.post(
        "/api/crm/export/contacts",
        json={"destination": "salesforce", "contact_ids": [contact["id"]]},
        headers=headers,
    )

    assert response.status_code == 502
    assert response.json()["details"]["refunded"] == 5
    assert _balance(client, headers) == 100
    refreshed = client.get(f"/api/contacts/{contact['id']}", headers=headers).json()
    assert refreshed["salesforce_id"] is None
    entries = ledger_store.list_transactions(db_session, account.id)
    assert entries[0].description == "Refund: export failed at stub-salesforce"


def test_ledger_outage_returns_500_envelope(
    client: TestClient,
    headers: dict[str, str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def broken_debit(self, session, account_id, amount, description, *, operation=None):  # type: ignore[no-untyped-def]
        raise LedgerPersistenceError("failed to record debit")

    monkeypatch.setattr(LedgerStore, "record_debit", broken_debit)

    response = client.post(
        "/api/email/find",
        json={"first_name": "Jane", "last_name": "Doe", "domain_or_company": "acme.io"},
        headers=headers,
    )

    assert response.status_code == 500
    assert response.json()["code"] == "ledger_unavailable"


def test_billable_routes_require_authentication(client: TestClient) -> None:
    response = client.post("/api/enrich/search", json={"job_title": "CTO"})
    assert response.status_code == 401


def test_linkedin_connect_is_free(client: TestClient, headers: dict[str, str]) -> None:
    missing_url = _create_contact(client, headers)
    assert (
        client.post("/api/linkedin/connect", json={"contact_id": missing_url["id"]}, headers=headers).status_code
        == 422
    )

    contact = _create_contact(client, headers, linkedin_url="https://linkedin.com/in/sarah-johnson")
    response = client.post("/api/linkedin/connect", json={"contact_id": contact["id"]}, headers=headers)

    assert response.status_code == 200
    assert response.json()["contact"]["connection_sent"] is True
    assert response.json()["message"] == "Connection request sent to Sarah Johnson on LinkedIn"
    assert _balance(client, headers) == 100


def test_mark_message_sent_is_free(client: TestClient, headers: dict[str, str]) -> None:
    contact = _create_contact(client, headers, email="sarah@techcorp.example.com")

    response = client.post(
        "/api/ai-writer/send-email",
        json={"contact_id": contact["id"], "message": "Following up"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["contact"]["message_sent"] is True
    assert _balance(client, headers) == 100


def test_crm_connection_status(client: TestClient, headers: dict[str, str]) -> None:
    response = client.get("/api/crm/connection/status", headers=headers)

    assert response.status_code == 200
    connections = response.json()["connections"]
    assert [item["type"] for item in connections] == ["salesforce", "hubspot"]
    assert all(item["connected"] for item in connections)
