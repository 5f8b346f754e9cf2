from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app import audit
from app.accounts.models import Account
from app.actions.pricing import (
    BillableOperation,
    UnknownEnrichmentCategoryError,
    enrichment_cost,
    normalize_categories,
    operation_cost,
)
from app.actions.schemas import (
    CRMConnectionRead,
    CRMConnectionsRead,
    CRMExportCompaniesRequest,
    CRMExportContactsRequest,
    CRMExportResponse,
    CRMImportRequest,
    CRMImportResponse,
    ContactMessageRequest,
    EnrichContactRequest,
    EnrichContactResponse,
    ExportResultRead,
    FindEmailRequest,
    FindEmailResponse,
    FreeformMessageRequest,
    GeneratedMessageResponse,
    LinkedInConnectRequest,
    MarkMessageSentRequest,
    OutreachResponse,
    RevealEmailRequest,
    RevealEmailResponse,
    SearchRequest,
    SearchResponse,
    SendEmailRequest,
    SendEmailResponse,
    VerifyEmailRequest,
    VerifyEmailResponse,
)
from app.crm.models import CRMCompany, CRMContact
from app.crm.repositories import company_repository, contact_repository
from app.crm.schemas import ContactRead
from app.crm.service import ContactService, contact_service
from app.integrations.crm_sync import CRMType
from app.integrations.email_sender import OutboundEmail
from app.integrations.enrichment import PersonRecord, SearchFilters, domain_from_website
from app.integrations.errors import ProviderError
from app.integrations.instrumentation import provider_call
from app.integrations.messages import MessageRequest
from app.integrations.registry import Providers
from app.platform.ledger.metering import Charged, Denied, MeteringGate, metering_gate


logger = logging.getLogger("app.actions")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _person_from_contact(contact: CRMContact) -> PersonRecord:
    company_name = contact.company.name if contact.company is not None else contact.company_name
    return PersonRecord(
        full_name=contact.full_name,
        job_title=contact.job_title,
        company_name=company_name,
        industry=contact.industry,
        location=contact.location,
        email=contact.email,
        phone=contact.phone,
        linkedin_url=contact.linkedin_url,
    )


@dataclass(slots=True)
class ActionService:
    """Billable and outreach actions on behalf of one account.

    Every billable method validates its input and resolves the records it
    needs before charging, so a rejected request never costs credits. The
    external effect runs only after the gate reports ``Charged``; any failure
    after that point is refunded and surfaced as 502.
    """

    gate: MeteringGate = field(default_factory=lambda: metering_gate)
    contacts: ContactService = field(default_factory=lambda: contact_service)

    def search(self, session: Session, account: Account, providers: Providers, dto: SearchRequest) -> SearchResponse:
        filters = SearchFilters(
            job_title=dto.job_title,
            company=dto.company,
            industry=dto.industry,
            location=dto.location,
        )
        charged = self._charge(
            session,
            account,
            BillableOperation.SEARCH,
            operation_cost(BillableOperation.SEARCH),
            f"Contact search: {filters.describe()}",
        )
        provider = providers.enrichment.name
        saved: list[CRMContact] = []
        with self._settle(session, account.id, charged, provider):
            with provider_call(provider, "enrichment.search"):
                people = providers.enrichment.search_people(filters)
            for person in people:
                contact = CRMContact(
                    account_id=account.id,
                    full_name=person.full_name,
                    job_title=person.job_title,
                    company_name=person.company_name,
                    industry=person.industry,
                    location=person.location,
                    email=person.email,
                    phone=person.phone,
                    linkedin_url=person.linkedin_url,
                    is_enriched=person.email is not None,
                    enrichment_source=provider,
                    tags=[],
                )
                session.add(contact)
                saved.append(contact)
            session.commit()

        return SearchResponse(
            results=[ContactRead.model_validate(item) for item in saved],
            credits_used=charged.cost,
            credits_remaining=charged.balance,
        )

    def reveal_email(
        self,
        session: Session,
        account: Account,
        providers: Providers,
        dto: RevealEmailRequest,
    ) -> RevealEmailResponse:
        contact = self.contacts.get_owned_or_404(session, account.id, dto.contact_id)
        person = _person_from_contact(contact)
        domain = domain_from_website(contact.company.website) if contact.company is not None else None

        charged = self._charge(
            session,
            account,
            BillableOperation.REVEAL_EMAIL,
            operation_cost(BillableOperation.REVEAL_EMAIL),
            f"Email reveal for contact: {person.full_name}",
        )
        before = self._contact_snapshot(contact)
        provider = providers.enrichment.name
        with self._settle(session, account.id, charged, provider):
            with provider_call(provider, "enrichment.reveal_email"):
                email = providers.enrichment.reveal_email(person, domain)
            contact.email = contact.email or email
            contact.is_enriched = True
            session.commit()
        self._audit_contact(account, contact, "reveal_email", before)

        return RevealEmailResponse(
            email=contact.email,
            contact=ContactRead.model_validate(contact),
            credits_used=charged.cost,
            credits_remaining=charged.balance,
        )

    def enrich_contact(
        self,
        session: Session,
        account: Account,
        providers: Providers,
        dto: EnrichContactRequest,
    ) -> EnrichContactResponse:
        try:
            cost = enrichment_cost(dto.options)
        except UnknownEnrichmentCategoryError as exc:
            raise HTTPException(
                status_code=422,
                detail={"message": str(exc), "unknown_categories": exc.categories},
            )
        categories = normalize_categories(dto.options)
        contact = self.contacts.get_owned_or_404(session, account.id, dto.contact_id)
        person = _person_from_contact(contact)

        charged = self._charge(
            session,
            account,
            BillableOperation.ENRICH_CONTACT,
            cost,
            f"Contact enrichment for {person.full_name}",
        )
        before = self._contact_snapshot(contact)
        provider = providers.enrichment.name
        with self._settle(session, account.id, charged, provider):
            with provider_call(provider, "enrichment.enrich"):
                result = providers.enrichment.enrich(person, categories)
            contact.email = contact.email or result.email
            contact.phone = contact.phone or result.phone
            contact.linkedin_url = contact.linkedin_url or result.linkedin_url
            contact.company_name = contact.company_name or result.company_name
            contact.industry = contact.industry or result.industry
            contact.email_verified = contact.email_verified or result.email_verified
            contact.is_enriched = True
            contact.enrichment_source = provider
            contact.enrichment_date = utcnow()
            session.commit()
        self._audit_contact(account, contact, "enrich", before)

        return EnrichContactResponse(
            message=f"Contact data for {contact.full_name} has been enriched",
            contact=ContactRead.model_validate(contact),
            credits_used=charged.cost,
            credits_remaining=charged.balance,
        )

    def generate_for_contact(
        self,
        session: Session,
        account: Account,
        providers: Providers,
        dto: ContactMessageRequest,
    ) -> GeneratedMessageResponse:
        contact = self.contacts.get_owned_or_404(session, account.id, dto.contact_id)
        person = _person_from_contact(contact)
        request = MessageRequest(
            contact_full_name=person.full_name,
            contact_job_title=person.job_title,
            contact_company_name=person.company_name,
            user_full_name=account.full_name,
            user_company_name=account.company_name,
            user_job_title=account.role,
            purpose=dto.purpose,
            tone=dto.tone,
            custom_prompt=dto.custom_prompt,
        )
        return self._generate(session, account, providers, request, f"AI message generation for contact: {person.full_name}")

    def generate_freeform(
        self,
        session: Session,
        account: Account,
        providers: Providers,
        dto: FreeformMessageRequest,
    ) -> GeneratedMessageResponse:
        request = MessageRequest(
            contact_full_name=dto.contact_full_name,
            contact_job_title=dto.contact_job_title,
            contact_company_name=dto.contact_company_name,
            user_full_name=dto.user_full_name,
            user_company_name=dto.user_company_name,
            user_job_title=dto.user_job_title,
            purpose=dto.purpose,
            tone=dto.tone,
        )
        return self._generate(session, account, providers, request, "AI message generation for LinkedIn")

    def find_email(
        self,
        session: Session,
        account: Account,
        providers: Providers,
        dto: FindEmailRequest,
    ) -> FindEmailResponse:
        charged = self._charge(
            session,
            account,
            BillableOperation.FIND_EMAIL,
            operation_cost(BillableOperation.FIND_EMAIL),
            f"Email finder for {dto.first_name} {dto.last_name}",
        )
        provider = providers.email_finder.name
        with self._settle(session, account.id, charged, provider), provider_call(provider, "email.find"):
            email = providers.email_finder.find_email(dto.first_name, dto.last_name, dto.domain_or_company)

        return FindEmailResponse(
            found=email is not None,
            email=email,
            credits_used=charged.cost,
            credits_remaining=charged.balance,
        )

    def verify_email(
        self,
        session: Session,
        account: Account,
        providers: Providers,
        dto: VerifyEmailRequest,
    ) -> VerifyEmailResponse:
        email = dto.email.strip()
        charged = self._charge(
            session,
            account,
            BillableOperation.VERIFY_EMAIL,
            operation_cost(BillableOperation.VERIFY_EMAIL),
            f"Email verification for {email}",
        )
        provider = providers.email_finder.name
        with self._settle(session, account.id, charged, provider), provider_call(provider, "email.verify"):
            is_valid = providers.email_finder.verify_email(email)

        return VerifyEmailResponse(
            is_valid=is_valid,
            credits_used=charged.cost,
            credits_remaining=charged.balance,
        )

    def send_email(
        self,
        session: Session,
        account: Account,
        providers: Providers,
        dto: SendEmailRequest,
    ) -> SendEmailResponse:
        contact = self.contacts.get_owned_or_404(session, account.id, dto.contact_id)
        if not contact.email:
            raise HTTPException(status_code=422, detail="Contact has no email address")
        outbound = OutboundEmail(
            from_name=account.full_name,
            from_email=account.email,
            to_name=contact.full_name,
            to_email=contact.email,
            subject=dto.subject,
            body=dto.message,
        )

        charged = self._charge(
            session,
            account,
            BillableOperation.SEND_EMAIL,
            operation_cost(BillableOperation.SEND_EMAIL),
            f"Email sent to {outbound.to_name} ({outbound.to_email})",
        )
        before = self._contact_snapshot(contact)
        provider = providers.email_sender.name
        with self._settle(session, account.id, charged, provider):
            with provider_call(provider, "email.send"):
                message_id = providers.email_sender.send(outbound)
            now = utcnow()
            contact.email_sent = True
            contact.last_contacted = now
            contact.last_interaction_date = now
            session.commit()
        self._audit_contact(account, contact, "send_email", before)

        return SendEmailResponse(
            message=f"Email sent to {contact.full_name} at {contact.email}",
            message_id=message_id,
            contact=ContactRead.model_validate(contact),
            credits_used=charged.cost,
            credits_remaining=charged.balance,
        )

    def import_contacts(
        self,
        session: Session,
        account: Account,
        providers: Providers,
        dto: CRMImportRequest,
    ) -> CRMImportResponse:
        adapter = providers.crm(dto.source)
        charged = self._charge(
            session,
            account,
            BillableOperation.IMPORT,
            operation_cost(BillableOperation.IMPORT),
            f"Import contacts from {dto.source.value}",
        )
        with self._settle(session, account.id, charged, adapter.name):
            with provider_call(adapter.name, "crm.import_contacts"):
                records = adapter.import_contacts()
            synced_at = utcnow()
            session.add_all(
                self._imported_contact(account, adapter.name, dto.source, record, synced_at) for record in records
            )
            session.commit()
        logger.info(
            "crm.contacts_imported",
            extra={"account_id": str(account.id), "provider": adapter.name, "operation": "import"},
        )

        return CRMImportResponse(
            message=f"Successfully imported {len(records)} contacts from {dto.source.value}",
            count=len(records),
            credits_used=charged.cost,
            credits_remaining=charged.balance,
        )

    def import_companies(
        self,
        session: Session,
        account: Account,
        providers: Providers,
        dto: CRMImportRequest,
    ) -> CRMImportResponse:
        adapter = providers.crm(dto.source)
        charged = self._charge(
            session,
            account,
            BillableOperation.IMPORT,
            operation_cost(BillableOperation.IMPORT),
            f"Import companies from {dto.source.value}",
        )
        with self._settle(session, account.id, charged, adapter.name):
            with provider_call(adapter.name, "crm.import_companies"):
                records = adapter.import_companies()
            synced_at = utcnow()
            session.add_all(
                self._imported_company(account, adapter.name, dto.source, record, synced_at) for record in records
            )
            session.commit()

        return CRMImportResponse(
            message=f"Successfully imported {len(records)} companies from {dto.source.value}",
            count=len(records),
            credits_used=charged.cost,
            credits_remaining=charged.balance,
        )

    def export_contacts(
        self,
        session: Session,
        account: Account,
        providers: Providers,
        dto: CRMExportContactsRequest,
    ) -> CRMExportResponse:
        contacts = contact_repository.get_many_owned(session, account.id, dto.contact_ids)
        if not contacts:
            raise HTTPException(
                status_code=422,
                detail="No valid contacts found to export",
            )
        records = [
            {
                "id": item.id,
                "full_name": item.full_name,
                "email": item.email,
                "phone": item.phone,
                "job_title": item.job_title,
                "company_name": item.company_name,
                "external_id": self._existing_external_id(item, dto.destination),
            }
            for item in contacts
        ]
        adapter = providers.crm(dto.destination)

        charged = self._charge(
            session,
            account,
            BillableOperation.EXPORT,
            operation_cost(BillableOperation.EXPORT),
            f"Export contacts to {dto.destination.value}",
        )
        with self._settle(session, account.id, charged, adapter.name):
            with provider_call(adapter.name, "crm.export_contacts"):
                results = adapter.export_contacts(records)
            self._apply_export_results(contacts, results, dto.destination)
            session.commit()
        return self._export_response(results, len(contacts), "contacts", dto.destination, charged)

    def export_companies(
        self,
        session: Session,
        account: Account,
        providers: Providers,
        dto: CRMExportCompaniesRequest,
    ) -> CRMExportResponse:
        companies = company_repository.get_many_owned(session, account.id, dto.company_ids)
        if not companies:
            raise HTTPException(
                status_code=422,
                detail="No valid companies found to export",
            )
        records = [
            {
                "id": item.id,
                "name": item.name,
                "industry": item.industry,
                "website": item.website,
                "location": item.location,
                "external_id": self._existing_external_id(item, dto.destination),
            }
            for item in companies
        ]
        adapter = providers.crm(dto.destination)

        charged = self._charge(
            session,
            account,
            BillableOperation.EXPORT,
            operation_cost(BillableOperation.EXPORT),
            f"Export companies to {dto.destination.value}",
        )
        with self._settle(session, account.id, charged, adapter.name):
            with provider_call(adapter.name, "crm.export_companies"):
                results = adapter.export_companies(records)
            self._apply_export_results(companies, results, dto.destination)
            session.commit()
        return self._export_response(results, len(companies), "companies", dto.destination, charged)

    def mark_message_sent(self, session: Session, account: Account, dto: MarkMessageSentRequest) -> OutreachResponse:
        contact = self.contacts.get_owned_or_404(session, account.id, dto.contact_id)
        if not contact.email:
            raise HTTPException(status_code=422, detail="Contact has no email address")

        before = self._contact_snapshot(contact)
        now = utcnow()
        contact.message_sent = True
        contact.message_sent_date = now
        contact.last_contacted = now
        session.commit()
        self._audit_contact(account, contact, "message_sent", before)
        return OutreachResponse(
            message=f"Email sent to {contact.full_name} at {contact.email}",
            contact=ContactRead.model_validate(contact),
        )

    def linkedin_connect(self, session: Session, account: Account, dto: LinkedInConnectRequest) -> OutreachResponse:
        contact = self.contacts.get_owned_or_404(session, account.id, dto.contact_id)
        if not contact.linkedin_url:
            raise HTTPException(
                status_code=422,
                detail="Contact has no LinkedIn profile URL",
            )

        before = self._contact_snapshot(contact)
        contact.connection_sent = True
        contact.connection_sent_date = utcnow()
        session.commit()
        self._audit_contact(account, contact, "connection_sent", before)
        return OutreachResponse(
            message=f"Connection request sent to {contact.full_name} on LinkedIn",
            contact=ContactRead.model_validate(contact),
        )

    def crm_connection_status(self, providers: Providers) -> CRMConnectionsRead:
        connections: list[CRMConnectionRead] = []
        for crm_type in CRMType:
            adapter = providers.crm(crm_type)
            try:
                with provider_call(adapter.name, "crm.test_connection"):
                    result = adapter.test_connection()
                connections.append(
                    CRMConnectionRead(type=crm_type, connected=result.connected, message=result.message)
                )
            except ProviderError as exc:
                connections.append(
                    CRMConnectionRead(
                        type=crm_type,
                        connected=False,
                        message=f"{crm_type.label} connection error: {exc}",
                    )
                )
        return CRMConnectionsRead(connections=connections)

    def _generate(
        self,
        session: Session,
        account: Account,
        providers: Providers,
        request: MessageRequest,
        description: str,
    ) -> GeneratedMessageResponse:
        charged = self._charge(
            session,
            account,
            BillableOperation.GENERATE_MESSAGE,
            operation_cost(BillableOperation.GENERATE_MESSAGE),
            description,
        )
        generator = providers.message_generator
        with self._settle(session, account.id, charged, generator.name), provider_call(generator.name, "message.generate"):
            message = generator.generate(request)
        return GeneratedMessageResponse(
            message=message,
            credits_used=charged.cost,
            credits_remaining=charged.balance,
        )

    def _charge(
        self,
        session: Session,
        account: Account,
        operation: BillableOperation,
        cost: int,
        description: str,
    ) -> Charged:
        outcome = self.gate.charge(session, account.id, cost, description, operation=operation.value)
        if isinstance(outcome, Denied):
            raise HTTPException(
                status_code=status.HTTP_402_PAYMENT_REQUIRED,
                detail={
                    "message": "Insufficient credits",
                    "operation": outcome.operation,
                    "required": outcome.cost,
                    "available": outcome.available,
                },
            )
        return outcome

    @contextmanager
    def _settle(
        self,
        session: Session,
        account_id: uuid.UUID,
        charged: Charged,
        provider: str,
    ) -> Iterator[None]:
        """Wraps everything that follows a successful charge.

        Any failure inside the block (the provider call, mapping its data, or
        the commit) rolls back the pending writes and appends a compensating
        credit, so an action that did not happen is never paid for.
        """
        try:
            yield
        except Exception as exc:
            session.rollback()
            balance = self.gate.refund(
                session,
                account_id,
                charged.cost,
                f"{charged.operation} failed at {provider}",
                operation=charged.operation,
            )
            if isinstance(exc, HTTPException):
                raise
            if isinstance(exc, ProviderError):
                message = f"Provider request failed: {exc}"
            else:
                logger.error(
                    "action.failed_after_charge",
                    exc_info=True,
                    extra={"account_id": str(account_id), "operation": charged.operation, "provider": provider},
                )
                message = f"{charged.operation} could not be completed"
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail={
                    "message": message,
                    "provider": provider,
                    "refunded": charged.cost,
                    "credits_remaining": balance,
                },
            ) from exc

    def _apply_export_results(self, records: list[Any], results: list[Any], destination: CRMType) -> None:
        by_id = {result.record_id: result for result in results}
        synced_at = utcnow()
        for record in records:
            result = by_id.get(record.id)
            if result is None or not result.success or not result.external_id:
                continue
            for field_name, value in self._external_id_fields(destination, result.external_id).items():
                setattr(record, field_name, value)
            record.crm_source = destination.value
            record.crm_last_synced = synced_at

    @staticmethod
    def _export_response(
        results: list[Any],
        expected: int,
        noun: str,
        destination: CRMType,
        charged: Charged,
    ) -> CRMExportResponse:
        success = len(results) == expected and all(item.success for item in results)
        if success:
            message = f"Successfully exported {expected} {noun} to {destination.value}"
        else:
            message = f"Failed to export some or all {noun} to {destination.value}"
        return CRMExportResponse(
            success=success,
            message=message,
            results=[
                ExportResultRead(
                    record_id=item.record_id,
                    success=item.success,
                    external_id=item.external_id,
                    error=item.error,
                )
                for item in results
            ],
            credits_used=charged.cost,
            credits_remaining=charged.balance,
        )

    @staticmethod
    def _required_text(record: dict[str, Any], key: str, provider: str) -> str:
        value = record.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ProviderError(provider, f"imported record is missing '{key}'")
        return value.strip()

    def _imported_contact(
        self,
        account: Account,
        provider: str,
        source: CRMType,
        record: dict[str, Any],
        synced_at: datetime,
    ) -> CRMContact:
        return CRMContact(
            account_id=account.id,
            full_name=self._required_text(record, "full_name", provider),
            email=record.get("email"),
            phone=record.get("phone"),
            job_title=record.get("job_title"),
            company_name=record.get("company_name"),
            industry=record.get("industry"),
            location=record.get("location"),
            tags=[f"{source.label} Import"],
            crm_source=source.value,
            crm_last_synced=synced_at,
            imported_from_crm=True,
            **self._external_id_fields(source, record.get("external_id")),
        )

    def _imported_company(
        self,
        account: Account,
        provider: str,
        source: CRMType,
        record: dict[str, Any],
        synced_at: datetime,
    ) -> CRMCompany:
        return CRMCompany(
            account_id=account.id,
            name=self._required_text(record, "name", provider),
            industry=record.get("industry"),
            website=record.get("website"),
            size=record.get("size"),
            location=record.get("location"),
            description=record.get("description"),
            crm_source=source.value,
            crm_last_synced=synced_at,
            imported_from_crm=True,
            **self._external_id_fields(source, record.get("external_id")),
        )

    @staticmethod
    def _external_id_fields(crm_type: CRMType, external_id: str | None) -> dict[str, str | None]:
        if crm_type is CRMType.SALESFORCE:
            return {"salesforce_id": external_id}
        return {"hubspot_id": external_id}

    @staticmethod
    def _existing_external_id(record: CRMContact | CRMCompany, crm_type: CRMType) -> str | None:
        return record.salesforce_id if crm_type is CRMType.SALESFORCE else record.hubspot_id

    @staticmethod
    def _contact_snapshot(contact: CRMContact) -> dict[str, Any]:
        return ContactRead.model_validate(contact).model_dump(mode="json")

    @staticmethod
    def _audit_contact(account: Account, contact: CRMContact, action: str, before: dict[str, Any]) -> None:
        audit.record(
            actor_user_id=str(account.id),
            entity_type="crm.contact",
            entity_id=str(contact.id),
            action=action,
            before=before,
            after=ContactRead.model_validate(contact).model_dump(mode="json"),
        )


action_service = ActionService()
