from __future__ import annotations

import uuid
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app import audit, events
from app.crm.models import CRMCompany, CRMContact
from app.crm.repositories import (
    CompanyRepository,
    ContactRepository,
    company_repository,
    contact_repository,
)
from app.crm.schemas import (
    CompanyCreate,
    CompanyRead,
    CompanyUpdate,
    ContactCreate,
    ContactRead,
    ContactUpdate,
)


class CompanyService:
    entity_type = "crm.company"

    def __init__(self, repository: CompanyRepository = company_repository) -> None:
        self.repository = repository

    def create_company(self, session: Session, owner_id: uuid.UUID, dto: CompanyCreate) -> CompanyRead:
        company = CRMCompany(account_id=owner_id, **dto.model_dump())
        company.name = company.name.strip()
        session.add(company)
        session.commit()
        session.refresh(company)
        read_model = CompanyRead.model_validate(company)

        audit.record(
            actor_user_id=str(owner_id),
            entity_type=self.entity_type,
            entity_id=str(company.id),
            action="create",
            before=None,
            after=read_model.model_dump(mode="json"),
        )
        events.publish("crm.company.created", owner_id, {"company_id": str(company.id)})
        return read_model

    def list_companies(self, session: Session, owner_id: uuid.UUID) -> list[CompanyRead]:
        return [CompanyRead.model_validate(item) for item in self.repository.list_owned(session, owner_id)]

    def get_company(self, session: Session, owner_id: uuid.UUID, company_id: uuid.UUID) -> CompanyRead:
        return CompanyRead.model_validate(self.get_owned_or_404(session, owner_id, company_id))

    def update_company(
        self,
        session: Session,
        owner_id: uuid.UUID,
        company_id: uuid.UUID,
        dto: CompanyUpdate,
    ) -> CompanyRead:
        company = self.get_owned_or_404(session, owner_id, company_id)
        changes = dto.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"] is None:
            raise HTTPException(status_code=422, detail="name cannot be null")

        before = CompanyRead.model_validate(company).model_dump(mode="json")
        for field_name, value in changes.items():
            setattr(company, field_name, value)
        session.commit()
        session.refresh(company)
        after_model = CompanyRead.model_validate(company)

        audit.record(
            actor_user_id=str(owner_id),
            entity_type=self.entity_type,
            entity_id=str(company.id),
            action="update",
            before=before,
            after=after_model.model_dump(mode="json"),
        )
        events.publish("crm.company.updated", owner_id, {"company_id": str(company.id), "fields": sorted(changes)})
        return after_model

    def delete_company(self, session: Session, owner_id: uuid.UUID, company_id: uuid.UUID) -> None:
        company = self.get_owned_or_404(session, owner_id, company_id)
        before = CompanyRead.model_validate(company).model_dump(mode="json")
        for contact in list(company.contacts):
            contact.company_id = None
        session.delete(company)
        session.commit()

        audit.record(
            actor_user_id=str(owner_id),
            entity_type=self.entity_type,
            entity_id=str(company_id),
            action="delete",
            before=before,
            after=None,
        )
        events.publish("crm.company.deleted", owner_id, {"company_id": str(company_id)})

    def get_owned_or_404(self, session: Session, owner_id: uuid.UUID, company_id: uuid.UUID) -> CRMCompany:
        company = self.repository.get_owned(session, owner_id, company_id)
        if company is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")
        return company


class ContactService:
    entity_type = "crm.contact"

    def __init__(
        self,
        repository: ContactRepository = contact_repository,
        companies: CompanyRepository = company_repository,
    ) -> None:
        self.repository = repository
        self.companies = companies

    def create_contact(self, session: Session, owner_id: uuid.UUID, dto: ContactCreate) -> ContactRead:
        payload = dto.model_dump()
        payload["email"] = str(dto.email) if dto.email is not None else None
        payload["full_name"] = dto.full_name.strip()
        self._resolve_company(session, owner_id, payload)

        contact = CRMContact(account_id=owner_id, **payload)
        session.add(contact)
        session.commit()
        session.refresh(contact)
        read_model = ContactRead.model_validate(contact)

        audit.record(
            actor_user_id=str(owner_id),
            entity_type=self.entity_type,
            entity_id=str(contact.id),
            action="create",
            before=None,
            after=read_model.model_dump(mode="json"),
        )
        events.publish("crm.contact.created", owner_id, {"contact_id": str(contact.id)})
        return read_model

    def list_contacts(self, session: Session, owner_id: uuid.UUID) -> list[ContactRead]:
        return [ContactRead.model_validate(item) for item in self.repository.list_owned(session, owner_id)]

    def get_contact(self, session: Session, owner_id: uuid.UUID, contact_id: uuid.UUID) -> ContactRead:
        return ContactRead.model_validate(self.get_owned_or_404(session, owner_id, contact_id))

    def update_contact(
        self,
        session: Session,
        owner_id: uuid.UUID,
        contact_id: uuid.UUID,
        dto: ContactUpdate,
    ) -> ContactRead:
        contact = self.get_owned_or_404(session, owner_id, contact_id)
        changes = dto.model_dump(exclude_unset=True)
        if "full_name" in changes and changes["full_name"] is None:
            raise HTTPException(status_code=422, detail="full_name cannot be null")
        if changes.get("email") is not None:
            changes["email"] = str(changes["email"])
        if "tags" in changes and changes["tags"] is None:
            changes["tags"] = []
        self._resolve_company(session, owner_id, changes)

        before = ContactRead.model_validate(contact).model_dump(mode="json")
        for field_name, value in changes.items():
            setattr(contact, field_name, value)
        session.commit()
        session.refresh(contact)
        after_model = ContactRead.model_validate(contact)

        audit.record(
            actor_user_id=str(owner_id),
            entity_type=self.entity_type,
            entity_id=str(contact.id),
            action="update",
            before=before,
            after=after_model.model_dump(mode="json"),
        )
        events.publish("crm.contact.updated", owner_id, {"contact_id": str(contact.id), "fields": sorted(changes)})
        return after_model

    def delete_contact(self, session: Session, owner_id: uuid.UUID, contact_id: uuid.UUID) -> None:
        contact = self.get_owned_or_404(session, owner_id, contact_id)
        before = ContactRead.model_validate(contact).model_dump(mode="json")
        session.delete(contact)
        session.commit()

        audit.record(
            actor_user_id=str(owner_id),
            entity_type=self.entity_type,
            entity_id=str(contact_id),
            action="delete",
            before=before,
            after=None,
        )
        events.publish("crm.contact.deleted", owner_id, {"contact_id": str(contact_id)})

    def get_owned_or_404(self, session: Session, owner_id: uuid.UUID, contact_id: uuid.UUID) -> CRMContact:
        contact = self.repository.get_owned(session, owner_id, contact_id)
        if contact is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
        return contact

    def _resolve_company(self, session: Session, owner_id: uuid.UUID, payload: dict[str, Any]) -> None:
        company_id = payload.get("company_id")
        if company_id is None:
            return
        company = self.companies.get_owned(session, owner_id, company_id)
        if company is None:
            raise HTTPException(status_code=422, detail="Company not found")
        if not payload.get("company_name"):
            payload["company_name"] = company.name


company_service = CompanyService()
contact_service = ContactService()
