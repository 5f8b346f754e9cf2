from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from app.crm.models import CRMCompany, CRMContact


ModelT = TypeVar("ModelT", CRMCompany, CRMContact)


class OwnedRepository(Generic[ModelT]):
    """Row access limited to records owned by one account."""

    model: type[ModelT]

    def apply_scope_query(self, query: Select[Any], owner_id: uuid.UUID) -> Select[Any]:
        return query.where(self.model.account_id == owner_id)

    def get_owned(self, session: Session, owner_id: uuid.UUID, record_id: uuid.UUID) -> ModelT | None:
        stmt = self.apply_scope_query(select(self.model).where(self.model.id == record_id), owner_id)
        return session.scalar(stmt)

    def list_owned(self, session: Session, owner_id: uuid.UUID) -> list[ModelT]:
        stmt = self.apply_scope_query(select(self.model), owner_id).order_by(
            self.model.created_at.desc(),
            self.model.id.asc(),
        )
        return list(session.scalars(stmt).all())

    def get_many_owned(self, session: Session, owner_id: uuid.UUID, record_ids: Sequence[uuid.UUID]) -> list[ModelT]:
        """Return owned records in the order requested; unknown or foreign ids are skipped."""
        if not record_ids:
            return []
        stmt = self.apply_scope_query(select(self.model).where(self.model.id.in_(record_ids)), owner_id)
        found = {row.id: row for row in session.scalars(stmt).all()}
        ordered: list[ModelT] = []
        for record_id in dict.fromkeys(record_ids):
            row = found.get(record_id)
            if row is not None:
                ordered.append(row)
        return ordered


class CompanyRepository(OwnedRepository[CRMCompany]):
    model = CRMCompany


class ContactRepository(OwnedRepository[CRMContact]):
    model = CRMContact


company_repository = CompanyRepository()
contact_repository = ContactRepository()
