from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerEntry(Base):
    """One immutable balance change. Credits are positive, debits negative."""

    __tablename__ = "credit_ledger_entry"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("account.id", ondelete="RESTRICT"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    entry_type: Mapped[str] = mapped_column(String(16), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    operation: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("amount <> 0", name="ck_credit_ledger_entry_nonzero"),
        CheckConstraint(
            "(entry_type = 'credit' AND amount > 0) OR (entry_type = 'debit' AND amount < 0)",
            name="ck_credit_ledger_entry_signed",
        ),
        CheckConstraint("balance_after >= 0", name="ck_credit_ledger_entry_balance_nonnegative"),
        UniqueConstraint("account_id", "sequence", name="uq_credit_ledger_entry_sequence"),
        Index("ix_credit_ledger_entry_account_created", "account_id", "created_at"),
    )
