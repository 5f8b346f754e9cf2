from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


LedgerEntryType = Literal["credit", "debit"]


class LedgerEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    account_id: UUID
    amount: int
    balance_after: int
    entry_type: LedgerEntryType
    description: str
    operation: str | None
    created_at: datetime


class CreditBalanceRead(BaseModel):
    credits: int


class CreditTransactionsRead(BaseModel):
    transactions: list[LedgerEntryRead] = Field(default_factory=list)


class CreditGrantRequest(BaseModel):
    amount: int = Field(gt=0)
    description: str = Field(min_length=1, max_length=500)


class CreditGrantRead(BaseModel):
    account_id: UUID
    credits: int
