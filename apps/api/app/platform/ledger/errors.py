from __future__ import annotations

import uuid


class LedgerError(Exception):
    """Base error for credit ledger failures."""


class AccountNotFoundError(LedgerError, LookupError):
    def __init__(self, account_id: uuid.UUID) -> None:
        self.account_id = account_id
        super().__init__(f"account not found: {account_id}")


class InvalidAmountError(LedgerError, ValueError):
    """Raised for non-positive credit or debit amounts."""

    def __init__(self, amount: int) -> None:
        self.amount = amount
        super().__init__(f"amount must be a positive integer, got {amount!r}")


class LedgerPersistenceError(LedgerError):
    """Raised when a ledger mutation could not be committed; nothing was applied."""
