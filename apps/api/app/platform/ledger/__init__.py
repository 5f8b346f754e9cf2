from app.platform.ledger.api import admin_router, router
from app.platform.ledger.errors import (
    AccountNotFoundError,
    InvalidAmountError,
    LedgerError,
    LedgerPersistenceError,
)
from app.platform.ledger.metering import Charged, Denied, MeteringGate, metering_gate
from app.platform.ledger.models import LedgerEntry
from app.platform.ledger.service import Debited, InsufficientFunds, LedgerStore, ledger_store

__all__ = [
    "router",
    "admin_router",
    "LedgerEntry",
    "LedgerError",
    "AccountNotFoundError",
    "InvalidAmountError",
    "LedgerPersistenceError",
    "LedgerStore",
    "ledger_store",
    "Debited",
    "InsufficientFunds",
    "MeteringGate",
    "metering_gate",
    "Charged",
    "Denied",
]
