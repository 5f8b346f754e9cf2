from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from opentelemetry import trace
from sqlalchemy.orm import Session

from app import events
from app.metrics import observe_charge
from app.platform.ledger.service import InsufficientFunds, LedgerStore, ledger_store


logger = logging.getLogger("app.platform.ledger.metering")
tracer = trace.get_tracer("app.platform.ledger.metering")


@dataclass(frozen=True, slots=True)
class Charged:
    operation: str
    cost: int
    balance: int
    entry_id: uuid.UUID


@dataclass(frozen=True, slots=True)
class Denied:
    operation: str
    cost: int
    available: int


ChargeOutcome = Charged | Denied


@dataclass(slots=True)
class MeteringGate:
    """Single choke point for credit-consuming work: pay first, then act.

    ``charge`` never performs a separate balance read before debiting; the
    check and the debit are the store's one atomic step. A ``Denied`` result
    is an expected outcome and callers must skip the billable work.
    """

    store: LedgerStore = field(default_factory=lambda: ledger_store)

    def charge(
        self,
        session: Session,
        account_id: uuid.UUID,
        cost: int,
        description: str,
        *,
        operation: str,
    ) -> ChargeOutcome:
        with tracer.start_as_current_span("billing.charge") as span:
            span.set_attribute("account_id", str(account_id))
            span.set_attribute("operation", operation)
            span.set_attribute("cost", cost)
            outcome = self.store.record_debit(session, account_id, cost, description, operation=operation)
            span.set_attribute("outcome", "denied" if isinstance(outcome, InsufficientFunds) else "charged")

        if isinstance(outcome, InsufficientFunds):
            observe_charge(operation, "denied")
            logger.info(
                "credits.denied",
                extra={
                    "account_id": str(account_id),
                    "operation": operation,
                    "required": cost,
                    "available": outcome.balance,
                },
            )
            events.publish(
                "billing.credits.denied",
                account_id,
                {"operation": operation, "cost": cost, "available": outcome.balance},
            )
            return Denied(operation=operation, cost=cost, available=outcome.balance)

        observe_charge(operation, "charged", cost)
        logger.info(
            "credits.charged",
            extra={
                "account_id": str(account_id),
                "operation": operation,
                "cost": cost,
                "balance": outcome.balance,
                "entry_id": str(outcome.entry_id),
            },
        )
        events.publish(
            "billing.credits.charged",
            account_id,
            {
                "operation": operation,
                "cost": cost,
                "balance": outcome.balance,
                "entry_id": str(outcome.entry_id),
            },
        )
        return Charged(operation=operation, cost=cost, balance=outcome.balance, entry_id=outcome.entry_id)

    def refund(
        self,
        session: Session,
        account_id: uuid.UUID,
        amount: int,
        description: str,
        *,
        operation: str,
    ) -> int:
        balance = self.store.record_credit(
            session,
            account_id,
            amount,
            f"Refund: {description}",
            operation=operation,
        )
        observe_charge(operation, "refunded")
        logger.warning(
            "credits.refunded",
            extra={"account_id": str(account_id), "operation": operation, "cost": amount, "balance": balance},
        )
        events.publish(
            "billing.credits.refunded",
            account_id,
            {"operation": operation, "amount": amount, "balance": balance},
        )
        return balance


metering_gate = MeteringGate()
