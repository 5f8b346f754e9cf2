from __future__ import annotations

import logging
import threading
import uuid
import weakref
from dataclasses import dataclass

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.accounts.models import Account
from app.metrics import observe_ledger_failure
from app.platform.ledger.errors import AccountNotFoundError, InvalidAmountError, LedgerPersistenceError
from app.platform.ledger.models import LedgerEntry


logger = logging.getLogger("app.platform.ledger")


class _AccountLocks:
    """Per-account mutexes serializing balance mutations inside one process.

    Locks are held weakly: an entry lives only while some request holds the
    lock, so the map tracks in-flight accounts rather than every account seen.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[uuid.UUID, threading.Lock] = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def for_account(self, account_id: uuid.UUID) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[account_id] = lock
            return lock


_account_locks = _AccountLocks()


@dataclass(frozen=True, slots=True)
class Debited:
    balance: int
    entry_id: uuid.UUID


@dataclass(frozen=True, slots=True)
class InsufficientFunds:
    balance: int
    required: int


DebitOutcome = Debited | InsufficientFunds


def _require_positive(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(amount)


@dataclass(slots=True)
class LedgerStore:
    """Owns every account balance and the append-only entry log behind it.

    Each mutation is one transaction: a conditional ``UPDATE ... RETURNING`` on
    the balance plus the matching entry insert, committed together while the
    account's lock is held. The session must not carry unrelated pending
    changes when a mutation is requested; a denied debit rolls it back.
    """

    def get_balance(self, session: Session, account_id: uuid.UUID) -> int:
        balance = session.scalar(select(Account.credits).where(Account.id == account_id))
        if balance is None:
            raise AccountNotFoundError(account_id)
        return balance

    def record_credit(
        self,
        session: Session,
        account_id: uuid.UUID,
        amount: int,
        description: str,
        *,
        operation: str | None = None,
    ) -> int:
        _require_positive(amount)
        with _account_locks.for_account(account_id):
            try:
                new_balance = session.execute(
                    update(Account)
                    .where(Account.id == account_id)
                    .values(credits=Account.credits + amount)
                    .returning(Account.credits)
                    .execution_options(synchronize_session=False)
                ).scalar_one_or_none()
                if new_balance is None:
                    session.rollback()
                    raise AccountNotFoundError(account_id)

                entry_id = self._append(session, account_id, amount, new_balance, description, operation).id
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                observe_ledger_failure("credit")
                logger.error(
                    "ledger.credit_failed",
                    exc_info=True,
                    extra={"account_id": str(account_id), "operation": operation, "error": str(exc)},
                )
                raise LedgerPersistenceError("failed to record credit") from exc

        logger.info(
            "ledger.credited",
            extra={
                "account_id": str(account_id),
                "operation": operation,
                "cost": amount,
                "balance": new_balance,
                "entry_id": str(entry_id),
            },
        )
        return new_balance

    def record_debit(
        self,
        session: Session,
        account_id: uuid.UUID,
        amount: int,
        description: str,
        *,
        operation: str | None = None,
    ) -> DebitOutcome:
        _require_positive(amount)
        with _account_locks.for_account(account_id):
            try:
                new_balance = session.execute(
                    update(Account)
                    .where(Account.id == account_id, Account.credits >= amount)
                    .values(credits=Account.credits - amount)
                    .returning(Account.credits)
                    .execution_options(synchronize_session=False)
                ).scalar_one_or_none()
                if new_balance is None:
                    current = session.scalar(select(Account.credits).where(Account.id == account_id))
                    session.rollback()
                    if current is None:
                        raise AccountNotFoundError(account_id)
                    return InsufficientFunds(balance=current, required=amount)

                entry_id = self._append(session, account_id, -amount, new_balance, description, operation).id
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                observe_ledger_failure("debit")
                logger.error(
                    "ledger.debit_failed",
                    exc_info=True,
                    extra={"account_id": str(account_id), "operation": operation, "error": str(exc)},
                )
                raise LedgerPersistenceError("failed to record debit") from exc

        return Debited(balance=new_balance, entry_id=entry_id)

    def list_transactions(self, session: Session, account_id: uuid.UUID) -> list[LedgerEntry]:
        self.get_balance(session, account_id)
        rows = session.scalars(
            select(LedgerEntry)
            .where(LedgerEntry.account_id == account_id)
            .order_by(LedgerEntry.sequence.desc())
        ).all()
        return list(rows)

    def verify_balance(self, session: Session, account_id: uuid.UUID) -> bool:
        balance = self.get_balance(session, account_id)
        total = session.scalar(
            select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(LedgerEntry.account_id == account_id)
        )
        return int(total) == balance

    def _append(
        self,
        session: Session,
        account_id: uuid.UUID,
        signed_amount: int,
        balance_after: int,
        description: str,
        operation: str | None,
    ) -> LedgerEntry:
        last_sequence = session.scalar(
            select(func.coalesce(func.max(LedgerEntry.sequence), 0)).where(LedgerEntry.account_id == account_id)
        )
        entry = LedgerEntry(
            account_id=account_id,
            sequence=int(last_sequence) + 1,
            amount=signed_amount,
            balance_after=balance_after,
            entry_type="credit" if signed_amount > 0 else "debit",
            description=description,
            operation=operation,
        )
        session.add(entry)
        session.flush()
        return entry


ledger_store = LedgerStore()
