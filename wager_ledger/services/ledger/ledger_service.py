"""
Balance ledger: the only code path that changes a user's sweeps-coin balance.

Every movement is a balance update plus one appended ``transactions`` row,
written in the same unit of work. Feature services (poker, sports) pass their
own session through ``db=`` so the wager entity, the balance change and the
record commit or roll back together.

Movement kinds:
- bet:        debit, refused when the balance would go below zero
- win:        credit, creates the balance row on first use
- adjustment: operator grant (positive) or claw-back (negative)
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, sessionmaker

from wager_ledger.core.database import session_scope
from wager_ledger.core.exceptions import InsufficientFunds, InvalidAmount
from wager_ledger.core.locks import KeyedLocks, balance_key
from wager_ledger.models import Transaction
from wager_ledger.repositories import BalanceRepository, TransactionRepository
from wager_ledger.utils.money import q2, to_decimal
from wager_ledger.utils.timezone import isoformat_or_none

logger = logging.getLogger(__name__)


def transaction_to_dict(txn: Transaction) -> Dict:
    return {
        "id": txn.id,
        "user_id": txn.user_id,
        "kind": txn.transaction_type,
        "currency": txn.currency,
        "amount": txn.amount,
        "balance_after": txn.balance_after,
        "description": txn.description,
        "status": txn.status,
        "reference_type": txn.reference_type,
        "reference_id": txn.reference_id,
        "created_at": isoformat_or_none(txn.created_at),
    }


class BalanceLedger:
    """Debit/credit operations with insufficient-funds checking."""

    def __init__(self, session_factory: sessionmaker, locks: KeyedLocks, currency: str = "SC"):
        self.session_factory = session_factory
        self.locks = locks
        self.currency = currency

    # ========================================================================
    # Movements
    # ========================================================================

    def debit(
        self,
        user_id: int,
        amount,
        description: str = "Wager",
        *,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        db: Optional[Session] = None,
    ) -> Dict:
        """
        Subtract ``amount`` from the user's balance and append a ``bet`` record.

        A missing balance row counts as a zero balance.

        Raises:
            InvalidAmount: amount is not a positive number
            InsufficientFunds: balance is lower than amount
        """
        value = self._positive(amount)
        return self._run(db, user_id, lambda session: self._apply(
            session, user_id, -value, "bet", description, reference_type, reference_id,
        ))

    def credit(
        self,
        user_id: int,
        amount,
        description: str,
        *,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        db: Optional[Session] = None,
    ) -> Dict:
        """Add ``amount`` to the user's balance and append a ``win`` record."""
        value = self._positive(amount)
        return self._run(db, user_id, lambda session: self._apply(
            session, user_id, value, "win", description, reference_type, reference_id,
        ))

    def adjust(self, user_id: int, amount, description: str, *, db: Optional[Session] = None) -> Dict:
        """
        Operator grant or claw-back. ``amount`` may be negative but not zero,
        and a claw-back can never take the balance below zero.
        """
        try:
            value = q2(to_decimal(amount))
        except ValueError as e:
            raise InvalidAmount(str(e), amount=str(amount)) from e
        if value == 0:
            raise InvalidAmount("Adjustment amount must be non-zero", amount=str(amount))
        return self._run(db, user_id, lambda session: self._apply(
            session, user_id, value, "adjustment", description, None, None,
        ))

    # ========================================================================
    # Reads
    # ========================================================================

    def get_balance(self, user_id: int, db: Optional[Session] = None) -> Decimal:
        if db is not None:
            row = BalanceRepository(db).find_for_user(user_id)
            return row.sweeps_coins if row else q2(0)
        with session_scope(self.session_factory) as session:
            row = BalanceRepository(session).find_for_user(user_id)
            return row.sweeps_coins if row else q2(0)

    def list_transactions(self, user_id: int, limit: int = 50) -> List[Dict]:
        """Most recent transactions for a user, newest first."""
        with session_scope(self.session_factory) as db:
            return [transaction_to_dict(t) for t in TransactionRepository(db).find_for_user(user_id, limit)]

    # ========================================================================
    # Internals
    # ========================================================================

    def _positive(self, amount) -> Decimal:
        try:
            value = q2(to_decimal(amount))
        except ValueError as e:
            raise InvalidAmount(str(e), amount=str(amount)) from e
        if value <= 0:
            raise InvalidAmount("Amount must be greater than zero", amount=str(amount))
        return value

    def _run(self, db: Optional[Session], user_id: int, operation) -> Dict:
        # Callers that pass ``db`` already hold the balance lock for their whole
        # transaction; taking it again here is a re-entrant no-op.
        with self.locks.hold(balance_key(user_id)):
            if db is not None:
                return operation(db)
            with session_scope(self.session_factory) as session:
                return operation(session)

    def _apply(
        self,
        db: Session,
        user_id: int,
        delta: Decimal,
        kind: str,
        description: str,
        reference_type: Optional[str],
        reference_id: Optional[str],
    ) -> Dict:
        balances = BalanceRepository(db)
        if delta < 0:
            row = balances.find_for_user(user_id, for_update=True)
            current = row.sweeps_coins if row else q2(0)
            if row is None or current + delta < 0:
                logger.warning(
                    f"Insufficient funds for user {user_id}: balance {current}, requested {-delta}",
                    extra={"user_id": user_id, "kind": kind},
                )
                raise InsufficientFunds(
                    "Insufficient balance",
                    user_id=user_id,
                    balance=str(current),
                    requested=str(-delta),
                )
        else:
            row = balances.ensure_for_user(user_id)

        row.sweeps_coins = q2(row.sweeps_coins + delta)
        balances.flush()

        txn = TransactionRepository(db).create(
            user_id=user_id,
            transaction_type=kind,
            currency=self.currency,
            amount=delta if kind == "adjustment" else abs(delta),
            balance_after=row.sweeps_coins,
            description=description,
            status="completed",
            reference_type=reference_type,
            reference_id=reference_id,
        )

        logger.info(
            f"{kind} {abs(delta)} {self.currency} for user {user_id}: {description}",
            extra={"user_id": user_id, "kind": kind, "balance_after": str(row.sweeps_coins)},
        )
        return transaction_to_dict(txn)
