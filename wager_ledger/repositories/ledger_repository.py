"""
Repositories for balances and the transaction log.

Usage:
    balances = BalanceRepository(db)
    row = balances.find_for_user(42, for_update=True)
"""
from typing import List, Optional

from wager_ledger.models import UserBalance, Transaction
from wager_ledger.repositories.base import BaseRepository


class BalanceRepository(BaseRepository[UserBalance]):
    """Repository for per-user balances."""

    def __init__(self, db):
        super().__init__(UserBalance, db)

    def find_for_user(self, user_id: int, for_update: bool = False) -> Optional[UserBalance]:
        query = self.query().filter(UserBalance.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def ensure_for_user(self, user_id: int) -> UserBalance:
        """Return the user's locked balance row, creating an empty one if needed."""
        balance = self.find_for_user(user_id, for_update=True)
        if balance is None:
            balance = self.create(user_id=user_id, sweeps_coins=0)
        return balance


class TransactionRepository(BaseRepository[Transaction]):
    """Append-only access to the transaction log. There is no update or delete."""

    def __init__(self, db):
        super().__init__(Transaction, db)

    def find_for_user(self, user_id: int, limit: int = 50) -> List[Transaction]:
        return (
            self.query()
            .filter(Transaction.user_id == user_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(limit)
            .all()
        )

    def find_by_reference(self, reference_type: str, reference_id: str) -> List[Transaction]:
        return self.where(
            Transaction.reference_type == reference_type,
            Transaction.reference_id == reference_id,
        )
