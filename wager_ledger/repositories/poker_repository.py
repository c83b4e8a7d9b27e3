"""
Repositories for poker tables, seats and hands.
"""
from typing import List, Optional, Tuple

from sqlalchemy import case, func

from wager_ledger.models import PokerTable, PokerPlayer, PokerHand
from wager_ledger.repositories.base import BaseRepository


class TableRepository(BaseRepository[PokerTable]):
    """Repository for poker tables."""

    def __init__(self, db):
        super().__init__(PokerTable, db)

    def find_by_status_with_counts(self, status: str) -> List[Tuple[PokerTable, int]]:
        """Tables in ``status`` with their live count of active seats, newest first."""
        active = func.count(case((PokerPlayer.is_active.is_(True), 1)))
        return (
            self.db.query(PokerTable, active)
            .outerjoin(PokerPlayer, PokerPlayer.table_id == PokerTable.id)
            .filter(PokerTable.status == status)
            .group_by(PokerTable.id)
            .order_by(PokerTable.created_at.desc(), PokerTable.id.desc())
            .all()
        )


class SeatRepository(BaseRepository[PokerPlayer]):
    """Repository for seats (``poker_players`` rows)."""

    def __init__(self, db):
        super().__init__(PokerPlayer, db)

    def count_active(self, table_id: str) -> int:
        return self.count(PokerPlayer.table_id == table_id, PokerPlayer.is_active.is_(True))

    def find_active(self, table_id: str, user_id: int, for_update: bool = False) -> Optional[PokerPlayer]:
        query = self.query().filter(
            PokerPlayer.table_id == table_id,
            PokerPlayer.user_id == user_id,
            PokerPlayer.is_active.is_(True),
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def find_active_for_table(self, table_id: str) -> List[PokerPlayer]:
        return (
            self.query()
            .filter(PokerPlayer.table_id == table_id, PokerPlayer.is_active.is_(True))
            .order_by(PokerPlayer.joined_at, PokerPlayer.id)
            .all()
        )

    def find_latest(self, table_id: str, user_id: int) -> Optional[PokerPlayer]:
        """Most recent seat of a user at a table, active or not."""
        return (
            self.query()
            .filter(PokerPlayer.table_id == table_id, PokerPlayer.user_id == user_id)
            .order_by(PokerPlayer.joined_at.desc(), PokerPlayer.id.desc())
            .first()
        )

    def count_tables_with_players(self) -> int:
        return self.db.query(func.count(func.distinct(PokerPlayer.table_id))).scalar() or 0

    def stats_for_user(self, user_id: int):
        return (
            self.db.query(
                func.count(func.distinct(PokerPlayer.table_id)),
                func.sum(case((PokerPlayer.total_wins > 0, 1), else_=0)),
                func.sum(PokerPlayer.total_wins),
                func.sum(PokerPlayer.total_losses),
                func.avg(PokerPlayer.stack),
            )
            .filter(PokerPlayer.user_id == user_id)
            .one()
        )


class HandRepository(BaseRepository[PokerHand]):
    """Repository for poker hands."""

    def __init__(self, db):
        super().__init__(PokerHand, db)

    def find_for_table(self, table_id: str, limit: int = 50) -> List[PokerHand]:
        return (
            self.query()
            .filter(PokerHand.table_id == table_id)
            .order_by(PokerHand.started_at.desc(), PokerHand.id.desc())
            .limit(limit)
            .all()
        )

    def finished_pot_totals(self):
        return (
            self.db.query(func.sum(PokerHand.pot), func.avg(PokerHand.pot))
            .filter(PokerHand.status == "finished")
            .one()
        )
