"""
Repository layer for data access.

Usage:
    from wager_ledger.repositories import BalanceRepository
    from wager_ledger.core.database import session_scope

    with session_scope(session_factory) as db:
        balance = BalanceRepository(db).find_for_user(42)
"""

from wager_ledger.repositories.base import BaseRepository
from wager_ledger.repositories.ledger_repository import BalanceRepository, TransactionRepository
from wager_ledger.repositories.poker_repository import TableRepository, SeatRepository, HandRepository
from wager_ledger.repositories.sports_repository import EventRepository, ParlayRepository, LegRepository
from wager_ledger.repositories.compliance_repository import (
    UserRepository,
    ComplianceRepository,
    ComplianceLogRepository,
)

__all__ = [
    "BaseRepository",
    "BalanceRepository",
    "TransactionRepository",
    "TableRepository",
    "SeatRepository",
    "HandRepository",
    "EventRepository",
    "ParlayRepository",
    "LegRepository",
    "UserRepository",
    "ComplianceRepository",
    "ComplianceLogRepository",
]
