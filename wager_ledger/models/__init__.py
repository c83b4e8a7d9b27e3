"""
Models module.

Usage:
    from wager_ledger.models import Base, UserBalance, SportsParlay
"""
from wager_ledger.models.models import (
    Base,
    User,
    UserBalance,
    Transaction,
    PokerTable,
    PokerPlayer,
    PokerHand,
    SportsEvent,
    SportsParlay,
    ParlayLeg,
    SweepstakesCompliance,
    ComplianceLog,
)

__all__ = [
    "Base",
    "User",
    "UserBalance",
    "Transaction",
    "PokerTable",
    "PokerPlayer",
    "PokerHand",
    "SportsEvent",
    "SportsParlay",
    "ParlayLeg",
    "SweepstakesCompliance",
    "ComplianceLog",
]
