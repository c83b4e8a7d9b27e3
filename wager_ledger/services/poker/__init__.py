"""
Poker table registry and hand lifecycle.
"""
from wager_ledger.services.poker.poker_service import PokerService

__all__ = ["PokerService"]
