"""
Sports event catalog and parlay engine.
"""
from wager_ledger.services.sports.event_catalog import EventCatalog
from wager_ledger.services.sports.parlay_service import ParlayEngine

__all__ = ["EventCatalog", "ParlayEngine"]
