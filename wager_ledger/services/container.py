"""
Service wiring.

All services share one session factory and one lock registry, so a lock
taken by the poker service (``balance:42``) is the same lock the parlay
engine and the ledger take. Built once at startup and attached to
``app.state.services``.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import sessionmaker

from wager_ledger.core.locks import KeyedLocks
from wager_ledger.services.ledger import BalanceLedger
from wager_ledger.services.poker import PokerService
from wager_ledger.services.sports import EventCatalog, ParlayEngine
from wager_ledger.services.sweepstakes import EligibilityGate


@dataclass
class WagerServices:
    session_factory: sessionmaker
    locks: KeyedLocks
    ledger: BalanceLedger
    poker: PokerService
    catalog: EventCatalog
    parlays: ParlayEngine
    eligibility: EligibilityGate


def build_services(
    session_factory: sessionmaker,
    catalog_path: Optional[str] = None,
    currency: str = "SC",
) -> WagerServices:
    locks = KeyedLocks()
    ledger = BalanceLedger(session_factory, locks, currency=currency)
    catalog = EventCatalog(session_factory, locks, catalog_path=catalog_path)
    return WagerServices(
        session_factory=session_factory,
        locks=locks,
        ledger=ledger,
        poker=PokerService(session_factory, locks, ledger),
        catalog=catalog,
        parlays=ParlayEngine(session_factory, locks, ledger, catalog),
        eligibility=EligibilityGate(session_factory),
    )
