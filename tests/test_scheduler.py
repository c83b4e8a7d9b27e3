"""
Tests for the scheduler jobs, run directly without starting APScheduler.
"""
from decimal import Decimal

from wager_ledger.core.database import session_scope
from wager_ledger.core.scheduler import LedgerScheduler, get_scheduler
from wager_ledger.models import SportsEvent


class TestSchedulerJobs:
    """Jobs are safe to run at any time."""

    def test_scheduler_not_started_in_tests(self):
        assert get_scheduler() is None

    def test_cache_refresh_picks_up_new_rows(self, services, events):
        with session_scope(services.session_factory) as db:
            db.get(SportsEvent, "nba_001").spread = -7.0

        LedgerScheduler(services).refresh_event_cache()

        assert services.catalog.get_event("nba_001")["spread"] == -7.0

    def test_resolution_sweep_settles_waiting_parlays(self, services, users, events):
        parlay = services.parlays.create_parlay(
            users["bob"],
            [{"event_id": "nfl_001", "pick": "away", "bet_type": "moneyline", "odds": 250}],
            20,
        )
        services.parlays.record_leg_result(parlay["legs"][0]["leg_id"], "won")
        with session_scope(services.session_factory) as db:
            db.get(SportsEvent, "nfl_001").status = "completed"

        LedgerScheduler(services).resolve_completed_events()

        assert services.parlays.get_parlay(parlay["parlay_id"])["status"] == "won"
        assert services.ledger.get_balance(users["bob"]) == Decimal("530.00")
