"""
Parlay engine: build parlays against the event catalog and settle them.

Lifecycle of a parlay:

    create_parlay        -> pending        (wager debited, legs stored)
    complete_event       -> legs on the event graded won/lost
    resolve_parlays_...  -> won / lost     (only once every leg has a result)

Resolution is idempotent. Each candidate parlay is re-read under the event,
parlay and balance locks and skipped unless it is still unsettled, so running
it again (a later event, the retry sweep, a manual leg grade) never pays a
parlay twice.

Score updates (``update_event_score``) only move an event to in-progress;
settlement requires an explicit ``complete_event``.
"""
import logging
from collections.abc import Mapping
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import sessionmaker

from wager_ledger.core.database import session_scope
from wager_ledger.core.exceptions import (
    ConflictError,
    EventNotFound,
    InvalidInputError,
    InvalidLegs,
    InvalidWager,
    LedgerError,
    LegAlreadyGraded,
    NotFoundError,
    ParlayNotFound,
)
from wager_ledger.core.locks import KeyedLocks, balance_key, event_key, parlay_key
from wager_ledger.core.metrics import (
    parlays_settled_total,
    payouts_total,
    wagers_placed_total,
    wagers_rejected_total,
)
from wager_ledger.models import ParlayLeg, SportsParlay
from wager_ledger.repositories import EventRepository, LegRepository, ParlayRepository
from wager_ledger.repositories.sports_repository import UNSETTLED_STATUSES
from wager_ledger.services.ledger import BalanceLedger
from wager_ledger.services.sports.event_catalog import EventCatalog
from wager_ledger.services.sports.grading import (
    BET_TYPES,
    PICKS,
    calculate_payout,
    grade_leg,
    pick_matches_bet_type,
)
from wager_ledger.utils.ids import new_id
from wager_ledger.utils.money import q2, to_decimal
from wager_ledger.utils.timezone import isoformat_or_none, utc_now

logger = logging.getLogger(__name__)

LEG_RESULTS = {"won", "lost"}
UNRESOLVED_RESULTS = (None, "pending")


def leg_to_dict(leg: ParlayLeg) -> Dict:
    return {
        "leg_id": leg.id,
        "event_id": leg.event_id,
        "pick": leg.pick,
        "bet_type": leg.bet_type,
        "odds": leg.odds,
        "result": leg.result,
    }


def parlay_to_dict(parlay: SportsParlay, legs: Optional[Sequence[ParlayLeg]] = None, leg_count: Optional[int] = None) -> Dict:
    result = {
        "parlay_id": parlay.id,
        "user_id": parlay.user_id,
        "total_wager": parlay.total_wager,
        "potential_payout": parlay.potential_payout,
        "status": parlay.status,
        "created_at": isoformat_or_none(parlay.created_at),
        "updated_at": isoformat_or_none(parlay.updated_at),
        "settled_at": isoformat_or_none(parlay.settled_at),
    }
    if legs is not None:
        result["legs"] = [leg_to_dict(leg) for leg in legs]
        result["leg_count"] = len(legs)
    elif leg_count is not None:
        result["leg_count"] = leg_count
    return result


class ParlayEngine:
    """Parlay creation, event scoring, leg grading and settlement."""

    def __init__(
        self,
        session_factory: sessionmaker,
        locks: KeyedLocks,
        ledger: BalanceLedger,
        catalog: EventCatalog,
    ):
        self.session_factory = session_factory
        self.locks = locks
        self.ledger = ledger
        self.catalog = catalog

    # ========================================================================
    # Creation
    # ========================================================================

    def create_parlay(self, user_id: int, legs: Sequence[Mapping], total_wager) -> Dict:
        """
        Create a parlay and debit its wager.

        potential_payout = total_wager x PRODUCT(leg odds / 100), legs kept in
        the order given. The parlay, its legs and the debit commit together.

        Args:
            user_id: Wagering user
            legs: Mappings with ``event_id``, ``pick``, ``bet_type`` and ``odds``
            total_wager: Amount staked

        Raises:
            InvalidWager, InvalidLegs, EventNotFound, InsufficientFunds
        """
        try:
            wager = self._wager(total_wager)
            parsed = self._parse_legs(legs)
            payout = calculate_payout(wager, [leg["odds"] for leg in parsed])

            event_ids = {leg["event_id"] for leg in parsed}
            keys = [event_key(e) for e in event_ids] + [balance_key(user_id)]

            with self.locks.hold(*keys), session_scope(self.session_factory) as db:
                events = EventRepository(db)
                for event_id in sorted(event_ids):
                    event = events.find_by_id(event_id)
                    if event is None:
                        raise EventNotFound("Event not found", event_id=event_id)
                    if event.status == "completed":
                        raise InvalidLegs("Event is already completed", event_id=event_id)

                parlay = ParlayRepository(db).create(
                    id=new_id("parlay"),
                    user_id=user_id,
                    total_wager=wager,
                    potential_payout=payout,
                    status="pending",
                )
                leg_repo = LegRepository(db)
                stored = [
                    leg_repo.create(
                        id=new_id("leg"),
                        parlay_id=parlay.id,
                        position=position,
                        event_id=leg["event_id"],
                        pick=leg["pick"],
                        bet_type=leg["bet_type"],
                        odds=leg["odds"],
                    )
                    for position, leg in enumerate(parsed)
                ]

                self.ledger.debit(
                    user_id, wager, f"Sports parlay {parlay.id}",
                    reference_type="parlay", reference_id=parlay.id, db=db,
                )
                snapshot = parlay_to_dict(parlay, stored)
        except LedgerError as e:
            wagers_rejected_total.labels(reason=e.code).inc()
            raise

        wagers_placed_total.labels(kind="parlay").inc()
        logger.info(
            f"User {user_id} placed parlay {snapshot['parlay_id']}: "
            f"{len(parsed)} legs, wager {wager}, potential payout {payout}"
        )
        return snapshot

    # ========================================================================
    # Event results
    # ========================================================================

    def update_event_score(self, event_id: str, home_score: int, away_score: int) -> Dict:
        """
        Store a live score and mark the event in-progress.

        Raises:
            EventNotFound
            ConflictError: the event was already completed

        This never completes the event, so the resolution attempt that follows
        settles nothing; use ``complete_event`` for final scores.
        """
        home, away = self._scores(home_score, away_score)

        with self.locks.hold(event_key(event_id)), session_scope(self.session_factory) as db:
            events = EventRepository(db)
            event = events.find_by_id(event_id, for_update=True)
            if event is None:
                raise EventNotFound("Event not found", event_id=event_id)
            if event.status == "completed":
                raise ConflictError("Event is already completed", event_id=event_id)
            event.home_score = home
            event.away_score = away
            event.status = "in-progress"
            events.flush()

        self.catalog.cache_event(event)
        logger.warning(
            f"Score update for {event_id} ({home}-{away}) leaves the event in-progress; "
            f"parlays on it settle only after complete_event",
            extra={"event_id": event_id},
        )
        self.resolve_parlays_for_event(event_id)
        return self.catalog.get_event(event_id)

    def complete_event(self, event_id: str, home_score: int, away_score: int) -> Dict:
        """
        Record final scores, grade every ungraded leg on the event, then
        settle the parlays whose legs are now all graded.

        Raises:
            EventNotFound
            ConflictError: the event was already completed
        """
        home, away = self._scores(home_score, away_score)

        with self.locks.hold(event_key(event_id)), session_scope(self.session_factory) as db:
            events = EventRepository(db)
            event = events.find_by_id(event_id, for_update=True)
            if event is None:
                raise EventNotFound("Event not found", event_id=event_id)
            if event.status == "completed":
                raise ConflictError("Event is already completed", event_id=event_id)

            event.home_score = home
            event.away_score = away
            event.status = "completed"

            now = utc_now()
            legs = LegRepository(db).find_ungraded_for_event(event_id)
            for leg in legs:
                leg.result = grade_leg(leg.pick, leg.bet_type, home, away, event.spread, event.over_under)
                leg.graded_at = now
            events.flush()

        self.catalog.cache_event(event)
        logger.info(f"Event {event_id} completed {home}-{away}, graded {len(legs)} legs")

        summary = self.resolve_parlays_for_event(event_id)
        summary["graded_legs"] = len(legs)
        return summary

    def record_leg_result(self, leg_id: str, result: str) -> Dict:
        """
        Grade a single leg by hand. A leg's result is set exactly once.

        Raises:
            NotFoundError, InvalidInputError, LegAlreadyGraded
        """
        if result not in LEG_RESULTS:
            raise InvalidInputError("Leg result must be 'won' or 'lost'", result=result)

        with session_scope(self.session_factory) as db:
            leg = LegRepository(db).find_by_id(leg_id)
            if leg is None:
                raise NotFoundError("Parlay leg not found", leg_id=leg_id)
            event_id, parlay_id = leg.event_id, leg.parlay_id

        with self.locks.hold(event_key(event_id), parlay_key(parlay_id)), \
                session_scope(self.session_factory) as db:
            legs = LegRepository(db)
            leg = legs.find_by_id(leg_id, for_update=True)
            if leg.result not in UNRESOLVED_RESULTS:
                raise LegAlreadyGraded("Leg already has a result", leg_id=leg_id, result=leg.result)
            leg.result = result
            leg.graded_at = utc_now()
            legs.flush()
            snapshot = leg_to_dict(leg)

        logger.info(f"Leg {leg_id} of parlay {parlay_id} graded {result} by hand")
        self.resolve_parlays_for_event(event_id)
        return snapshot

    # ========================================================================
    # Settlement
    # ========================================================================

    def resolve_parlays_for_event(self, event_id: str) -> Dict:
        """
        Settle every unsettled parlay with a leg on a completed event.

        No-op unless the event exists and is completed. Parlays with a leg still
        ungraded are left untouched, so this is safe to call repeatedly.

        Returns:
            Summary with the settled parlay ids and the number still waiting
        """
        with session_scope(self.session_factory) as db:
            event = EventRepository(db).find_by_id(event_id)
            if event is None or event.status != "completed":
                status = "missing" if event is None else event.status
                logger.debug(f"Event {event_id} is {status}, nothing to resolve")
                return {"event_id": event_id, "settled": [], "waiting": 0}
            candidates = ParlayRepository(db).find_unsettled_for_event(event_id)

        settled = []
        waiting = 0
        for parlay_id, user_id in candidates:
            status = self._settle(event_id, parlay_id, user_id)
            if status in ("won", "lost"):
                settled.append({"parlay_id": parlay_id, "status": status})
            elif status is not None:
                waiting += 1

        if settled:
            logger.info(f"Resolved {len(settled)} parlays for event {event_id}, {waiting} waiting on other legs")
        return {"event_id": event_id, "settled": settled, "waiting": waiting}

    def resolve_completed_events(self) -> Dict:
        """Re-run resolution for every completed event with unsettled parlays."""
        with session_scope(self.session_factory) as db:
            event_ids = EventRepository(db).find_completed_with_unsettled_parlays()

        settled = 0
        for event_id in event_ids:
            settled += len(self.resolve_parlays_for_event(event_id)["settled"])
        return {"events": len(event_ids), "settled": settled}

    def _settle(self, event_id: str, parlay_id: str, user_id: int) -> Optional[str]:
        """
        Settle one parlay under its locks.

        Returns the new terminal status, the unchanged status when legs are
        still ungraded, or None when another caller already settled it.
        """
        with self.locks.hold(event_key(event_id), parlay_key(parlay_id), balance_key(user_id)), \
                session_scope(self.session_factory) as db:
            parlays = ParlayRepository(db)
            parlay = parlays.find_by_id(parlay_id, for_update=True)
            if parlay is None or parlay.status not in UNSETTLED_STATUSES:
                return None

            legs = LegRepository(db).find_for_parlay(parlay_id)
            if any(leg.result in UNRESOLVED_RESULTS for leg in legs):
                return parlay.status

            outcome = "won" if all(leg.result == "won" for leg in legs) else "lost"
            parlay.status = outcome
            parlay.settled_at = utc_now()
            parlays.flush()

            if outcome == "won":
                self.ledger.credit(
                    parlay.user_id, parlay.potential_payout, f"Sports parlay win {parlay_id}",
                    reference_type="parlay", reference_id=parlay_id, db=db,
                )
            payout = parlay.potential_payout

        parlays_settled_total.labels(outcome=outcome).inc()
        if outcome == "won":
            payouts_total.labels(kind="parlay_win").inc()
        logger.info(f"Parlay {parlay_id} settled {outcome}" + (f", paid {payout}" if outcome == "won" else ""))
        return outcome

    # ========================================================================
    # Reads
    # ========================================================================

    def get_parlay(self, parlay_id: str) -> Dict:
        with session_scope(self.session_factory) as db:
            parlay = ParlayRepository(db).find_by_id(parlay_id)
            if parlay is None:
                raise ParlayNotFound("Parlay not found", parlay_id=parlay_id)
            return parlay_to_dict(parlay, LegRepository(db).find_for_parlay(parlay_id))

    def get_user_parlays(self, user_id: int, limit: int = 50) -> List[Dict]:
        with session_scope(self.session_factory) as db:
            rows = ParlayRepository(db).find_for_user_with_leg_counts(user_id, limit)
            return [parlay_to_dict(parlay, leg_count=count) for parlay, count in rows]

    def get_parlay_history(self, limit: int = 100) -> List[Dict]:
        with session_scope(self.session_factory) as db:
            rows = ParlayRepository(db).find_recent_with_leg_counts(limit)
            return [parlay_to_dict(parlay, leg_count=count) for parlay, count in rows]

    def get_admin_stats(self) -> Dict:
        with session_scope(self.session_factory) as db:
            parlays = ParlayRepository(db)
            return {
                "total_parlays": parlays.count(),
                "winning_parlays": parlays.count(SportsParlay.status == "won"),
                "losing_parlays": parlays.count(SportsParlay.status == "lost"),
                "pending_parlays": parlays.count(SportsParlay.status.in_(UNSETTLED_STATUSES)),
                "total_wagers": q2(parlays.sum_by_status(SportsParlay.total_wager) or 0),
                "total_payouts": q2(parlays.sum_by_status(SportsParlay.potential_payout, "won") or 0),
            }

    # ========================================================================
    # Validation
    # ========================================================================

    def _wager(self, total_wager):
        try:
            wager = q2(to_decimal(total_wager))
        except ValueError as e:
            raise InvalidWager(str(e)) from e
        if wager <= 0:
            raise InvalidWager("Wager must be greater than 0", total_wager=str(total_wager))
        return wager

    def _parse_legs(self, legs: Sequence[Mapping]) -> List[Dict]:
        if not legs:
            raise InvalidLegs("A parlay needs at least one leg")

        parsed = []
        for position, leg in enumerate(legs):
            if not isinstance(leg, Mapping):
                raise InvalidLegs("Each leg must be an object", position=position)
            event_id = leg.get("event_id")
            pick = leg.get("pick")
            bet_type = leg.get("bet_type")
            odds = leg.get("odds")

            if not event_id:
                raise InvalidLegs("Leg is missing event_id", position=position)
            if pick not in PICKS:
                raise InvalidLegs(f"Unknown pick: {pick}", position=position)
            if bet_type not in BET_TYPES:
                raise InvalidLegs(f"Unknown bet type: {bet_type}", position=position)
            if not pick_matches_bet_type(pick, bet_type):
                raise InvalidLegs(f"Pick '{pick}' does not apply to {bet_type}", position=position)
            try:
                value = to_decimal(odds)
            except ValueError as e:
                raise InvalidLegs(f"Invalid odds: {odds!r}", position=position) from e
            if value <= 0:
                raise InvalidLegs("Odds must be greater than zero", position=position)

            parsed.append({"event_id": str(event_id), "pick": pick, "bet_type": bet_type, "odds": float(value)})
        return parsed

    def _scores(self, home_score, away_score):
        for value in (home_score, away_score):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidInputError("Scores must be non-negative integers", home_score=home_score, away_score=away_score)
        return home_score, away_score
