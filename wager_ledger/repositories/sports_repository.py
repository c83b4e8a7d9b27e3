"""
Repositories for sports events, parlays and parlay legs.
"""
from typing import List, Optional, Tuple

from sqlalchemy import func, or_

from wager_ledger.models import SportsEvent, SportsParlay, ParlayLeg
from wager_ledger.repositories.base import BaseRepository

UNSETTLED_STATUSES = ("pending", "pending_results")


class EventRepository(BaseRepository[SportsEvent]):
    """Repository for catalog events."""

    def __init__(self, db):
        super().__init__(SportsEvent, db)

    def find_all(self) -> List[SportsEvent]:
        return self.query().order_by(SportsEvent.start_time, SportsEvent.id).all()

    def find_completed_with_unsettled_parlays(self) -> List[str]:
        """Completed events that still have a leg in an unsettled parlay."""
        rows = (
            self.db.query(SportsEvent.id)
            .join(ParlayLeg, ParlayLeg.event_id == SportsEvent.id)
            .join(SportsParlay, SportsParlay.id == ParlayLeg.parlay_id)
            .filter(SportsEvent.status == "completed", SportsParlay.status.in_(UNSETTLED_STATUSES))
            .distinct()
            .order_by(SportsEvent.id)
            .all()
        )
        return [row[0] for row in rows]

    def upsert(self, event_id: str, **fields) -> SportsEvent:
        event = self.find_by_id(event_id, for_update=True)
        if event is None:
            return self.create(id=event_id, **fields)
        for key, value in fields.items():
            setattr(event, key, value)
        self.flush()
        return event


class ParlayRepository(BaseRepository[SportsParlay]):
    """Repository for parlays."""

    def __init__(self, db):
        super().__init__(SportsParlay, db)

    def find_unsettled_for_event(self, event_id: str) -> List[Tuple[str, int]]:
        """(parlay id, user id) of parlays not yet won/lost with at least one leg on the event."""
        return (
            self.db.query(SportsParlay.id, SportsParlay.user_id)
            .join(ParlayLeg, ParlayLeg.parlay_id == SportsParlay.id)
            .filter(ParlayLeg.event_id == event_id, SportsParlay.status.in_(UNSETTLED_STATUSES))
            .distinct()
            .order_by(SportsParlay.id)
            .all()
        )

    def find_for_user_with_leg_counts(self, user_id: int, limit: int = 50) -> List[Tuple[SportsParlay, int]]:
        return (
            self.db.query(SportsParlay, func.count(ParlayLeg.id))
            .outerjoin(ParlayLeg, ParlayLeg.parlay_id == SportsParlay.id)
            .filter(SportsParlay.user_id == user_id)
            .group_by(SportsParlay.id)
            .order_by(SportsParlay.created_at.desc(), SportsParlay.id.desc())
            .limit(limit)
            .all()
        )

    def find_recent_with_leg_counts(self, limit: int = 100) -> List[Tuple[SportsParlay, int]]:
        return (
            self.db.query(SportsParlay, func.count(ParlayLeg.id))
            .outerjoin(ParlayLeg, ParlayLeg.parlay_id == SportsParlay.id)
            .group_by(SportsParlay.id)
            .order_by(SportsParlay.created_at.desc(), SportsParlay.id.desc())
            .limit(limit)
            .all()
        )

    def sum_by_status(self, column, status: Optional[str] = None):
        query = self.db.query(func.sum(column))
        if status is not None:
            query = query.filter(SportsParlay.status == status)
        return query.scalar()


class LegRepository(BaseRepository[ParlayLeg]):
    """Repository for parlay legs."""

    def __init__(self, db):
        super().__init__(ParlayLeg, db)

    def find_for_parlay(self, parlay_id: str) -> List[ParlayLeg]:
        return (
            self.query()
            .filter(ParlayLeg.parlay_id == parlay_id)
            .order_by(ParlayLeg.position)
            .all()
        )

    def find_ungraded_for_event(self, event_id: str) -> List[ParlayLeg]:
        return (
            self.query()
            .filter(
                ParlayLeg.event_id == event_id,
                or_(ParlayLeg.result.is_(None), ParlayLeg.result == "pending"),
            )
            .with_for_update()
            .all()
        )
