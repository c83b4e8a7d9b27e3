"""
Repositories for users and sweepstakes compliance records.
"""
from typing import List, Optional, Tuple

from sqlalchemy import case, func

from wager_ledger.models import User, SweepstakesCompliance, ComplianceLog
from wager_ledger.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Read access to registered users."""

    def __init__(self, db):
        super().__init__(User, db)


class ComplianceRepository(BaseRepository[SweepstakesCompliance]):
    """Repository for per-user terms acceptance."""

    def __init__(self, db):
        super().__init__(SweepstakesCompliance, db)

    def find_for_user(self, user_id: int) -> Optional[SweepstakesCompliance]:
        return self.where_first(SweepstakesCompliance.user_id == user_id)

    def acceptance_counts(self):
        return self.db.query(
            func.count(func.distinct(SweepstakesCompliance.user_id)),
            func.sum(case((SweepstakesCompliance.terms_accepted.is_(True), 1), else_=0)),
            func.sum(case((SweepstakesCompliance.disclaimer_accepted.is_(True), 1), else_=0)),
            func.sum(case((SweepstakesCompliance.privacy_accepted.is_(True), 1), else_=0)),
        ).one()


class ComplianceLogRepository(BaseRepository[ComplianceLog]):
    """Append-only audit log of eligibility checks."""

    def __init__(self, db):
        super().__init__(ComplianceLog, db)

    def find_recent_with_users(self, limit: int = 100) -> List[Tuple[ComplianceLog, Optional[User]]]:
        return (
            self.db.query(ComplianceLog, User)
            .outerjoin(User, User.id == ComplianceLog.user_id)
            .order_by(ComplianceLog.checked_at.desc(), ComplianceLog.id.desc())
            .limit(limit)
            .all()
        )
