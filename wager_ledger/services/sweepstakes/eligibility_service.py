"""
Sweepstakes eligibility gate.

A user may enter sweepstakes play when all of these hold:
- age >= 18, counted as the difference of calendar years
- state is not one of the excluded states
- country (US when unset) is the US or Canada

Only one reason is reported, in that priority order. Every check writes a
``compliance_logs`` row, eligible or not.

The wager services do not call the gate themselves; the HTTP layer runs
``verify_eligibility_for_entry`` before any join or parlay request.
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, sessionmaker

from wager_ledger.core.database import session_scope
from wager_ledger.core.exceptions import UserNotFound
from wager_ledger.models import SweepstakesCompliance, User
from wager_ledger.repositories import ComplianceLogRepository, ComplianceRepository, UserRepository
from wager_ledger.utils.timezone import calendar_age, isoformat_or_none, utc_now

logger = logging.getLogger(__name__)

MIN_AGE = 18
INELIGIBLE_STATES = ["MT", "SC", "TN", "VT"]
ELIGIBLE_COUNTRIES = ["US", "CA"]
DEFAULT_COUNTRY = "US"
POLICIES_UPDATED = "2024-01-01"

AGE_REASON = "Must be 18+ years old"
COUNTRY_REASON = "Only available in US and Canada"
TERMS_MESSAGE = "Must accept sweepstakes terms before participation"
ELIGIBLE_MESSAGE = "User is eligible for sweepstakes participation"


def compliance_to_dict(row: SweepstakesCompliance) -> Dict:
    return {
        "user_id": row.user_id,
        "terms_accepted": row.terms_accepted,
        "disclaimer_accepted": row.disclaimer_accepted,
        "privacy_accepted": row.privacy_accepted,
        "accepted_at": isoformat_or_none(row.accepted_at),
    }


class EligibilityGate:
    """Age, jurisdiction and terms-acceptance checks with an audit trail."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def check_eligibility(self, user_id: int) -> Dict:
        """
        Evaluate age, state and country for a user and log the check.

        Users without a recorded birth date fail the age check.

        Raises:
            UserNotFound
        """
        with session_scope(self.session_factory) as db:
            return self._check(db, user_id)

    def verify_eligibility_for_entry(self, user_id: int) -> Dict:
        """Fail closed: eligible only when the checks pass and terms are accepted."""
        with session_scope(self.session_factory) as db:
            result = self._check(db, user_id)
            compliance = ComplianceRepository(db).find_for_user(user_id)

        if not result["is_eligible"]:
            return {"eligible": False, "message": result["reason"] or "User not eligible for sweepstakes"}
        if compliance is None or not compliance.terms_accepted:
            return {"eligible": False, "message": TERMS_MESSAGE}
        return {"eligible": True, "message": ELIGIBLE_MESSAGE}

    def accept_terms(self, user_id: int) -> Dict:
        """Record acceptance of terms, disclaimer and privacy policy."""
        with session_scope(self.session_factory) as db:
            if UserRepository(db).find_by_id(user_id) is None:
                raise UserNotFound("User not found", user_id=user_id)

            records = ComplianceRepository(db)
            row = records.find_for_user(user_id)
            if row is None:
                row = records.create(user_id=user_id)
            row.terms_accepted = True
            row.disclaimer_accepted = True
            row.privacy_accepted = True
            row.accepted_at = utc_now()
            records.flush()
            snapshot = compliance_to_dict(row)

        logger.info(f"User {user_id} accepted sweepstakes terms")
        return snapshot

    def get_compliance_status(self, user_id: int) -> Optional[Dict]:
        with session_scope(self.session_factory) as db:
            row = ComplianceRepository(db).find_for_user(user_id)
            return compliance_to_dict(row) if row else None

    def get_compliance_stats(self) -> Dict:
        with session_scope(self.session_factory) as db:
            total, terms, disclaimer, privacy = ComplianceRepository(db).acceptance_counts()
        return {
            "total_users": total or 0,
            "terms_accepted_users": int(terms or 0),
            "disclaimer_accepted_users": int(disclaimer or 0),
            "privacy_accepted_users": int(privacy or 0),
        }

    def get_compliance_logs(self, limit: int = 100) -> List[Dict]:
        """Most recent eligibility checks with the user's name and email."""
        with session_scope(self.session_factory) as db:
            rows = ComplianceLogRepository(db).find_recent_with_users(limit)
            return [
                {
                    "id": log.id,
                    "user_id": log.user_id,
                    "username": user.username if user else None,
                    "email": user.email if user else None,
                    "check_type": log.check_type,
                    "age": log.age,
                    "state": log.state,
                    "is_eligible": log.is_eligible,
                    "reason": log.reason,
                    "checked_at": isoformat_or_none(log.checked_at),
                }
                for log, user in rows
            ]

    def get_contest_rules(self) -> Dict:
        return {
            "title": "Sweepstakes Official Rules",
            "eligibility": {
                "minimum_age": MIN_AGE,
                "citizenship": "US or Canadian residents only",
                "excluded_states": list(INELIGIBLE_STATES),
                "no_employees": "Employees of the operator and their families are not eligible",
            },
            "prizes": {
                "description": "Virtual coins and cash prizes as stated in individual sweepstakes",
                "disclaimer": "No purchase necessary. Free play available.",
            },
            "terms": {
                "how_to_enter": "Play sweepstakes games on the platform",
                "winner": "Winners selected by random draw from eligible entries",
                "odds": "Odds depend on number of entries and game mechanics",
            },
            "disclaimers": [
                "This is a sweepstakes, not gambling",
                "Sweepstakes coins (SC) are virtual currency with no monetary value unless redeemed according to terms",
                "Users must comply with all applicable laws",
                "The operator reserves the right to void entries from ineligible users",
            ],
            "responsible_play": {
                "age_verified": True,
                "self_exclusion_available": True,
                "limit_deposits": True,
                "helplines": [
                    "National Problem Gambling Helpline: 1-800-522-4700",
                ],
            },
        }

    def get_privacy_policy(self) -> Dict:
        return {
            "title": "Privacy Policy",
            "last_updated": POLICIES_UPDATED,
            "summary": "The operator respects your privacy and is committed to protecting your personal information.",
            "sections": {
                "information_collected": [
                    "Account information (name, email, date of birth, location)",
                    "Device information (IP address, device type, browser)",
                    "Activity data (games played, transactions, sweepstakes entries)",
                    "Payment information (processed securely)",
                ],
                "use_of_information": [
                    "Verify eligibility for sweepstakes",
                    "Process payments and transactions",
                    "Improve our services",
                    "Comply with legal requirements",
                    "Prevent fraud and abuse",
                ],
                "data_protection": [
                    "All data encrypted in transit and at rest",
                    "Limited access to authorized personnel",
                    "Annual security audits",
                    "GDPR and CCPA compliant",
                ],
                "your_rights": [
                    "Access your personal data",
                    "Request deletion of your data",
                    "Opt-out of marketing communications",
                    "Lodge complaints with privacy authorities",
                ],
            },
        }

    def get_terms_of_service(self) -> Dict:
        return {
            "title": "Terms of Service",
            "last_updated": POLICIES_UPDATED,
            "sections": {
                "acceptance": "By using the platform, you accept all terms and conditions",
                "user_responsibilities": [
                    "You are responsible for maintaining account security",
                    f"You may not use the platform if under {MIN_AGE}",
                    "You may not violate any applicable laws",
                    "You acknowledge sweepstakes coins have no monetary value except as stated",
                ],
                "limitations": [
                    "The operator is not liable for data loss or service interruptions",
                    "Maximum winnings per user per day",
                    "Account termination for violations",
                    "No refunds except where legally required",
                ],
                "governing": "These terms are governed by applicable federal and state law",
            },
        }

    def _check(self, db: Session, user_id: int) -> Dict:
        user: Optional[User] = UserRepository(db).find_by_id(user_id)
        if user is None:
            raise UserNotFound("User not found", user_id=user_id)

        age = calendar_age(user.date_of_birth) if user.date_of_birth else None
        state = (user.state or "").upper() or None
        country = (user.country or DEFAULT_COUNTRY).upper()

        age_ok = age is not None and age >= MIN_AGE
        state_ok = state not in INELIGIBLE_STATES
        country_ok = country in ELIGIBLE_COUNTRIES
        is_eligible = age_ok and state_ok and country_ok

        if not age_ok:
            reason = AGE_REASON
        elif not state_ok:
            reason = f"Sweepstakes not available in {user.state}"
        elif not country_ok:
            reason = COUNTRY_REASON
        else:
            reason = None

        now = utc_now()
        ComplianceLogRepository(db).create(
            user_id=user_id,
            check_type="eligibility",
            age=age,
            state=user.state,
            is_eligible=is_eligible,
            reason=reason,
            checked_at=now,
        )

        if not is_eligible:
            logger.info(f"User {user_id} failed eligibility: {reason}", extra={"user_id": user_id})

        return {
            "user_id": user_id,
            "user_age": age,
            "user_state": user.state,
            "is_eligible": is_eligible,
            "reason": reason,
            "timestamp": now.isoformat(),
        }
