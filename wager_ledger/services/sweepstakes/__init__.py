"""
Sweepstakes eligibility and terms compliance.
"""
from wager_ledger.services.sweepstakes.eligibility_service import EligibilityGate

__all__ = ["EligibilityGate"]
