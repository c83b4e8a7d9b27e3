"""
API routes organized by wager product.

This module organizes routes into:
- ledger: Balance and transaction history, operator adjustments
- poker: Tables, seats and hands
- sports: Events, odds and parlays
- sweepstakes: Eligibility, terms acceptance and compliance audit
"""
