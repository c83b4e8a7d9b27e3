"""
Services module for wager business logic.

This module organizes services into:
- ledger: Balance ledger and transaction log (the only writer of balances)
- poker: Table registry and hand lifecycle
- sports: Event catalog and parlay engine
- sweepstakes: Eligibility gate and terms compliance
- container: Wiring of the above around one session factory and lock registry
"""
