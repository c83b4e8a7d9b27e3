"""
Balance ledger and transaction log.
"""
from wager_ledger.services.ledger.ledger_service import BalanceLedger, transaction_to_dict

__all__ = ["BalanceLedger", "transaction_to_dict"]
