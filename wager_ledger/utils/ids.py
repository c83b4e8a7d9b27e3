"""
Identifiers for wager entities: ``<prefix>_<12 hex chars>``.
"""
import uuid


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"
