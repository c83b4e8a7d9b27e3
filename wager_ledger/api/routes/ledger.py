"""
Balance and transaction history routes.
"""
from decimal import Decimal
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from wager_ledger.api.dependencies import get_services
from wager_ledger.core.auth import get_api_key, get_current_user_id
from wager_ledger.core.rate_limit import READ_LIMIT, limiter
from wager_ledger.services.container import WagerServices

router = APIRouter(prefix="/ledger", tags=["ledger"])


class AdjustmentRequest(BaseModel):
    """Operator grant (positive) or claw-back (negative)."""
    user_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., description="Signed amount in sweeps coins")
    description: str = Field("Balance adjustment", max_length=255)


@router.get("/balance")
@limiter.limit(READ_LIMIT)
def get_balance(
    request: Request,
    user_id: int = Depends(get_current_user_id),
    services: WagerServices = Depends(get_services),
) -> Dict[str, Any]:
    """Current sweeps-coin balance of the caller."""
    return {
        "user_id": user_id,
        "balance": services.ledger.get_balance(user_id),
        "currency": services.ledger.currency,
    }


@router.get("/transactions")
@limiter.limit(READ_LIMIT)
def list_transactions(
    request: Request,
    limit: int = Query(50, ge=1, le=500),
    user_id: int = Depends(get_current_user_id),
    services: WagerServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    """Caller's transactions, newest first."""
    return services.ledger.list_transactions(user_id, limit=limit)


@router.post("/adjustments", dependencies=[Depends(get_api_key)])
def create_adjustment(body: AdjustmentRequest, services: WagerServices = Depends(get_services)) -> Dict[str, Any]:
    return services.ledger.adjust(body.user_id, body.amount, body.description)
