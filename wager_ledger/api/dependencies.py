"""
FastAPI dependencies shared by the route modules.
"""
from fastapi import Depends, HTTPException, Request, status

from wager_ledger.core.auth import get_current_user_id
from wager_ledger.core.logging import get_logger
from wager_ledger.services.container import WagerServices

logger = get_logger(__name__)


def get_services(request: Request) -> WagerServices:
    return request.app.state.services


def require_eligible_user(
    user_id: int = Depends(get_current_user_id),
    services: WagerServices = Depends(get_services),
) -> int:
    """
    Authenticated user who passes the sweepstakes entry check.

    Raises:
        HTTPException: 403 with the eligibility message when the user is
            ineligible or has not accepted the terms
    """
    result = services.eligibility.verify_eligibility_for_entry(user_id)
    if not result["eligible"]:
        logger.info(f"Wager refused for user {user_id}: {result['message']}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=result["message"])
    return user_id
