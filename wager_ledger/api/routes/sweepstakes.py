"""
Sweepstakes eligibility and compliance routes.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from wager_ledger.api.dependencies import get_services
from wager_ledger.core.auth import get_api_key, get_current_user_id
from wager_ledger.services.container import WagerServices

router = APIRouter(prefix="/sweepstakes", tags=["sweepstakes"])
operator = [Depends(get_api_key)]


@router.get("/eligibility")
def check_eligibility(
    user_id: int = Depends(get_current_user_id),
    services: WagerServices = Depends(get_services),
) -> Dict[str, Any]:
    return services.eligibility.check_eligibility(user_id)


@router.get("/verify")
def verify_eligibility_for_entry(
    user_id: int = Depends(get_current_user_id),
    services: WagerServices = Depends(get_services),
) -> Dict[str, Any]:
    return services.eligibility.verify_eligibility_for_entry(user_id)


@router.post("/accept-terms")
def accept_terms(
    user_id: int = Depends(get_current_user_id),
    services: WagerServices = Depends(get_services),
) -> Dict[str, Any]:
    return services.eligibility.accept_terms(user_id)


@router.get("/compliance")
def get_compliance_status(
    user_id: int = Depends(get_current_user_id),
    services: WagerServices = Depends(get_services),
) -> Optional[Dict[str, Any]]:
    return services.eligibility.get_compliance_status(user_id)


@router.get("/rules")
def get_contest_rules(services: WagerServices = Depends(get_services)) -> Dict[str, Any]:
    return services.eligibility.get_contest_rules()


@router.get("/privacy-policy")
def get_privacy_policy(services: WagerServices = Depends(get_services)) -> Dict[str, Any]:
    return services.eligibility.get_privacy_policy()


@router.get("/terms")
def get_terms_of_service(services: WagerServices = Depends(get_services)) -> Dict[str, Any]:
    return services.eligibility.get_terms_of_service()


@router.get("/admin/stats", dependencies=operator)
def get_compliance_stats(services: WagerServices = Depends(get_services)) -> Dict[str, Any]:
    return services.eligibility.get_compliance_stats()


@router.get("/admin/logs", dependencies=operator)
def get_compliance_logs(
    limit: int = Query(100, ge=1, le=1000),
    services: WagerServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return services.eligibility.get_compliance_logs(limit=limit)
