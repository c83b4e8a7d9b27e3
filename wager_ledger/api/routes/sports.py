"""
Sports event and parlay routes.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from wager_ledger.api.dependencies import get_services, require_eligible_user
from wager_ledger.core.auth import get_api_key, get_current_user_id
from wager_ledger.core.rate_limit import READ_LIMIT, WAGER_LIMIT, limiter
from wager_ledger.services.container import WagerServices

router = APIRouter(prefix="/sports", tags=["sports"])
operator = [Depends(get_api_key)]


# Request models
class ParlayLegRequest(BaseModel):
    """Leg data for creating a parlay."""
    event_id: str
    pick: str = Field(..., description="home, away, over or under")
    bet_type: str = Field(..., description="spread, moneyline or over_under")
    odds: float


class CreateParlayRequest(BaseModel):
    legs: List[ParlayLegRequest]
    total_wager: Decimal


class ScoreRequest(BaseModel):
    home_score: int = Field(..., ge=0)
    away_score: int = Field(..., ge=0)


class LegResultRequest(BaseModel):
    result: str = Field(..., description="won or lost")


# Events
@router.get("/events")
@limiter.limit(READ_LIMIT)
def list_upcoming_events(
    request: Request,
    sport: Optional[str] = Query(None, description="nfl, nba, mlb, nhl or ncaa"),
    services: WagerServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    """Scheduled events that have not started, soonest first."""
    return services.catalog.list_upcoming_events(sport)


@router.get("/events/{event_id}")
def get_event(event_id: str, services: WagerServices = Depends(get_services)) -> Dict[str, Any]:
    return services.catalog.get_event(event_id)


@router.get("/odds/{sport}")
@limiter.limit(READ_LIMIT)
def get_live_odds(request: Request, sport: str, services: WagerServices = Depends(get_services)) -> List[Dict[str, Any]]:
    return services.catalog.get_live_odds(sport)


@router.post("/events/{event_id}/score", dependencies=operator)
def update_event_score(
    event_id: str,
    body: ScoreRequest,
    services: WagerServices = Depends(get_services),
) -> Dict[str, Any]:
    """Live score update. Marks the event in-progress; never settles parlays."""
    return services.parlays.update_event_score(event_id, body.home_score, body.away_score)


@router.post("/events/{event_id}/complete", dependencies=operator)
def complete_event(
    event_id: str,
    body: ScoreRequest,
    services: WagerServices = Depends(get_services),
) -> Dict[str, Any]:
    """Final score. Grades legs on the event and settles finished parlays."""
    return services.parlays.complete_event(event_id, body.home_score, body.away_score)


@router.post("/events/{event_id}/resolve", dependencies=operator)
def resolve_event(event_id: str, services: WagerServices = Depends(get_services)) -> Dict[str, Any]:
    services.catalog.get_event(event_id)
    return services.parlays.resolve_parlays_for_event(event_id)


@router.post("/legs/{leg_id}/result", dependencies=operator)
def record_leg_result(
    leg_id: str,
    body: LegResultRequest,
    services: WagerServices = Depends(get_services),
) -> Dict[str, Any]:
    return services.parlays.record_leg_result(leg_id, body.result)


# Parlays
@router.post("/parlays")
@limiter.limit(WAGER_LIMIT)
def create_parlay(
    request: Request,
    body: CreateParlayRequest,
    user_id: int = Depends(require_eligible_user),
    services: WagerServices = Depends(get_services),
) -> Dict[str, Any]:
    """Place a parlay; the wager is debited from the caller's balance."""
    legs = [leg.model_dump() for leg in body.legs]
    return services.parlays.create_parlay(user_id, legs, body.total_wager)


@router.get("/parlays")
def get_user_parlays(
    limit: int = Query(50, ge=1, le=500),
    user_id: int = Depends(get_current_user_id),
    services: WagerServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return services.parlays.get_user_parlays(user_id, limit=limit)


@router.get("/parlays/{parlay_id}")
def get_parlay(parlay_id: str, services: WagerServices = Depends(get_services)) -> Dict[str, Any]:
    return services.parlays.get_parlay(parlay_id)


# Admin
@router.get("/admin/stats", dependencies=operator)
def get_admin_stats(services: WagerServices = Depends(get_services)) -> Dict[str, Any]:
    return services.parlays.get_admin_stats()


@router.get("/admin/parlays", dependencies=operator)
def get_parlay_history(
    limit: int = Query(100, ge=1, le=1000),
    services: WagerServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return services.parlays.get_parlay_history(limit=limit)
