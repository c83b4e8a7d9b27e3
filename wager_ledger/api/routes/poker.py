"""
Poker table and hand routes.

Players join and leave tables; operators create and close tables and drive
hands (deal, advance, complete).
"""
from decimal import Decimal
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from wager_ledger.api.dependencies import get_services, require_eligible_user
from wager_ledger.core.auth import get_api_key, get_current_user_id
from wager_ledger.core.rate_limit import READ_LIMIT, WAGER_LIMIT, limiter
from wager_ledger.services.container import WagerServices

router = APIRouter(prefix="/poker", tags=["poker"])
operator = [Depends(get_api_key)]


# Request models
class CreateTableRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    small_blind: Decimal
    big_blind: Decimal
    max_players: int = Field(6, ge=2, le=10)


class JoinTableRequest(BaseModel):
    buy_in: Decimal = Field(..., description="Sweeps coins to bring to the table")


class LeaveTableRequest(BaseModel):
    cash_out: Decimal = Field(..., description="Sweeps coins credited back on leaving")


class CompleteHandRequest(BaseModel):
    winner_id: int = Field(..., gt=0)
    winning_hand: str = Field(..., min_length=1, max_length=100)


# Tables
@router.get("/tables")
@limiter.limit(READ_LIMIT)
def list_open_tables(request: Request, services: WagerServices = Depends(get_services)) -> List[Dict[str, Any]]:
    """Open tables with live player counts, newest first."""
    return services.poker.list_open_tables()


@router.post("/tables", dependencies=operator)
def create_table(body: CreateTableRequest, services: WagerServices = Depends(get_services)) -> Dict[str, Any]:
    return services.poker.create_table(body.name, body.small_blind, body.big_blind, body.max_players)


@router.get("/tables/{table_id}")
def get_table(table_id: str, services: WagerServices = Depends(get_services)) -> Dict[str, Any]:
    return services.poker.get_table(table_id)


@router.get("/tables/{table_id}/players")
def get_table_players(table_id: str, services: WagerServices = Depends(get_services)) -> List[Dict[str, Any]]:
    return services.poker.get_table_players(table_id)


@router.get("/tables/{table_id}/history")
def get_table_history(
    table_id: str,
    limit: int = Query(50, ge=1, le=500),
    services: WagerServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return services.poker.get_table_history(table_id, limit=limit)


@router.post("/tables/{table_id}/close", dependencies=operator)
def close_table(table_id: str, services: WagerServices = Depends(get_services)) -> Dict[str, Any]:
    return services.poker.close_table(table_id)


# Seats
@router.post("/tables/{table_id}/join")
@limiter.limit(WAGER_LIMIT)
def join_table(
    request: Request,
    table_id: str,
    body: JoinTableRequest,
    user_id: int = Depends(require_eligible_user),
    services: WagerServices = Depends(get_services),
) -> Dict[str, Any]:
    """Take a seat; the buy-in is debited from the caller's balance."""
    return services.poker.join_table(table_id, user_id, body.buy_in)


@router.post("/tables/{table_id}/leave")
@limiter.limit(WAGER_LIMIT)
def leave_table(
    request: Request,
    table_id: str,
    body: LeaveTableRequest,
    user_id: int = Depends(get_current_user_id),
    services: WagerServices = Depends(get_services),
) -> Dict[str, Any]:
    """Leave a table; the cash out is credited to the caller's balance."""
    return services.poker.leave_table(table_id, user_id, body.cash_out)


# Hands
@router.post("/tables/{table_id}/hands", dependencies=operator)
def deal_hand(table_id: str, services: WagerServices = Depends(get_services)) -> Dict[str, Any]:
    return services.poker.deal_hand(table_id)


@router.post("/hands/{hand_id}/advance", dependencies=operator)
def advance_street(hand_id: str, services: WagerServices = Depends(get_services)) -> Dict[str, Any]:
    return services.poker.advance_street(hand_id)


@router.post("/hands/{hand_id}/complete", dependencies=operator)
def complete_hand(
    hand_id: str,
    body: CompleteHandRequest,
    services: WagerServices = Depends(get_services),
) -> Dict[str, Any]:
    return services.poker.complete_hand(hand_id, body.winner_id, body.winning_hand)


# Statistics
@router.get("/stats")
def get_player_stats(
    user_id: int = Depends(get_current_user_id),
    services: WagerServices = Depends(get_services),
) -> Dict[str, Any]:
    return services.poker.get_player_stats(user_id)


@router.get("/admin/stats", dependencies=operator)
def get_admin_stats(services: WagerServices = Depends(get_services)) -> Dict[str, Any]:
    return services.poker.get_admin_stats()
