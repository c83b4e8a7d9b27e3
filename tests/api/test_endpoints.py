"""
HTTP endpoint integration tests for the wager ledger API.

These tests verify that FastAPI endpoints:
- Enforce the API key and user identity headers
- Gate wager endpoints on sweepstakes eligibility
- Map ledger failures onto HTTP status codes
- Return balances and payouts as exact decimal amounts

Uses FastAPI TestClient for in-memory HTTP testing.
"""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

API_KEY = "test-api-key"


def user_headers(user_id: int) -> dict:
    return {"X-API-Key": API_KEY, "X-User-Id": str(user_id)}


def amount(value) -> Decimal:
    return Decimal(str(value))


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def table_id(test_client: TestClient, api_headers) -> str:
    response = test_client.post(
        "/api/v1/poker/tables",
        json={"name": "Main", "small_blind": 5, "big_blind": 10, "max_players": 2},
        headers=api_headers,
    )
    assert response.status_code == 200
    return response.json()["table_id"]


@pytest.fixture
def accepted(test_client: TestClient, users) -> dict:
    """Alice, Bob and Carol have accepted the sweepstakes terms."""
    for user_id in (users["alice"], users["bob"], users["carol"]):
        response = test_client.post("/api/v1/sweepstakes/accept-terms", headers=user_headers(user_id))
        assert response.status_code == 200
    return users


# =============================================================================
# ROOT & HEALTH
# =============================================================================

class TestRootEndpoints:
    """Tests for service information and health endpoints."""

    def test_root(self, test_client: TestClient):
        response = test_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "running"
        assert data["currency"] == "SC"
        assert data["endpoints"]["poker"] == "/api/v1/poker"

    def test_health(self, test_client: TestClient):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_detailed_health(self, test_client: TestClient, events):
        response = test_client.get("/api/health")

        assert response.status_code == 200
        components = response.json()["components"]
        assert components["database"]["status"] == "connected"
        assert components["event_cache"]["status"] == "loaded"
        assert components["scheduler"]["status"] == "stopped"


# =============================================================================
# AUTHENTICATION
# =============================================================================

class TestAuthentication:
    """Tests for API key and user identity headers."""

    def test_missing_api_key(self, test_client: TestClient, users):
        response = test_client.get("/api/v1/ledger/balance", headers={"X-User-Id": "1"})
        assert response.status_code == 401

    def test_invalid_api_key(self, test_client: TestClient, users):
        response = test_client.get(
            "/api/v1/ledger/balance", headers={"X-API-Key": "wrong", "X-User-Id": "1"},
        )
        assert response.status_code == 403

    def test_missing_user_id(self, test_client: TestClient, api_headers):
        response = test_client.get("/api/v1/ledger/balance", headers=api_headers)
        assert response.status_code == 401

    @pytest.mark.parametrize("user_id", ["abc", "0", "-4"])
    def test_invalid_user_id(self, test_client: TestClient, user_id):
        response = test_client.get(
            "/api/v1/ledger/balance", headers={"X-API-Key": API_KEY, "X-User-Id": user_id},
        )
        assert response.status_code == 401

    def test_operator_endpoint_requires_api_key(self, test_client: TestClient):
        response = test_client.post(
            "/api/v1/poker/tables", json={"name": "Main", "small_blind": 1, "big_blind": 2},
        )
        assert response.status_code == 401


# =============================================================================
# LEDGER ENDPOINTS
# =============================================================================

class TestLedgerEndpoints:
    """Tests for balance, history and adjustments."""

    def test_get_balance(self, test_client: TestClient, users):
        response = test_client.get("/api/v1/ledger/balance", headers=user_headers(users["alice"]))

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == users["alice"]
        assert amount(data["balance"]) == Decimal("1000.00")
        assert data["currency"] == "SC"

    def test_adjustment_and_history(self, test_client: TestClient, users, api_headers):
        response = test_client.post(
            "/api/v1/ledger/adjustments",
            json={"user_id": users["carol"], "amount": "25.5", "description": "Promo"},
            headers=api_headers,
        )
        assert response.status_code == 200
        assert amount(response.json()["balance_after"]) == Decimal("25.50")

        history = test_client.get("/api/v1/ledger/transactions", headers=user_headers(users["carol"]))
        assert history.status_code == 200
        assert [t["description"] for t in history.json()] == ["Promo"]

    def test_claw_back_below_zero_is_rejected(self, test_client: TestClient, users, api_headers):
        response = test_client.post(
            "/api/v1/ledger/adjustments",
            json={"user_id": users["bob"], "amount": "-600"},
            headers=api_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "insufficient_funds"


# =============================================================================
# POKER ENDPOINTS
# =============================================================================

class TestPokerEndpoints:
    """Tests for tables, seats and hands over HTTP."""

    def test_join_requires_terms(self, test_client: TestClient, users, table_id):
        response = test_client.post(
            f"/api/v1/poker/tables/{table_id}/join",
            json={"buy_in": 200},
            headers=user_headers(users["alice"]),
        )

        assert response.status_code == 403
        assert "terms" in response.json()["detail"]

    def test_join_refused_for_ineligible_user(self, test_client: TestClient, users, table_id):
        test_client.post("/api/v1/sweepstakes/accept-terms", headers=user_headers(users["minor"]))

        response = test_client.post(
            f"/api/v1/poker/tables/{table_id}/join",
            json={"buy_in": 200},
            headers=user_headers(users["minor"]),
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Must be 18+ years old"

    def test_join_and_leave(self, test_client: TestClient, accepted, table_id):
        headers = user_headers(accepted["alice"])

        joined = test_client.post(f"/api/v1/poker/tables/{table_id}/join", json={"buy_in": 200}, headers=headers)
        assert joined.status_code == 200
        assert amount(joined.json()["stack"]) == Decimal("200.00")

        table = test_client.get(f"/api/v1/poker/tables/{table_id}").json()
        assert table["current_players"] == 1

        left = test_client.post(f"/api/v1/poker/tables/{table_id}/leave", json={"cash_out": 260}, headers=headers)
        assert left.status_code == 200

        balance = test_client.get("/api/v1/ledger/balance", headers=headers).json()
        assert amount(balance["balance"]) == Decimal("1060.00")

    def test_invalid_buy_in(self, test_client: TestClient, accepted, table_id):
        response = test_client.post(
            f"/api/v1/poker/tables/{table_id}/join",
            json={"buy_in": 199},
            headers=user_headers(accepted["alice"]),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_buy_in"

    def test_unknown_table(self, test_client: TestClient, accepted):
        response = test_client.post(
            "/api/v1/poker/tables/table_missing/join",
            json={"buy_in": 200},
            headers=user_headers(accepted["alice"]),
        )

        assert response.status_code == 404
        assert response.json()["error"] == "table_not_found"

    def test_full_table(self, test_client: TestClient, accepted, table_id, api_headers):
        test_client.post("/api/v1/ledger/adjustments", json={"user_id": accepted["carol"], "amount": 300}, headers=api_headers)
        for user_id in (accepted["alice"], accepted["bob"]):
            response = test_client.post(
                f"/api/v1/poker/tables/{table_id}/join", json={"buy_in": 200}, headers=user_headers(user_id),
            )
            assert response.status_code == 200

        response = test_client.post(
            f"/api/v1/poker/tables/{table_id}/join", json={"buy_in": 200}, headers=user_headers(accepted["carol"]),
        )

        assert response.status_code == 409
        assert response.json()["error"] == "capacity_exceeded"

    def test_insufficient_funds(self, test_client: TestClient, accepted, table_id):
        response = test_client.post(
            f"/api/v1/poker/tables/{table_id}/join",
            json={"buy_in": 200},
            headers=user_headers(accepted["carol"]),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "insufficient_funds"

    def test_hand_lifecycle(self, test_client: TestClient, users, table_id, api_headers):
        dealt = test_client.post(f"/api/v1/poker/tables/{table_id}/hands", headers=api_headers)
        assert dealt.status_code == 200
        hand_id = dealt.json()["hand_id"]

        advanced = test_client.post(f"/api/v1/poker/hands/{hand_id}/advance", headers=api_headers)
        assert advanced.json()["status"] == "flop"

        body = {"winner_id": users["bob"], "winning_hand": "Royal Flush"}
        completed = test_client.post(f"/api/v1/poker/hands/{hand_id}/complete", json=body, headers=api_headers)
        assert completed.status_code == 200
        assert completed.json()["status"] == "finished"

        again = test_client.post(f"/api/v1/poker/hands/{hand_id}/complete", json=body, headers=api_headers)
        assert again.status_code == 409
        assert again.json()["error"] == "hand_already_finished"

        balance = test_client.get("/api/v1/ledger/balance", headers=user_headers(users["bob"])).json()
        assert amount(balance["balance"]) == Decimal("515.00")


# =============================================================================
# SPORTS ENDPOINTS
# =============================================================================

class TestSportsEndpoints:
    """Tests for events and parlays over HTTP."""

    def test_list_events(self, test_client: TestClient, events):
        response = test_client.get("/api/v1/sports/events", params={"sport": "nfl"})

        assert response.status_code == 200
        assert [e["event_id"] for e in response.json()] == ["nfl_002", "nfl_001"]

    def test_unknown_event(self, test_client: TestClient, events):
        response = test_client.get("/api/v1/sports/events/ghost")

        assert response.status_code == 404
        assert response.json()["error"] == "event_not_found"

    def test_place_and_settle_parlay(self, test_client: TestClient, accepted, events, api_headers):
        headers = user_headers(accepted["alice"])
        body = {
            "legs": [
                {"event_id": "nfl_001", "pick": "home", "bet_type": "moneyline", "odds": 150},
                {"event_id": "nfl_001", "pick": "over", "bet_type": "over_under", "odds": 120},
            ],
            "total_wager": 10,
        }

        placed = test_client.post("/api/v1/sports/parlays", json=body, headers=headers)
        assert placed.status_code == 200
        parlay = placed.json()
        assert amount(parlay["potential_payout"]) == Decimal("18.00")

        completed = test_client.post(
            "/api/v1/sports/events/nfl_001/complete",
            json={"home_score": 30, "away_score": 20},
            headers=api_headers,
        )
        assert completed.status_code == 200
        assert completed.json()["settled"] == [{"parlay_id": parlay["parlay_id"], "status": "won"}]

        fetched = test_client.get(f"/api/v1/sports/parlays/{parlay['parlay_id']}", headers=headers).json()
        assert fetched["status"] == "won"

        balance = test_client.get("/api/v1/ledger/balance", headers=headers).json()
        assert amount(balance["balance"]) == Decimal("1008.00")

    def test_invalid_parlay(self, test_client: TestClient, accepted, events):
        body = {
            "legs": [{"event_id": "nfl_001", "pick": "draw", "bet_type": "moneyline", "odds": 150}],
            "total_wager": 10,
        }

        response = test_client.post("/api/v1/sports/parlays", json=body, headers=user_headers(accepted["alice"]))

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_legs"

    def test_parlay_refused_for_excluded_state(self, test_client: TestClient, users, events):
        test_client.post("/api/v1/sweepstakes/accept-terms", headers=user_headers(users["montana"]))
        body = {
            "legs": [{"event_id": "nfl_001", "pick": "home", "bet_type": "moneyline", "odds": 150}],
            "total_wager": 10,
        }

        response = test_client.post("/api/v1/sports/parlays", json=body, headers=user_headers(users["montana"]))

        assert response.status_code == 403

    def test_completing_twice_conflicts(self, test_client: TestClient, events, api_headers):
        path = "/api/v1/sports/events/nba_001/complete"
        score = {"home_score": 101, "away_score": 99}

        assert test_client.post(path, json=score, headers=api_headers).status_code == 200
        assert test_client.post(path, json=score, headers=api_headers).status_code == 409

    def test_resolve_open_event_settles_nothing(self, test_client: TestClient, events, api_headers):
        response = test_client.post("/api/v1/sports/events/nba_001/resolve", headers=api_headers)

        assert response.status_code == 200
        assert response.json() == {"event_id": "nba_001", "settled": [], "waiting": 0}

    def test_resolve_unknown_event(self, test_client: TestClient, events, api_headers):
        response = test_client.post("/api/v1/sports/events/ghost/resolve", headers=api_headers)

        assert response.status_code == 404


# =============================================================================
# SWEEPSTAKES ENDPOINTS
# =============================================================================

class TestSweepstakesEndpoints:
    """Tests for eligibility and compliance endpoints."""

    def test_eligibility(self, test_client: TestClient, users):
        response = test_client.get("/api/v1/sweepstakes/eligibility", headers=user_headers(users["france"]))

        assert response.status_code == 200
        data = response.json()
        assert data["is_eligible"] is False
        assert data["reason"] == "Only available in US and Canada"

    def test_unknown_user(self, test_client: TestClient):
        response = test_client.get("/api/v1/sweepstakes/eligibility", headers=user_headers(999))

        assert response.status_code == 404
        assert response.json()["error"] == "user_not_found"

    def test_rules_are_public_to_the_front_end(self, test_client: TestClient):
        response = test_client.get("/api/v1/sweepstakes/rules")

        assert response.status_code == 200
        assert response.json()["eligibility"]["minimum_age"] == 18

    def test_privacy_policy_is_public(self, test_client: TestClient):
        response = test_client.get("/api/v1/sweepstakes/privacy-policy")

        assert response.status_code == 200
        assert response.json()["title"] == "Privacy Policy"

    def test_terms_are_public(self, test_client: TestClient):
        response = test_client.get("/api/v1/sweepstakes/terms")

        assert response.status_code == 200
        assert response.json()["sections"]["acceptance"].startswith("By using the platform")

    def test_admin_logs(self, test_client: TestClient, users, api_headers):
        test_client.get("/api/v1/sweepstakes/eligibility", headers=user_headers(users["alice"]))

        response = test_client.get("/api/v1/sweepstakes/admin/logs", headers=api_headers)

        assert response.status_code == 200
        assert response.json()[0]["username"] == "alice"
