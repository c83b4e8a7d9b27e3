"""
Tests for poker tables, seats and hands.
"""
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from wager_ledger.core.exceptions import (
    AlreadySeated,
    ConflictError,
    HandAlreadyFinished,
    HandNotFound,
    InsufficientFunds,
    InvalidAmount,
    InvalidBuyIn,
    InvalidInputError,
    PlayerNotFound,
    TableClosed,
    TableFull,
    TableNotFound,
)


@pytest.fixture
def table(services):
    """An open 5/10 table with two seats."""
    return services.poker.create_table("Heads Up", 5, 10, max_players=2)


# =============================================================================
# Tables
# =============================================================================

class TestTables:
    """Table creation and listing."""

    def test_create_table_derives_buy_in_bounds(self, services):
        table = services.poker.create_table("High Stakes", "2.50", 5)

        assert table["table_id"].startswith("table_")
        assert table["min_buy_in"] == Decimal("100.00")
        assert table["max_buy_in"] == Decimal("2500.00")
        assert table["max_players"] == 6
        assert table["current_players"] == 0
        assert table["status"] == "open"

    @pytest.mark.parametrize("name,small,big,seats", [
        ("", 1, 2, 6),
        ("Bad blinds", 0, 2, 6),
        ("Bad blinds", 1, -2, 6),
        ("Inverted", 5, 2, 6),
        ("Solo", 1, 2, 1),
    ])
    def test_create_table_rejects_bad_configuration(self, services, name, small, big, seats):
        with pytest.raises(InvalidInputError):
            services.poker.create_table(name, small, big, max_players=seats)

    def test_list_open_tables_counts_active_seats(self, services, users, table):
        services.poker.create_table("Empty", 1, 2)
        services.poker.join_table(table["table_id"], users["alice"], 200)

        listed = {t["table_id"]: t for t in services.poker.list_open_tables()}

        assert len(listed) == 2
        assert listed[table["table_id"]]["current_players"] == 1

    def test_close_table_blocks_joins_and_deals(self, services, users, table):
        services.poker.close_table(table["table_id"])

        with pytest.raises(TableClosed):
            services.poker.join_table(table["table_id"], users["alice"], 200)
        with pytest.raises(TableClosed):
            services.poker.deal_hand(table["table_id"])
        assert services.poker.list_open_tables() == []

    def test_unknown_table(self, services, users):
        with pytest.raises(TableNotFound):
            services.poker.join_table("table_missing", users["alice"], 200)
        with pytest.raises(TableNotFound):
            services.poker.get_table("table_missing")
        with pytest.raises(TableNotFound):
            services.poker.deal_hand("table_missing")


# =============================================================================
# Seats
# =============================================================================

class TestJoinTable:
    """Buy-in validation, capacity and funds."""

    def test_buy_in_below_minimum_rejected(self, services, users, table):
        with pytest.raises(InvalidBuyIn):
            services.poker.join_table(table["table_id"], users["alice"], 199)

        assert services.ledger.get_balance(users["alice"]) == Decimal("1000.00")
        assert services.poker.get_table_players(table["table_id"]) == []

    def test_buy_in_at_minimum_accepted(self, services, users, table):
        seat = services.poker.join_table(table["table_id"], users["alice"], 200)

        assert seat["player_id"] == users["alice"]
        assert seat["stack"] == Decimal("200.00")
        assert seat["position"] == "under-the-gun"
        assert services.ledger.get_balance(users["alice"]) == Decimal("800.00")

        history = services.ledger.list_transactions(users["alice"], limit=1)
        assert history[0]["description"] == "Poker table buy-in"
        assert history[0]["reference_id"] == table["table_id"]

    def test_buy_in_above_maximum_rejected(self, services, users, table):
        services.ledger.adjust(users["alice"], 5000, "Top up")

        with pytest.raises(InvalidBuyIn):
            services.poker.join_table(table["table_id"], users["alice"], 5001)
        services.poker.join_table(table["table_id"], users["alice"], 5000)

    def test_second_join_rejected(self, services, users, table):
        services.poker.join_table(table["table_id"], users["alice"], 200)

        with pytest.raises(AlreadySeated):
            services.poker.join_table(table["table_id"], users["alice"], 200)
        assert services.ledger.get_balance(users["alice"]) == Decimal("800.00")

    def test_full_table_rejects_without_debit(self, services, users, table):
        services.poker.join_table(table["table_id"], users["alice"], 200)
        services.poker.join_table(table["table_id"], users["bob"], 200)
        services.ledger.credit(users["carol"], 300, "Promo")

        with pytest.raises(TableFull):
            services.poker.join_table(table["table_id"], users["carol"], 200)
        assert services.ledger.get_balance(users["carol"]) == Decimal("300.00")

    def test_insufficient_funds_leaves_no_seat(self, services, users, table):
        with pytest.raises(InsufficientFunds):
            services.poker.join_table(table["table_id"], users["carol"], 200)

        assert services.poker.get_table(table["table_id"])["current_players"] == 0

    def test_concurrent_joins_never_overbook(self, services, users):
        table = services.poker.create_table("Rush", 1, 2, max_players=3)
        players = list(range(100, 108))
        for user_id in players:
            services.ledger.adjust(user_id, 100, "Initial grant")

        def attempt(user_id):
            try:
                services.poker.join_table(table["table_id"], user_id, 40)
                return True
            except TableFull:
                return False

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, players))

        assert results.count(True) == 3
        assert services.poker.get_table(table["table_id"])["current_players"] == 3
        debited = [u for u in players if services.ledger.get_balance(u) == Decimal("60.00")]
        assert len(debited) == 3


class TestLeaveTable:
    """Cash out and seat removal."""

    def test_leave_credits_cash_out(self, services, users, table):
        services.poker.join_table(table["table_id"], users["alice"], 200)

        seat = services.poker.leave_table(table["table_id"], users["alice"], 350)

        assert seat["is_active"] is False
        assert seat["left_at"] is not None
        assert services.ledger.get_balance(users["alice"]) == Decimal("1150.00")
        assert services.poker.get_table_players(table["table_id"]) == []

    def test_leave_without_seat(self, services, users, table):
        with pytest.raises(PlayerNotFound):
            services.poker.leave_table(table["table_id"], users["alice"], 0)

    def test_second_leave_rejected(self, services, users, table):
        services.poker.join_table(table["table_id"], users["alice"], 200)
        services.poker.leave_table(table["table_id"], users["alice"], 200)

        with pytest.raises(PlayerNotFound):
            services.poker.leave_table(table["table_id"], users["alice"], 200)
        assert services.ledger.get_balance(users["alice"]) == Decimal("1000.00")

    def test_zero_cash_out_moves_no_funds(self, services, users, table):
        services.poker.join_table(table["table_id"], users["alice"], 200)
        records_before = len(services.ledger.list_transactions(users["alice"]))

        services.poker.leave_table(table["table_id"], users["alice"], 0)

        assert len(services.ledger.list_transactions(users["alice"])) == records_before
        assert services.ledger.get_balance(users["alice"]) == Decimal("800.00")

    def test_negative_cash_out_rejected(self, services, users, table):
        services.poker.join_table(table["table_id"], users["alice"], 200)

        with pytest.raises(InvalidAmount):
            services.poker.leave_table(table["table_id"], users["alice"], -1)
        assert len(services.poker.get_table_players(table["table_id"])) == 1

    def test_rejoin_after_leaving(self, services, users, table):
        services.poker.join_table(table["table_id"], users["alice"], 200)
        services.poker.leave_table(table["table_id"], users["alice"], 200)

        services.poker.join_table(table["table_id"], users["alice"], 300)

        players = services.poker.get_table_players(table["table_id"])
        assert [p["stack"] for p in players] == [Decimal("300.00")]


# =============================================================================
# Hands
# =============================================================================

class TestHands:
    """Deal, street progression and single completion."""

    def test_deal_puts_blinds_in_pot(self, services, table):
        hand = services.poker.deal_hand(table["table_id"])

        assert hand["status"] == "pre-flop"
        assert hand["pot"] == Decimal("15.00")
        assert hand["community"] == []
        assert hand["winner_id"] is None

    def test_advance_through_streets(self, services, table):
        hand = services.poker.deal_hand(table["table_id"])

        statuses = [services.poker.advance_street(hand["hand_id"])["status"] for _ in range(3)]

        assert statuses == ["flop", "turn", "river"]
        with pytest.raises(ConflictError):
            services.poker.advance_street(hand["hand_id"])

    def test_complete_hand_pays_pot_once(self, services, users, table):
        services.poker.join_table(table["table_id"], users["alice"], 200)
        hand = services.poker.deal_hand(table["table_id"])

        finished = services.poker.complete_hand(hand["hand_id"], users["alice"], "Full House")

        assert finished["status"] == "finished"
        assert finished["winner_id"] == users["alice"]
        assert finished["winning_hand"] == "Full House"
        assert services.ledger.get_balance(users["alice"]) == Decimal("815.00")

        with pytest.raises(HandAlreadyFinished):
            services.poker.complete_hand(hand["hand_id"], users["bob"], "Flush")
        with pytest.raises(HandAlreadyFinished):
            services.poker.advance_street(hand["hand_id"])
        assert services.ledger.get_balance(users["alice"]) == Decimal("815.00")
        assert services.ledger.get_balance(users["bob"]) == Decimal("500.00")

    def test_concurrent_completion_pays_once(self, services, users, table):
        hand = services.poker.deal_hand(table["table_id"])

        def attempt(_):
            try:
                services.poker.complete_hand(hand["hand_id"], users["alice"], "Straight")
                return True
            except HandAlreadyFinished:
                return False

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(attempt, range(4)))

        assert results.count(True) == 1
        assert services.ledger.get_balance(users["alice"]) == Decimal("1015.00")

    def test_win_counted_on_winners_seat(self, services, users, table):
        services.poker.join_table(table["table_id"], users["alice"], 200)
        hand = services.poker.deal_hand(table["table_id"])
        services.poker.complete_hand(hand["hand_id"], users["alice"], "Two Pair")

        players = services.poker.get_table_players(table["table_id"])
        stats = services.poker.get_player_stats(users["alice"])

        assert players[0]["total_wins"] == 1
        assert stats["total_wins"] == 1
        assert stats["tables_joined"] == 1
        assert stats["winning_sessions"] == 1

    def test_unknown_hand(self, services):
        with pytest.raises(HandNotFound):
            services.poker.complete_hand("hand_missing", 1, "Flush")

    def test_table_history_and_admin_stats(self, services, users, table):
        first = services.poker.deal_hand(table["table_id"])
        services.poker.deal_hand(table["table_id"])
        services.poker.complete_hand(first["hand_id"], users["alice"], "Flush")

        history = services.poker.get_table_history(table["table_id"])
        stats = services.poker.get_admin_stats()

        assert len(history) == 2
        assert stats["total_tables"] == 1
        assert stats["open_tables"] == 1
        assert stats["total_pots_distributed"] == Decimal("15.00")
        assert stats["avg_pot_size"] == Decimal("15.00")
