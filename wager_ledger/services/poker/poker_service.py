"""
Poker table registry and hand lifecycle.

Tables hold configuration (blinds, buy-in bounds, capacity) and seats; hands
carry a pot from deal to a single completion. All money moves through the
BalanceLedger inside the same unit of work as the seat or hand change:

    join_table:     debit buy-in   + insert seat
    leave_table:    credit cash out + deactivate seat
    complete_hand:  credit pot     + finish hand

Buy-in bounds:
- min_buy_in = 20 x big_blind
- max_buy_in = 500 x big_blind

There is no dealing or hand evaluation: community cards stay empty, and the
winner and winning hand passed to ``complete_hand`` are taken as given, as is
the cash-out amount passed to ``leave_table``.
"""
import logging
from typing import Dict, List

from sqlalchemy.orm import sessionmaker

from wager_ledger.core.database import session_scope
from wager_ledger.core.exceptions import (
    AlreadySeated,
    ConflictError,
    HandAlreadyFinished,
    HandNotFound,
    InvalidAmount,
    InvalidBuyIn,
    InvalidInputError,
    LedgerError,
    PlayerNotFound,
    TableClosed,
    TableFull,
    TableNotFound,
)
from wager_ledger.core.locks import KeyedLocks, balance_key, hand_key, table_key
from wager_ledger.core.metrics import payouts_total, wagers_placed_total, wagers_rejected_total
from wager_ledger.models import PokerHand, PokerPlayer, PokerTable
from wager_ledger.repositories import HandRepository, SeatRepository, TableRepository
from wager_ledger.services.ledger import BalanceLedger
from wager_ledger.utils.ids import new_id
from wager_ledger.utils.money import q2, to_decimal
from wager_ledger.utils.timezone import isoformat_or_none, utc_now

logger = logging.getLogger(__name__)

MIN_BUY_IN_BIG_BLINDS = 20
MAX_BUY_IN_BIG_BLINDS = 500
DEFAULT_MAX_PLAYERS = 6
DEFAULT_POSITION = "under-the-gun"

# Street progression before completion; "finished" is only reached via complete_hand
STREETS = ["pre-flop", "flop", "turn", "river"]


def table_to_dict(table: PokerTable, current_players: int) -> Dict:
    return {
        "table_id": table.id,
        "name": table.name,
        "stakes": {"small_blind": table.small_blind, "big_blind": table.big_blind},
        "max_players": table.max_players,
        "current_players": current_players,
        "status": table.status,
        "min_buy_in": table.min_buy_in,
        "max_buy_in": table.max_buy_in,
        "created_at": isoformat_or_none(table.created_at),
    }


def seat_to_dict(seat: PokerPlayer) -> Dict:
    return {
        "player_id": seat.user_id,
        "table_id": seat.table_id,
        "stack": seat.stack,
        "position": seat.position,
        "is_active": seat.is_active,
        "total_wins": seat.total_wins,
        "total_losses": seat.total_losses,
        "joined_at": isoformat_or_none(seat.joined_at),
        "left_at": isoformat_or_none(seat.left_at),
    }


def hand_to_dict(hand: PokerHand) -> Dict:
    return {
        "hand_id": hand.id,
        "table_id": hand.table_id,
        "button_position": hand.button_position,
        "small_blind_amount": hand.small_blind_amount,
        "big_blind_amount": hand.big_blind_amount,
        "pot": hand.pot,
        "community": list(hand.community or []),
        "status": hand.status,
        "winner_id": hand.winner_id,
        "winning_hand": hand.winning_hand,
        "started_at": isoformat_or_none(hand.started_at),
        "finished_at": isoformat_or_none(hand.finished_at),
    }


class PokerService:
    """Table registry, seat management and hand lifecycle."""

    def __init__(self, session_factory: sessionmaker, locks: KeyedLocks, ledger: BalanceLedger):
        self.session_factory = session_factory
        self.locks = locks
        self.ledger = ledger

    # ========================================================================
    # Tables
    # ========================================================================

    def create_table(self, name: str, small_blind, big_blind, max_players: int = DEFAULT_MAX_PLAYERS) -> Dict:
        """
        Create an open table. Buy-in bounds are derived from the big blind.

        Raises:
            InvalidInputError: empty name, non-positive blinds or fewer than 2 seats
        """
        if not name or not name.strip():
            raise InvalidInputError("Table name is required")
        try:
            small = q2(to_decimal(small_blind))
            big = q2(to_decimal(big_blind))
        except ValueError as e:
            raise InvalidAmount(str(e)) from e
        if small <= 0 or big <= 0:
            raise InvalidAmount("Blinds must be greater than zero", small_blind=str(small), big_blind=str(big))
        if small > big:
            raise InvalidInputError("Small blind cannot exceed big blind")
        if int(max_players) < 2:
            raise InvalidInputError("A table needs at least 2 seats", max_players=max_players)

        with session_scope(self.session_factory) as db:
            table = TableRepository(db).create(
                id=new_id("table"),
                name=name.strip(),
                small_blind=small,
                big_blind=big,
                max_players=int(max_players),
                min_buy_in=q2(big * MIN_BUY_IN_BIG_BLINDS),
                max_buy_in=q2(big * MAX_BUY_IN_BIG_BLINDS),
                status="open",
            )
            snapshot = table_to_dict(table, 0)

        logger.info(f"Created poker table {snapshot['table_id']} ({name}) blinds {small}/{big}")
        return snapshot

    def list_open_tables(self) -> List[Dict]:
        """Open tables with their live count of active seats, newest first."""
        with session_scope(self.session_factory) as db:
            rows = TableRepository(db).find_by_status_with_counts("open")
            return [table_to_dict(table, count or 0) for table, count in rows]

    def get_table(self, table_id: str) -> Dict:
        with session_scope(self.session_factory) as db:
            table = TableRepository(db).find_by_id(table_id)
            if table is None:
                raise TableNotFound("Table not found", table_id=table_id)
            return table_to_dict(table, SeatRepository(db).count_active(table_id))

    def get_table_players(self, table_id: str) -> List[Dict]:
        """Active seats at a table, in join order."""
        with session_scope(self.session_factory) as db:
            if TableRepository(db).find_by_id(table_id) is None:
                raise TableNotFound("Table not found", table_id=table_id)
            return [seat_to_dict(s) for s in SeatRepository(db).find_active_for_table(table_id)]

    def close_table(self, table_id: str) -> Dict:
        """Close a table. Seated players can still leave; nobody can join or deal."""
        with self.locks.hold(table_key(table_id)), session_scope(self.session_factory) as db:
            tables = TableRepository(db)
            table = tables.find_by_id(table_id, for_update=True)
            if table is None:
                raise TableNotFound("Table not found", table_id=table_id)
            table.status = "closed"
            tables.flush()
            snapshot = table_to_dict(table, SeatRepository(db).count_active(table_id))

        logger.info(f"Closed poker table {table_id}")
        return snapshot

    # ========================================================================
    # Seats
    # ========================================================================

    def join_table(self, table_id: str, user_id: int, buy_in) -> Dict:
        """
        Seat a user at a table, debiting the buy-in.

        The capacity check, the debit and the seat insert happen under the
        table and balance locks in one transaction, so concurrent joins can
        never overbook a table or spend the same coins twice.

        Raises:
            TableNotFound, TableClosed, InvalidBuyIn, AlreadySeated,
            TableFull, InsufficientFunds
        """
        try:
            with self.locks.hold(table_key(table_id), balance_key(user_id)), \
                    session_scope(self.session_factory) as db:
                table = TableRepository(db).find_by_id(table_id, for_update=True)
                if table is None:
                    raise TableNotFound("Table not found", table_id=table_id)
                if table.status == "closed":
                    raise TableClosed("Table is closed", table_id=table_id)

                amount = self._buy_in(buy_in, table)

                seats = SeatRepository(db)
                if seats.find_active(table_id, user_id) is not None:
                    raise AlreadySeated("Player is already seated at this table", table_id=table_id, user_id=user_id)
                if seats.count_active(table_id) >= table.max_players:
                    raise TableFull("Table is full", table_id=table_id, max_players=table.max_players)

                self.ledger.debit(
                    user_id, amount, "Poker table buy-in",
                    reference_type="table", reference_id=table_id, db=db,
                )
                seat = seats.create(
                    table_id=table_id,
                    user_id=user_id,
                    stack=amount,
                    position=DEFAULT_POSITION,
                    is_active=True,
                )
                snapshot = seat_to_dict(seat)
        except LedgerError as e:
            wagers_rejected_total.labels(reason=e.code).inc()
            raise

        wagers_placed_total.labels(kind="table_buy_in").inc()
        logger.info(f"User {user_id} joined table {table_id} with {amount}")
        return snapshot

    def leave_table(self, table_id: str, user_id: int, cash_out) -> Dict:
        """
        Deactivate the user's seat and credit ``cash_out``.

        The cash-out amount is caller-supplied and not reconciled with the
        seat's stack. A zero cash-out (busted player) moves no funds.

        Raises:
            PlayerNotFound: no active seat for this user at this table
            InvalidAmount: negative or non-numeric cash out
        """
        try:
            amount = q2(to_decimal(cash_out))
        except ValueError as e:
            raise InvalidAmount(str(e)) from e
        if amount < 0:
            raise InvalidAmount("Cash out cannot be negative", cash_out=str(amount))

        with self.locks.hold(table_key(table_id), balance_key(user_id)), \
                session_scope(self.session_factory) as db:
            seats = SeatRepository(db)
            seat = seats.find_active(table_id, user_id, for_update=True)
            if seat is None:
                raise PlayerNotFound("Player not found at this table", table_id=table_id, user_id=user_id)

            seat.is_active = False
            seat.left_at = utc_now()
            seats.flush()

            if amount > 0:
                self.ledger.credit(
                    user_id, amount, "Poker table cash out",
                    reference_type="table", reference_id=table_id, db=db,
                )
            snapshot = seat_to_dict(seat)

        if amount > 0:
            payouts_total.labels(kind="table_cash_out").inc()
        logger.info(f"User {user_id} left table {table_id}, cash out {amount}")
        return snapshot

    # ========================================================================
    # Hands
    # ========================================================================

    def deal_hand(self, table_id: str) -> Dict:
        """Start a hand in ``pre-flop`` with the blinds in the pot."""
        with self.locks.hold(table_key(table_id)), session_scope(self.session_factory) as db:
            table = TableRepository(db).find_by_id(table_id, for_update=True)
            if table is None:
                raise TableNotFound("Table not found", table_id=table_id)
            if table.status == "closed":
                raise TableClosed("Table is closed", table_id=table_id)

            hand = HandRepository(db).create(
                id=new_id("hand"),
                table_id=table_id,
                button_position=0,
                small_blind_amount=table.small_blind,
                big_blind_amount=table.big_blind,
                pot=q2(table.small_blind + table.big_blind),
                community=[],
                status="pre-flop",
            )
            snapshot = hand_to_dict(hand)

        logger.info(f"Dealt hand {snapshot['hand_id']} at table {table_id}, pot {snapshot['pot']}")
        return snapshot

    def advance_street(self, hand_id: str) -> Dict:
        """Move a hand to the next street (pre-flop -> flop -> turn -> river)."""
        with self.locks.hold(hand_key(hand_id)), session_scope(self.session_factory) as db:
            hands = HandRepository(db)
            hand = hands.find_by_id(hand_id, for_update=True)
            if hand is None:
                raise HandNotFound("Hand not found", hand_id=hand_id)
            if hand.status == "finished":
                raise HandAlreadyFinished("Hand is already finished", hand_id=hand_id)
            if hand.status == STREETS[-1]:
                raise ConflictError("Hand is on the river; complete it to finish", hand_id=hand_id)

            hand.status = STREETS[STREETS.index(hand.status) + 1]
            hands.flush()
            return hand_to_dict(hand)

    def complete_hand(self, hand_id: str, winner_id: int, winning_hand: str) -> Dict:
        """
        Finish a hand, credit the pot to ``winner_id`` and bump their win count.

        A hand finishes exactly once; a second call raises HandAlreadyFinished
        and pays nothing.
        """
        with self.locks.hold(hand_key(hand_id), balance_key(winner_id)), \
                session_scope(self.session_factory) as db:
            hands = HandRepository(db)
            hand = hands.find_by_id(hand_id, for_update=True)
            if hand is None:
                raise HandNotFound("Hand not found", hand_id=hand_id)
            if hand.status == "finished":
                raise HandAlreadyFinished("Hand is already finished", hand_id=hand_id)

            hand.status = "finished"
            hand.winner_id = winner_id
            hand.winning_hand = winning_hand
            hand.finished_at = utc_now()
            hands.flush()

            self.ledger.credit(
                winner_id, hand.pot, f"Poker hand win with {winning_hand}",
                reference_type="hand", reference_id=hand_id, db=db,
            )

            seats = SeatRepository(db)
            seat = seats.find_active(hand.table_id, winner_id) or seats.find_latest(hand.table_id, winner_id)
            if seat is not None:
                seat.total_wins += 1
                seats.flush()
            else:
                logger.warning(f"Hand {hand_id} winner {winner_id} never sat at table {hand.table_id}")

            snapshot = hand_to_dict(hand)

        payouts_total.labels(kind="hand_win").inc()
        logger.info(f"Hand {hand_id} won by user {winner_id} with {winning_hand}, pot {snapshot['pot']}")
        return snapshot

    # ========================================================================
    # Statistics
    # ========================================================================

    def get_player_stats(self, user_id: int) -> Dict:
        with session_scope(self.session_factory) as db:
            tables_joined, winning_sessions, wins, losses, avg_stack = SeatRepository(db).stats_for_user(user_id)
        return {
            "user_id": user_id,
            "tables_joined": tables_joined or 0,
            "winning_sessions": int(winning_sessions or 0),
            "total_wins": int(wins or 0),
            "total_losses": int(losses or 0),
            "avg_stack": q2(avg_stack) if avg_stack is not None else None,
        }

    def get_admin_stats(self) -> Dict:
        with session_scope(self.session_factory) as db:
            tables = TableRepository(db)
            seats = SeatRepository(db)
            total_pots, avg_pot = HandRepository(db).finished_pot_totals()
            return {
                "total_tables": tables.count(),
                "open_tables": tables.count(PokerTable.status == "open"),
                "active_players": seats.count(PokerPlayer.is_active.is_(True)),
                "tables_with_players": seats.count_tables_with_players(),
                "total_pots_distributed": q2(total_pots or 0),
                "avg_pot_size": q2(avg_pot) if avg_pot is not None else None,
            }

    def get_table_history(self, table_id: str, limit: int = 50) -> List[Dict]:
        """Hands dealt at a table, most recent first."""
        with session_scope(self.session_factory) as db:
            if TableRepository(db).find_by_id(table_id) is None:
                raise TableNotFound("Table not found", table_id=table_id)
            return [hand_to_dict(h) for h in HandRepository(db).find_for_table(table_id, limit)]

    # ========================================================================
    # Helpers
    # ========================================================================

    def _buy_in(self, buy_in, table: PokerTable):
        try:
            amount = q2(to_decimal(buy_in))
        except ValueError as e:
            raise InvalidBuyIn(str(e), table_id=table.id) from e
        if amount < table.min_buy_in or amount > table.max_buy_in:
            raise InvalidBuyIn(
                f"Buy-in must be between {table.min_buy_in} and {table.max_buy_in}",
                table_id=table.id,
                min_buy_in=str(table.min_buy_in),
                max_buy_in=str(table.max_buy_in),
            )
        return amount
