"""
Database models for the sweepstakes wager ledger.

Money columns are ``Numeric(16, 2)`` and surface as ``Decimal``; a balance is
never written directly by feature code, only through the ledger service.
Identifiers of wager entities are prefixed strings (``table_...``,
``hand_...``, ``parlay_...``, ``leg_...``) generated by the services.
"""
from sqlalchemy import (
    Column, String, Float, Integer, DateTime, Date, ForeignKey, Boolean,
    Numeric, Index, JSON, text,
)
from sqlalchemy.orm import relationship, declarative_base

from wager_ledger.utils.timezone import utc_now

Base = declarative_base()

MONEY = Numeric(16, 2)


# =============================================================================
# USERS & LEDGER
# =============================================================================

class User(Base):
    """Registered user, as far as eligibility checks need it."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(255), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    state = Column(String(2), nullable=True)  # US state / CA province code
    country = Column(String(2), nullable=True)  # ISO 3166-1 alpha-2, defaults to US when missing
    created_at = Column(DateTime, nullable=False, default=utc_now)


class UserBalance(Base):
    """Spendable sweeps-coin balance, one row per user."""
    __tablename__ = "user_balances"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, unique=True, nullable=False, index=True)
    sweeps_coins = Column(MONEY, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)


class Transaction(Base):
    """Append-only record of a single balance movement."""
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    transaction_type = Column(String(20), nullable=False)  # bet, win, adjustment
    currency = Column(String(3), nullable=False)
    amount = Column(MONEY, nullable=False)
    balance_after = Column(MONEY, nullable=False)
    description = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="completed")
    reference_type = Column(String(20), nullable=True)  # table, hand, parlay
    reference_id = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now, index=True)

    __table_args__ = (
        Index("ix_transactions_reference", "reference_type", "reference_id"),
    )


# =============================================================================
# POKER
# =============================================================================

class PokerTable(Base):
    """Poker table configuration. Never deleted, only closed."""
    __tablename__ = "poker_tables"

    id = Column(String(64), primary_key=True)
    name = Column(String(100), nullable=False)
    small_blind = Column(MONEY, nullable=False)
    big_blind = Column(MONEY, nullable=False)
    max_players = Column(Integer, nullable=False, default=6)
    min_buy_in = Column(MONEY, nullable=False)
    max_buy_in = Column(MONEY, nullable=False)
    status = Column(String(10), nullable=False, default="open", index=True)  # open, playing, closed
    created_at = Column(DateTime, nullable=False, default=utc_now, index=True)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    seats = relationship("PokerPlayer", back_populates="table")
    hands = relationship("PokerHand", back_populates="table")


class PokerPlayer(Base):
    """A seat at a table. Soft-removed on leave, retained for statistics."""
    __tablename__ = "poker_players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    table_id = Column(String(64), ForeignKey("poker_tables.id"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    stack = Column(MONEY, nullable=False)
    position = Column(String(20), nullable=False, default="under-the-gun")
    is_active = Column(Boolean, nullable=False, default=True)
    total_wins = Column(Integer, nullable=False, default=0)
    total_losses = Column(Integer, nullable=False, default=0)
    joined_at = Column(DateTime, nullable=False, default=utc_now)
    left_at = Column(DateTime, nullable=True)

    table = relationship("PokerTable", back_populates="seats")

    __table_args__ = (
        # At most one active seat per (table, user)
        Index(
            "ux_poker_players_active_seat", "table_id", "user_id",
            unique=True,
            sqlite_where=text("is_active"),
            postgresql_where=text("is_active"),
        ),
    )


class PokerHand(Base):
    """One hand at a table, from deal to a single completion."""
    __tablename__ = "poker_hands"

    id = Column(String(64), primary_key=True)
    table_id = Column(String(64), ForeignKey("poker_tables.id"), nullable=False, index=True)
    button_position = Column(Integer, nullable=False, default=0)
    small_blind_amount = Column(MONEY, nullable=False)
    big_blind_amount = Column(MONEY, nullable=False)
    pot = Column(MONEY, nullable=False)
    community = Column(JSON, nullable=False, default=list)  # no dealing logic, always empty
    status = Column(String(10), nullable=False, default="pre-flop")  # pre-flop, flop, turn, river, finished
    winner_id = Column(Integer, nullable=True)
    winning_hand = Column(String(100), nullable=True)
    started_at = Column(DateTime, nullable=False, default=utc_now, index=True)
    finished_at = Column(DateTime, nullable=True)

    table = relationship("PokerTable", back_populates="hands")


# =============================================================================
# SPORTS
# =============================================================================

class SportsEvent(Base):
    """A catalog event with its current lines and score state."""
    __tablename__ = "sports_events"

    id = Column(String(64), primary_key=True)
    sport = Column(String(10), nullable=False, index=True)  # nfl, nba, mlb, nhl, ncaa
    home_team = Column(String(100), nullable=False)
    away_team = Column(String(100), nullable=False)
    start_time = Column(DateTime, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="scheduled", index=True)  # scheduled, in-progress, completed, postponed
    home_score = Column(Integer, nullable=True)
    away_score = Column(Integer, nullable=True)
    spread = Column(Float, nullable=True)  # Negative favours the home team
    over_under = Column(Float, nullable=True)
    moneyline_home = Column(Float, nullable=True)  # American odds
    moneyline_away = Column(Float, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)


class SportsParlay(Base):
    """A multi-leg wager; settles exactly once after every leg is graded."""
    __tablename__ = "sports_parlays"

    id = Column(String(64), primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    total_wager = Column(MONEY, nullable=False)
    potential_payout = Column(MONEY, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)  # pending, pending_results, won, lost
    created_at = Column(DateTime, nullable=False, default=utc_now, index=True)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)
    settled_at = Column(DateTime, nullable=True)

    legs = relationship("ParlayLeg", back_populates="parlay", order_by="ParlayLeg.position")


class ParlayLeg(Base):
    """A single pick inside a parlay. Only ``result`` changes after creation."""
    __tablename__ = "parlay_legs"

    id = Column(String(64), primary_key=True)
    parlay_id = Column(String(64), ForeignKey("sports_parlays.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    event_id = Column(String(64), ForeignKey("sports_events.id"), nullable=False, index=True)
    pick = Column(String(10), nullable=False)  # home, away, over, under
    bet_type = Column(String(20), nullable=False)  # spread, moneyline, over_under
    odds = Column(Float, nullable=False)
    result = Column(String(10), nullable=True)  # won, lost, pending
    graded_at = Column(DateTime, nullable=True)

    parlay = relationship("SportsParlay", back_populates="legs")


# =============================================================================
# SWEEPSTAKES COMPLIANCE
# =============================================================================

class SweepstakesCompliance(Base):
    """Terms acceptance, one row per user."""
    __tablename__ = "sweepstakes_compliance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, unique=True, nullable=False)
    terms_accepted = Column(Boolean, nullable=False, default=False)
    disclaimer_accepted = Column(Boolean, nullable=False, default=False)
    privacy_accepted = Column(Boolean, nullable=False, default=False)
    accepted_at = Column(DateTime, nullable=True)


class ComplianceLog(Base):
    """Audit row written by every eligibility check."""
    __tablename__ = "compliance_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    check_type = Column(String(20), nullable=False, default="eligibility")
    age = Column(Integer, nullable=True)
    state = Column(String(2), nullable=True)
    is_eligible = Column(Boolean, nullable=False)
    reason = Column(String(255), nullable=True)
    checked_at = Column(DateTime, nullable=False, default=utc_now, index=True)
