"""
Leg grading and payout math for parlays.

Grading a leg against a final score:
- moneyline:  the picked side scored strictly more
- spread:     home covers when home + spread > away; away covers when
              away - spread > home (spread is quoted for the home team,
              negative favours home)
- over_under: total points strictly over / under the line

Ties and pushes grade ``lost``. A leg whose line is missing grades ``lost``
as well, since there is nothing to beat.

Payout:
    potential_payout = total_wager x PRODUCT(odds / 100)

The odds/100 multiplier is the house convention for these parlays, not an
American-to-decimal conversion, and is kept as-is so existing tickets pay
what they quoted.
"""
from decimal import Decimal
from typing import Iterable, Optional

from wager_ledger.utils.money import q2

PICKS = {"home", "away", "over", "under"}
BET_TYPES = {"spread", "moneyline", "over_under"}

SIDE_PICKS = {"home", "away"}
TOTAL_PICKS = {"over", "under"}


def calculate_payout(total_wager: Decimal, odds: Iterable[float]) -> Decimal:
    """
    Examples:
        >>> calculate_payout(Decimal("10"), [150, 120])
        Decimal('18.00')
    """
    payout = Decimal(total_wager)
    for value in odds:
        payout *= Decimal(str(value)) / Decimal(100)
    return q2(payout)


def pick_matches_bet_type(pick: str, bet_type: str) -> bool:
    if bet_type == "over_under":
        return pick in TOTAL_PICKS
    return pick in SIDE_PICKS


def grade_leg(
    pick: str,
    bet_type: str,
    home_score: int,
    away_score: int,
    spread: Optional[float] = None,
    over_under: Optional[float] = None,
) -> str:
    """Return ``won`` or ``lost`` for a single leg."""
    if bet_type == "moneyline":
        if pick == "home":
            won = home_score > away_score
        else:
            won = away_score > home_score

    elif bet_type == "spread":
        if spread is None:
            return "lost"
        if pick == "home":
            won = home_score + spread > away_score
        else:
            won = away_score - spread > home_score

    elif bet_type == "over_under":
        if over_under is None:
            return "lost"
        total = home_score + away_score
        won = total > over_under if pick == "over" else total < over_under

    else:
        raise ValueError(f"Unknown bet type: {bet_type}")

    return "won" if won else "lost"
