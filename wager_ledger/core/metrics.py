"""
Prometheus metrics for the wager ledger.

Metrics exposed:
- Wagers placed and payouts credited, by wager kind
- Rejected wagers, by failure code
- Parlay settlements, by outcome
- Event cache size and scheduler status
"""
from prometheus_client import Counter, Gauge

# Ledger Metrics
wagers_placed_total = Counter(
    "wagers_placed_total",
    "Total wagers debited from a balance",
    ["kind"]  # table_buy_in, parlay
)

payouts_total = Counter(
    "payouts_total",
    "Total credits written to a balance",
    ["kind"]  # table_cash_out, hand_win, parlay_win
)

wagers_rejected_total = Counter(
    "wagers_rejected_total",
    "Total wager attempts rejected before any funds moved",
    ["reason"]
)

parlays_settled_total = Counter(
    "parlays_settled_total",
    "Total parlays moved to a terminal status",
    ["outcome"]  # won, lost
)

# Catalog Metrics
event_cache_size = Gauge(
    "event_cache_size",
    "Number of events held in the in-memory catalog cache"
)

# Scheduler Metrics
scheduler_running = Gauge(
    "scheduler_running",
    "Whether the background scheduler is running (1) or stopped (0)"
)
