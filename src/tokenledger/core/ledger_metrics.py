"""
Ledger instrumentation for tokenledger.

Provides Prometheus metrics that track how much each mechanism pays out,
how much fee is routed to the admin, and how much custody a ledger holds,
with helper functions that are safe to call from the payout path.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

payout_counter = Counter(
    "tokenledger_payout_total", "Total tokens paid out by ledger engines", ["mechanism"]
)

payout_events = Counter(
    "tokenledger_payout_events_total",
    "Total number of payout operations completed",
    ["mechanism"],
)

fee_collection_counter = Counter(
    "tokenledger_fee_collected_total", "Total fees routed to the admin", ["mechanism"]
)

rejected_operations = Counter(
    "tokenledger_rejected_operations_total",
    "Operations aborted with a ledger error",
    ["mechanism", "error"],
)

custody_gauge = Gauge(
    "tokenledger_custody_balance", "Token custody held by a ledger", ["mechanism", "ledger"]
)


def record_payout(mechanism: str, amount: int) -> None:
    """Increment the payout counters for the specified mechanism."""
    if amount <= 0:
        return

    payout_counter.labels(mechanism=mechanism).inc(amount)
    payout_events.labels(mechanism=mechanism).inc()


def record_fee(mechanism: str, amount: int) -> None:
    if amount <= 0:
        return
    fee_collection_counter.labels(mechanism=mechanism).inc(amount)


def record_rejection(mechanism: str, error: Exception) -> None:
    rejected_operations.labels(mechanism=mechanism, error=type(error).__name__).inc()


def update_custody(mechanism: str, ledger_address: str, balance: int) -> None:
    """Refresh the custody gauge after a balance-changing operation."""
    if not ledger_address:
        return

    custody_gauge.labels(mechanism=mechanism, ledger=ledger_address).set(balance)
