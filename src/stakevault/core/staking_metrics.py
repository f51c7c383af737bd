"""
Staking ledger instrumentation.

Provides Prometheus metrics that track stake counts and the reward-token
flows of each staking contract, with helper functions that are safe to call
from inside a staking operation.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

active_stakes_gauge = Gauge(
    "stakevault_active_stakes", "Number of stake entries in the Staked state", ["contract"]
)

total_stakes_gauge = Gauge(
    "stakevault_total_stakes", "Number of stake entries held in storage", ["contract"]
)

rewards_paid_counter = Counter(
    "stakevault_rewards_paid_total", "Total reward tokens paid to stakers", ["contract"]
)

taxes_collected_counter = Counter(
    "stakevault_early_exit_tax_collected_total",
    "Total reward tokens collected as early-exit tax",
    ["contract"],
)

withdrawals_counter = Counter(
    "stakevault_withdrawals_total",
    "Total number of assets withdrawn from custody",
    ["contract", "kind"],
)


def update_stake_gauges(contract: str, active: int, total: int) -> None:
    """Refresh the stake count gauges for a contract."""
    active_stakes_gauge.labels(contract=contract).set(active)
    total_stakes_gauge.labels(contract=contract).set(total)


def record_reward_paid(contract: str, amount: int) -> None:
    if amount <= 0:
        return
    rewards_paid_counter.labels(contract=contract).inc(amount)


def record_tax_collected(contract: str, amount: int) -> None:
    if amount <= 0:
        return
    taxes_collected_counter.labels(contract=contract).inc(amount)


def record_withdrawal(contract: str, kind: str = "owner") -> None:
    """Count an asset leaving custody. ``kind`` is ``owner`` or ``rescue``."""
    withdrawals_counter.labels(contract=contract, kind=kind).inc()
