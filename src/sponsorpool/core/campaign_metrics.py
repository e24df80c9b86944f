"""
Campaign instrumentation for SponsorPool.

Provides Prometheus metrics that track campaign operations, reward payouts
and escrow balances, with helper functions that are safe to call from the
commit path.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

campaign_operations_counter = Counter(
    "sponsorpool_campaign_operations_total",
    "Campaign operations by name and outcome",
    ["operation", "outcome"],
)

rewards_paid_counter = Counter(
    "sponsorpool_rewards_paid_total",
    "Total base units paid out as rewards",
    ["token"],
)

campaign_escrow_gauge = Gauge(
    "sponsorpool_campaign_escrow",
    "Current escrow balance of a campaign in base units",
    ["campaign_id"],
)


def record_operation(operation: str, outcome: str = "success") -> None:
    """Count a completed or rejected operation; ``outcome`` is ``success`` or an error code."""
    campaign_operations_counter.labels(operation=operation, outcome=outcome).inc()


def record_reward_paid(token: str, amount: int) -> None:
    if amount <= 0:
        return
    rewards_paid_counter.labels(token=token).inc(amount)


def update_campaign_escrow(campaign_id: int, available_funds: int) -> None:
    campaign_escrow_gauge.labels(campaign_id=str(campaign_id)).set(available_funds)
