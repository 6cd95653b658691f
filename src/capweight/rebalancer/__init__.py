"""Portfolio rebalancing against a single exchange."""

from capweight.rebalancer.diff import (
    compute_allocation_diffs,
    reserve_ratio,
    resolve_market_status,
    top_ranking_targets,
)
from capweight.rebalancer.eligibility import is_eligible_for_rebalance
from capweight.rebalancer.engine import RebalanceEngine
from capweight.rebalancer.rounding import ceil_decimal, floor_decimal
from capweight.rebalancer.simulation import Simulation, simulate_rebalance
from capweight.rebalancer.verification import VerifyAction, next_action, verify_order_ended

__all__ = [
    "RebalanceEngine",
    "Simulation",
    "VerifyAction",
    "ceil_decimal",
    "compute_allocation_diffs",
    "floor_decimal",
    "is_eligible_for_rebalance",
    "next_action",
    "reserve_ratio",
    "resolve_market_status",
    "simulate_rebalance",
    "top_ranking_targets",
    "verify_order_ended",
]
