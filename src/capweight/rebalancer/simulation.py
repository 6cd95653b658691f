"""Dry-run a rebalance without placing real orders."""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict

from capweight.connectors.base import BaseExchange
from capweight.connectors.simulated import SimulatedExchange
from capweight.logging import get_logger
from capweight.models import (
    AbsoluteAllocation,
    Balance,
    ExchangeResult,
    MarketStatus,
    Order,
    RebalanceConfig,
)
from capweight.rebalancer.diff import resolve_market_status
from capweight.rebalancer.engine import RebalanceEngine

logger = get_logger("rebalancer.simulation")


class Simulation(BaseModel):
    """Outcome of a simulated rebalance.

    Attributes:
        orders: Orders the simulated exchange filled.
        targets: Targets used, with resolved market statuses.
        current_balance: Balance before the simulation.
        new_balance: Projected balance after all fills.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    orders: list[Order]
    targets: list[AbsoluteAllocation]
    current_balance: Balance
    new_balance: Balance


async def simulate_rebalance(
    exchange: BaseExchange,
    config: RebalanceConfig,
    targets: Sequence[AbsoluteAllocation],
) -> ExchangeResult[Simulation]:
    """Simulate a rebalance on ``exchange`` starting from its live balance.

    Targets whose market is unknown or unavailable on ``exchange`` are left
    out. Market and asset metadata come from ``exchange``; orders are
    filled instantly by a :class:`SimulatedExchange` using the taker fee.

    Args:
        exchange: Live exchange to read balance and metadata from.
        config: Rebalancing policy.
        targets: Target weights ordered by rank.

    Returns:
        The simulation, or the failure of the balance fetch.
    """
    balance_result = await exchange.get_balance()
    if not balance_result.ok or balance_result.value is None:
        logger.error("simulation_balance_failed", error_code=balance_result.error_code.value)
        return ExchangeResult.failure(balance_result.error_code, balance_result.error_message)

    current = balance_result.value
    resolved = [await resolve_market_status(exchange, target) for target in targets]
    tradable = [
        target
        for target in resolved
        if target.market_status not in (MarketStatus.UNKNOWN, MarketStatus.UNAVAILABLE)
    ]

    simulated = SimulatedExchange.from_exchange(exchange, current.copy())
    engine = RebalanceEngine(simulated, max_checks=0)
    result = await engine.rebalance(config, tradable)

    simulation = Simulation(
        orders=result.value or [],
        targets=tradable,
        current_balance=current,
        new_balance=simulated.balance,
    )
    if not result.ok:
        return ExchangeResult.failure(result.error_code, result.error_message, value=simulation)
    return ExchangeResult.success(simulation)
