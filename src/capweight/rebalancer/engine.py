"""Rebalance engine: sell oversized allocations, then buy undersized ones.

A run clears open orders, resolves which targets are tradable, computes the
deviation of every allocation from its target, sells the overages and, once
all sells have ended, spends the freed quote currency on the underages.
Partial completion is an accepted outcome: whatever was executed is
returned, nothing is rolled back.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from decimal import Decimal

from capweight.config import EngineConfig
from capweight.connectors.base import BaseExchange
from capweight.logging import get_logger, run_context
from capweight.models import (
    AbsoluteAllocation,
    AllocationDiff,
    Balance,
    ExchangeErrorCode,
    ExchangeResult,
    Order,
    OrderRequest,
    OrderSide,
    OrderType,
    RebalanceConfig,
)
from capweight.monitoring.metrics import MetricsCollector
from capweight.rebalancer.diff import compute_allocation_diffs, top_ranking_targets
from capweight.rebalancer.rounding import ceil_decimal, floor_decimal
from capweight.rebalancer.verification import SleepFn, verify_order_ended

logger = get_logger("rebalancer.engine")


class _PhaseResult:
    """Orders that ended in one phase, plus an authentication failure if any."""

    def __init__(self) -> None:
        self.orders: list[Order] = []
        self.auth_error: str | None = None


class RebalanceEngine:
    """Execute a rebalance against one exchange.

    Args:
        exchange: Exchange to trade on.
        poll_interval: Seconds between order status polls.
        max_checks: Poll budget per order before giving up.
        default_asset_decimals: Amount precision used when the exchange does
            not report one for an asset.
        quote_decimals: Precision of quote-denominated order sizes.
        metrics: Optional metrics collector.
        sleep: Awaitable sleep used between polls, replaceable in tests.
    """

    def __init__(
        self,
        exchange: BaseExchange,
        poll_interval: float = 1.0,
        max_checks: int = 60,
        default_asset_decimals: int = 8,
        quote_decimals: int = 2,
        metrics: MetricsCollector | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._exchange = exchange
        self._poll_interval = poll_interval
        self._max_checks = max_checks
        self._default_asset_decimals = default_asset_decimals
        self._quote_decimals = quote_decimals
        self._metrics = metrics
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        exchange: BaseExchange,
        config: EngineConfig,
        metrics: MetricsCollector | None = None,
    ) -> RebalanceEngine:
        """Create an engine using the execution settings in ``config``."""
        return cls(
            exchange,
            poll_interval=config.order_poll_interval_s,
            max_checks=config.order_max_checks,
            default_asset_decimals=config.default_asset_decimals,
            quote_decimals=config.quote_decimals,
            metrics=metrics,
        )

    @property
    def exchange(self) -> BaseExchange:
        return self._exchange

    # --- Public operations ---

    async def rebalance(
        self,
        config: RebalanceConfig,
        targets: Sequence[AbsoluteAllocation],
        balance: Balance | None = None,
        source: str = "API",
    ) -> ExchangeResult[list[Order]]:
        """Rebalance the portfolio toward ``targets``.

        Args:
            config: Rebalancing policy.
            targets: Target weights ordered by rank.
            balance: Current balance; fetched from the exchange if omitted.
                It is read but never modified.
            source: Identifies the caller in the exchange's order history.

        Returns:
            Sell orders followed by buy orders, in their final known state.
            On failure the error code is set and the value holds whatever
            orders were executed before the failure.
        """
        with run_context(exchange=self._exchange.exchange_name, source=source):
            started = time.monotonic()
            result = await self._rebalance(config, targets, balance, source)
            self._record_run(result, started)
        return result

    async def execute_orders(
        self, orders: Sequence[OrderRequest], source: str = "API"
    ) -> ExchangeResult[list[Order]]:
        """Execute pre-built orders: all sells first, then all buys.

        Target resolution and diff computation are skipped. Sells are
        filtered by minimum size and rounded; buys are scaled to the
        available quote currency.

        Args:
            orders: Orders to execute, in any side order.
            source: Identifies the caller in the exchange's order history.

        Returns:
            Sell orders followed by buy orders, as for :meth:`rebalance`.
        """
        with run_context(exchange=self._exchange.exchange_name, source=source):
            started = time.monotonic()
            result = await self._execute_orders(orders, source)
            self._record_run(result, started)
        return result

    # --- Pipeline ---

    async def _rebalance(
        self,
        config: RebalanceConfig,
        targets: Sequence[AbsoluteAllocation],
        balance: Balance | None,
        source: str,
    ) -> ExchangeResult[list[Order]]:
        if not await self._cancel_all_open_orders():
            return ExchangeResult.failure(
                ExchangeErrorCode.OPERATION_FAILED, "Failed to cancel open orders", value=[]
            )

        selected = await top_ranking_targets(self._exchange, targets, config.top_ranking_count)

        if balance is None:
            fetched = await self._fetch_balance()
            if not fetched.ok:
                return ExchangeResult.failure(fetched.error_code, fetched.error_message, value=[])
            balance = fetched.value

        logger.info(
            "rebalance_started",
            exchange=self._exchange.exchange_name,
            targets=len(selected),
            amount_quote_total=str(balance.amount_quote_total),
        )
        if self._metrics is not None:
            self._metrics.update_portfolio_value(float(balance.amount_quote_total))

        # Sell overages first so the proceeds are available to buy with.
        sell_diffs = compute_allocation_diffs(selected, balance, config, self._exchange.quote_symbol)
        sell_orders = [
            await self._sell_request_for(diff) for diff in sell_diffs if self._is_sell_candidate(diff)
        ]
        sells = await self._sell_and_verify(sell_orders, source)
        if sells.auth_error is not None:
            return ExchangeResult.failure(
                ExchangeErrorCode.AUTHENTICATION_ERROR, sells.auth_error, value=sells.orders
            )

        # Then buy underages against the balance left after selling.
        fetched = await self._fetch_balance()
        if not fetched.ok:
            return ExchangeResult.failure(fetched.error_code, fetched.error_message, value=sells.orders)
        buy_balance = fetched.value

        buy_diffs = compute_allocation_diffs(selected, buy_balance, config, self._exchange.quote_symbol)
        buy_orders = [
            OrderRequest(
                market=diff.market,
                side=OrderSide.BUY,
                type=OrderType.MARKET,
                amount_quote=abs(diff.amount_quote_diff),
            )
            for diff in buy_diffs
            if not self._is_quote(diff.market.base_symbol) and diff.amount_quote_diff < 0
        ]
        buys = await self._buy_and_verify(buy_orders, buy_balance, source)

        return self._combine(sells, buys)

    async def _execute_orders(
        self, orders: Sequence[OrderRequest], source: str
    ) -> ExchangeResult[list[Order]]:
        if not await self._cancel_all_open_orders():
            return ExchangeResult.failure(
                ExchangeErrorCode.OPERATION_FAILED, "Failed to cancel open orders", value=[]
            )

        sells = await self._sell_and_verify(orders, source)
        if sells.auth_error is not None:
            return ExchangeResult.failure(
                ExchangeErrorCode.AUTHENTICATION_ERROR, sells.auth_error, value=sells.orders
            )

        fetched = await self._fetch_balance()
        if not fetched.ok:
            return ExchangeResult.failure(fetched.error_code, fetched.error_message, value=sells.orders)

        buys = await self._buy_and_verify(orders, fetched.value, source)
        return self._combine(sells, buys)

    # --- Phases ---

    async def _sell_and_verify(self, orders: Sequence[OrderRequest], source: str) -> _PhaseResult:
        min_size = self._exchange.min_order_size_in_quote
        qualifying: list[OrderRequest] = []

        for order in orders:
            if order.side is not OrderSide.SELL or self._is_quote(order.market.base_symbol):
                continue
            if not (
                (order.amount_quote is not None and order.amount_quote >= min_size)
                or (order.amount is not None and order.amount > 0)
            ):
                continue
            if order.amount_quote is not None:
                order = order.model_copy(
                    update={"amount_quote": ceil_decimal(order.amount_quote, self._quote_decimals)}
                )
            qualifying.append(order)

        return await self._submit_all(qualifying, cancel_on_timeout=True, source=source)

    async def _buy_and_verify(
        self, orders: Sequence[OrderRequest], balance: Balance, source: str
    ) -> _PhaseResult:
        min_size = self._exchange.min_order_size_in_quote
        candidates = [
            order
            for order in orders
            if order.side is OrderSide.BUY
            and not self._is_quote(order.market.base_symbol)
            and order.amount_quote is not None
            and order.amount_quote >= min_size
        ]

        total_buy = sum((order.amount_quote for order in candidates), Decimal(0))
        available = balance.amount_quote_available
        ratio = Decimal(0) if total_buy == 0 else min(total_buy, available) / total_buy

        if ratio < 1:
            logger.debug(
                "buy_orders_scaled",
                ratio=str(ratio),
                total_buy=str(total_buy),
                available=str(available),
            )

        qualifying: list[OrderRequest] = []
        for order in candidates:
            scaled = floor_decimal(order.amount_quote * ratio, self._quote_decimals)
            if scaled < min_size:
                continue
            qualifying.append(order.model_copy(update={"amount_quote": scaled}))

        return await self._submit_all(qualifying, cancel_on_timeout=False, source=source)

    async def _submit_all(
        self, orders: Sequence[OrderRequest], cancel_on_timeout: bool, source: str
    ) -> _PhaseResult:
        results = await asyncio.gather(
            *(self._submit_and_verify(order, cancel_on_timeout, source) for order in orders)
        )

        phase = _PhaseResult()
        for order, result in results:
            if order is not None:
                phase.orders.append(order)
            elif result.error_code is ExchangeErrorCode.AUTHENTICATION_ERROR:
                phase.auth_error = result.error_message or "Authentication failed"
        return phase

    async def _submit_and_verify(
        self, request: OrderRequest, cancel_on_timeout: bool, source: str
    ) -> tuple[Order | None, ExchangeResult[Order]]:
        side = request.side.value
        result = await self._exchange.new_order(request, source)

        if not result.ok or result.value is None:
            if self._metrics is not None:
                self._metrics.record_order(side, submitted=False)
            if result.error_code is ExchangeErrorCode.AUTHENTICATION_ERROR:
                logger.error("authentication_failed", market=str(request.market), side=side)
            else:
                logger.warning(
                    "order_submit_failed",
                    market=str(request.market),
                    side=side,
                    error_code=result.error_code.value,
                    error=result.error_message,
                )
            return None, result

        if self._metrics is not None:
            self._metrics.record_order(side, submitted=True)
        logger.info(
            "order_submitted",
            market=str(request.market),
            side=side,
            amount=str(request.amount) if request.amount is not None else None,
            amount_quote=str(request.amount_quote) if request.amount_quote is not None else None,
        )

        order = await verify_order_ended(
            self._exchange,
            result.value,
            cancel_on_timeout=cancel_on_timeout,
            max_polls=self._max_checks,
            poll_interval=self._poll_interval,
            sleep=self._sleep,
            on_cancel=self._on_cancel,
        )
        return order, result

    # --- Helpers ---

    async def _cancel_all_open_orders(self) -> bool:
        cancelled = await self._exchange.cancel_all_open_orders()
        if cancelled is None:
            logger.error("cancel_all_failed", exchange=self._exchange.exchange_name)
            return False
        if cancelled:
            logger.info("open_orders_cancelled", count=len(cancelled))
        return True

    async def _fetch_balance(self) -> ExchangeResult[Balance]:
        result = await self._exchange.get_balance()
        if result.ok and result.value is None:
            return ExchangeResult.failure(ExchangeErrorCode.OPERATION_FAILED, "Empty balance response")
        if result.error_code is ExchangeErrorCode.AUTHENTICATION_ERROR:
            logger.error("authentication_failed", exchange=self._exchange.exchange_name)
        elif not result.ok:
            logger.error(
                "balance_fetch_failed",
                exchange=self._exchange.exchange_name,
                error=result.error_message,
            )
        return result

    def _is_quote(self, base_symbol: str) -> bool:
        return base_symbol.upper() == self._exchange.quote_symbol

    def _is_sell_candidate(self, diff: AllocationDiff) -> bool:
        return not self._is_quote(diff.market.base_symbol) and diff.amount_quote_diff > 0

    async def _sell_request_for(self, diff: AllocationDiff) -> OrderRequest:
        # Selling only the diff would leave a residue below the minimum order
        # size, so the whole position is sold instead.
        if diff.amount_quote - diff.amount_quote_diff < self._exchange.min_order_size_in_quote:
            asset = await self._exchange.get_asset(diff.market.base_symbol)
            decimals = asset.decimals if asset is not None else self._default_asset_decimals
            return OrderRequest(
                market=diff.market,
                side=OrderSide.SELL,
                type=OrderType.MARKET,
                amount=floor_decimal(diff.amount, decimals),
            )
        return OrderRequest(
            market=diff.market,
            side=OrderSide.SELL,
            type=OrderType.MARKET,
            amount_quote=diff.amount_quote_diff,
        )

    def _on_cancel(self, order: Order) -> None:
        if self._metrics is not None:
            self._metrics.record_cancel(order.side.value)

    def _combine(self, sells: _PhaseResult, buys: _PhaseResult) -> ExchangeResult[list[Order]]:
        orders = sells.orders + buys.orders
        if buys.auth_error is not None:
            return ExchangeResult.failure(
                ExchangeErrorCode.AUTHENTICATION_ERROR, buys.auth_error, value=orders
            )
        return ExchangeResult.success(orders)

    def _record_run(self, result: ExchangeResult[list[Order]], started: float) -> None:
        duration = time.monotonic() - started
        orders = result.value or []
        logger.info(
            "rebalance_finished",
            exchange=self._exchange.exchange_name,
            outcome=result.error_code.value,
            sells=sum(1 for o in orders if o.side is OrderSide.SELL),
            buys=sum(1 for o in orders if o.side is OrderSide.BUY),
            duration_s=round(duration, 3),
        )
        if self._metrics is not None:
            self._metrics.record_run(result.error_code.value, duration)
