"""Tests for the simulated exchange and rebalance dry runs."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from capweight.connectors import SimulatedExchange
from capweight.models import (
    AbsoluteAllocation,
    Allocation,
    AssetData,
    Balance,
    ExchangeErrorCode,
    ExchangeResult,
    Market,
    MarketData,
    MarketStatus,
    OrderRequest,
    OrderSide,
    OrderStatus,
    RebalanceConfig,
)
from capweight.rebalancer import simulate_rebalance

# --- Helpers ---


def _alloc(base: str, price: str, amount: Decimal | str) -> Allocation:
    return Allocation(Market("EUR", base), price=Decimal(price), amount=Decimal(amount))


def _order(
    side: OrderSide,
    base: str = "BTC",
    amount: str | None = None,
    amount_quote: str | None = None,
    quote: str = "EUR",
) -> OrderRequest:
    return OrderRequest(
        market=Market(quote, base),
        side=side,
        amount=Decimal(amount) if amount is not None else None,
        amount_quote=Decimal(amount_quote) if amount_quote is not None else None,
    )


# =============================================================================
# SimulatedExchange Tests
# =============================================================================


class TestSimulatedExchangeOrders:
    """Tests for instant fills on the simulated exchange."""

    @pytest.mark.asyncio
    async def test_buy_by_quote_amount(self) -> None:
        exchange = SimulatedExchange(
            Balance("EUR", [_alloc("EUR", "1", "100"), _alloc("BTC", "100", "0")])
        )

        result = await exchange.new_order(_order(OrderSide.BUY, amount_quote="50"))

        assert result.ok
        order = result.value
        assert order.status is OrderStatus.FILLED
        assert order.id is not None
        assert order.fee_paid == Decimal("0.125")
        assert order.amount_filled == Decimal("0.5")
        assert order.amount_quote_filled == Decimal("50")
        assert exchange.balance.get_allocation("BTC").amount == Decimal("0.49875")
        assert exchange.balance.amount_quote_available == Decimal("50")

    @pytest.mark.asyncio
    async def test_buy_creates_missing_allocation(self) -> None:
        exchange = SimulatedExchange(Balance("EUR", [_alloc("EUR", "1", "100")]))

        result = await exchange.new_order(_order(OrderSide.BUY, base="ADA", amount_quote="40"))

        assert result.ok
        ada = exchange.balance.get_allocation("ADA")
        assert ada is not None
        assert ada.amount_quote == Decimal("39.9")

    @pytest.mark.asyncio
    async def test_sell_by_base_amount(self) -> None:
        exchange = SimulatedExchange(
            Balance("EUR", [_alloc("EUR", "1", "0"), _alloc("BTC", "100", "1")])
        )

        result = await exchange.new_order(_order(OrderSide.SELL, amount="0.5"))

        assert result.ok
        assert exchange.balance.get_allocation("BTC").amount == Decimal("0.5")
        assert exchange.balance.amount_quote_available == Decimal("49.875")

    @pytest.mark.asyncio
    async def test_sell_without_cash_allocation(self) -> None:
        exchange = SimulatedExchange(Balance("EUR", [_alloc("BTC", "100", "1")]))

        result = await exchange.new_order(_order(OrderSide.SELL, amount_quote="20"))

        assert result.ok
        assert exchange.balance.amount_quote_available == Decimal("19.95")

    @pytest.mark.asyncio
    async def test_amount_takes_priority(self) -> None:
        exchange = SimulatedExchange(
            Balance("EUR", [_alloc("EUR", "1", "0"), _alloc("BTC", "100", "1")])
        )

        result = await exchange.new_order(_order(OrderSide.SELL, amount="0.1", amount_quote="90"))

        assert result.value.amount_quote_filled == Decimal("10.0")

    @pytest.mark.parametrize(
        "order",
        [
            _order(OrderSide.BUY, amount_quote="150"),
            _order(OrderSide.SELL, amount="2"),
            _order(OrderSide.SELL, base="ETH", amount_quote="10"),
            _order(OrderSide.BUY, quote="USDT", amount_quote="10"),
            _order(OrderSide.BUY, base="EUR", amount_quote="10"),
            _order(OrderSide.BUY),
        ],
    )
    @pytest.mark.asyncio
    async def test_rejected_orders(self, order: OrderRequest) -> None:
        exchange = SimulatedExchange(
            Balance("EUR", [_alloc("EUR", "1", "100"), _alloc("BTC", "100", "1")])
        )

        result = await exchange.new_order(order)

        assert result.error_code is ExchangeErrorCode.OPERATION_FAILED
        assert exchange.balance.amount_quote_total == Decimal("200")

    @pytest.mark.asyncio
    async def test_order_lookup_and_cancel(self) -> None:
        exchange = SimulatedExchange(Balance("EUR", [_alloc("EUR", "1", "100")]))
        placed = (await exchange.new_order(_order(OrderSide.BUY, amount_quote="10"))).value

        assert await exchange.get_order(placed.id) == placed
        assert await exchange.get_order("missing") is None
        # Filled orders stay filled.
        assert (await exchange.cancel_order(placed.id)).status is OrderStatus.FILLED
        assert await exchange.cancel_order("missing") is None
        assert await exchange.cancel_all_open_orders() == []

    @pytest.mark.asyncio
    async def test_get_balance_returns_copy(self) -> None:
        exchange = SimulatedExchange(Balance("EUR", [_alloc("EUR", "1", "100")]))

        result = await exchange.get_balance()
        result.value.get_allocation("EUR").set_amount(0)

        assert exchange.balance.amount_quote_available == Decimal("100")


class TestSimulatedExchangeMetadata:
    """Tests for market and asset lookups on the simulated exchange."""

    @pytest.mark.asyncio
    async def test_markets_default_to_trading(self) -> None:
        exchange = SimulatedExchange(Balance("EUR"))
        data = await exchange.get_market(Market("EUR", "BTC"))
        assert data.status is MarketStatus.TRADING
        assert data.min_order_size_in_quote == Decimal(5)

    @pytest.mark.asyncio
    async def test_static_markets(self) -> None:
        exchange = SimulatedExchange(
            Balance("EUR"),
            markets={Market("EUR", "BTC"): MarketData(status=MarketStatus.HALTED)},
        )
        assert (await exchange.get_market(Market("EUR", "BTC"))).status is MarketStatus.HALTED
        assert await exchange.get_market(Market("EUR", "ETH")) is None

    @pytest.mark.asyncio
    async def test_wrapped_exchange_answers_metadata(self) -> None:
        wrapped = SimulatedExchange(
            Balance("EUR"),
            min_order_size_in_quote=Decimal(10),
            markets={Market("EUR", "BTC"): MarketData(status=MarketStatus.AUCTION)},
            assets={"BTC": AssetData(base_symbol="BTC", decimals=6)},
        )
        exchange = SimulatedExchange.from_exchange(wrapped, Balance("EUR"))

        assert exchange.min_order_size_in_quote == Decimal(10)
        assert (await exchange.get_market(Market("EUR", "BTC"))).status is MarketStatus.AUCTION
        assert (await exchange.get_asset("btc")).decimals == 6
        assert await exchange.get_asset("ETH") is None


# =============================================================================
# simulate_rebalance Tests
# =============================================================================


class TestSimulateRebalance:
    """Tests for simulate_rebalance."""

    def _live_exchange(self) -> SimulatedExchange:
        balance = Balance(
            "EUR",
            [
                _alloc("EUR", "1", "50"),
                _alloc("BTC", "18000", Decimal(400) / Decimal(15000)),
                _alloc("ETH", "1610", Decimal(300) / Decimal(1400)),
                _alloc("BNB", "306", Decimal(250) / Decimal(340)),
            ],
        )
        return SimulatedExchange(
            balance,
            markets={
                Market("EUR", "BTC"): MarketData(status=MarketStatus.TRADING),
                Market("EUR", "ETH"): MarketData(status=MarketStatus.TRADING),
                Market("EUR", "ADA"): MarketData(status=MarketStatus.TRADING),
                Market("EUR", "XRP"): MarketData(status=MarketStatus.UNAVAILABLE),
            },
        )

    def _targets(self) -> list[AbsoluteAllocation]:
        return [
            AbsoluteAllocation.for_symbol("EUR", "BTC", "0.40"),
            AbsoluteAllocation.for_symbol("EUR", "DOGE", "0.35"),
            AbsoluteAllocation.for_symbol("EUR", "ETH", "0.30"),
            AbsoluteAllocation.for_symbol("EUR", "XRP", "0.28"),
            AbsoluteAllocation.for_symbol("EUR", "ADA", "0.25"),
        ]

    @pytest.mark.asyncio
    async def test_projects_new_balance(self) -> None:
        live = self._live_exchange()
        config = RebalanceConfig(quote_allocation=Decimal(5))

        result = await simulate_rebalance(live, config, self._targets())

        assert result.ok
        simulation = result.value
        assert [t.market.base_symbol for t in simulation.targets] == ["BTC", "ETH", "ADA"]
        assert all(t.market_status is MarketStatus.TRADING for t in simulation.targets)
        assert [(o.market.base_symbol, o.side) for o in simulation.orders] == [
            ("BTC", OrderSide.SELL),
            ("ETH", OrderSide.SELL),
            ("BNB", OrderSide.SELL),
            ("ADA", OrderSide.BUY),
        ]
        assert simulation.new_balance.get_allocation("ADA") is not None
        assert simulation.current_balance.get_allocation("ADA") is None

    @pytest.mark.asyncio
    async def test_live_balance_is_untouched(self) -> None:
        live = self._live_exchange()

        await simulate_rebalance(live, RebalanceConfig(quote_allocation=Decimal(5)), self._targets())

        assert live.balance.get_allocation("ADA") is None
        assert abs(live.balance.amount_quote_total - 1100) < Decimal("0.000001")

    @pytest.mark.asyncio
    async def test_fees_reduce_projected_value(self) -> None:
        live = self._live_exchange()

        result = await simulate_rebalance(
            live, RebalanceConfig(quote_allocation=Decimal(5)), self._targets()
        )

        simulation = result.value
        fees = sum((o.fee_paid for o in simulation.orders), Decimal(0))
        assert fees > 0
        projected = simulation.new_balance.amount_quote_total
        assert abs(simulation.current_balance.amount_quote_total - fees - projected) < Decimal("0.01")

    @pytest.mark.asyncio
    async def test_balance_failure(self) -> None:
        live = MagicMock()
        live.get_balance = AsyncMock(
            return_value=ExchangeResult.failure(ExchangeErrorCode.AUTHENTICATION_ERROR, "bad key")
        )

        result = await simulate_rebalance(live, RebalanceConfig(), self._targets())

        assert result.error_code is ExchangeErrorCode.AUTHENTICATION_ERROR
        assert result.value is None
