"""Simulated exchange with instant fills against an in-memory balance.

Market orders fill immediately at the current allocation price, paying the
taker fee in quote currency. Market and asset metadata are delegated to a
wrapped exchange when one is given, so a rebalance can be dry-run against
live exchange rules without placing real orders.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from decimal import Decimal

from capweight.connectors.base import BaseExchange
from capweight.models import (
    Allocation,
    AssetData,
    Balance,
    ExchangeErrorCode,
    ExchangeResult,
    Market,
    MarketData,
    MarketStatus,
    Order,
    OrderRequest,
    OrderSide,
    OrderStatus,
)


class SimulatedExchange(BaseExchange):
    """Exchange that fills market orders instantly against a virtual balance.

    Attributes:
        balance: The virtual balance, mutated by every fill.

    Args:
        balance: Starting balance. It is mutated in place by fills.
        quote_symbol: Quote currency; defaults to the balance's.
        min_order_size_in_quote: Minimum order size in quote currency.
        maker_fee: Maker fee as a fraction.
        taker_fee: Taker fee as a fraction, charged on every fill.
        wrapped: Optional real exchange answering metadata lookups.
        markets: Static market metadata by market, checked before ``wrapped``.
        assets: Static asset metadata by base symbol, checked before ``wrapped``.
    """

    def __init__(
        self,
        balance: Balance,
        quote_symbol: str | None = None,
        min_order_size_in_quote: Decimal = Decimal(5),
        maker_fee: Decimal = Decimal("0.0015"),
        taker_fee: Decimal = Decimal("0.0025"),
        wrapped: BaseExchange | None = None,
        markets: Mapping[Market, MarketData] | None = None,
        assets: Mapping[str, AssetData] | None = None,
    ) -> None:
        super().__init__(
            exchange_name="simulated",
            quote_symbol=quote_symbol or balance.quote_symbol,
            min_order_size_in_quote=min_order_size_in_quote,
            maker_fee=maker_fee,
            taker_fee=taker_fee,
        )
        self.balance = balance
        self._wrapped = wrapped
        self._markets = dict(markets) if markets is not None else None
        self._assets = {k.upper(): v for k, v in (assets or {}).items()}
        self._orders: dict[str, Order] = {}

    @classmethod
    def from_exchange(cls, exchange: BaseExchange, balance: Balance) -> SimulatedExchange:
        """Simulate ``exchange`` starting from ``balance``, sharing its constants."""
        return cls(
            balance,
            quote_symbol=exchange.quote_symbol,
            min_order_size_in_quote=exchange.min_order_size_in_quote,
            maker_fee=exchange.maker_fee,
            taker_fee=exchange.taker_fee,
            wrapped=exchange,
        )

    # --- Account ---

    async def get_balance(self) -> ExchangeResult[Balance]:
        return ExchangeResult.success(self.balance.copy())

    # --- Metadata ---

    async def get_market(self, market: Market) -> MarketData | None:
        if self._markets is not None and market in self._markets:
            return self._markets[market]
        if self._wrapped is not None:
            return await self._wrapped.get_market(market)
        if self._markets is not None:
            return None
        # Without any metadata source every market is assumed tradable.
        return MarketData(
            status=MarketStatus.TRADING,
            min_order_size_in_quote=self.min_order_size_in_quote,
        )

    async def get_asset(self, base_symbol: str) -> AssetData | None:
        asset = self._assets.get(base_symbol.upper())
        if asset is not None:
            return asset
        if self._wrapped is not None:
            return await self._wrapped.get_asset(base_symbol)
        return None

    # --- Trading ---

    async def new_order(self, order: OrderRequest, source: str = "API") -> ExchangeResult[Order]:
        """Fill ``order`` immediately and update the virtual balance.

        The base amount takes priority over the quote amount when both are
        set. Buys credit the asset with the quote amount net of the taker
        fee; sells credit the quote currency net of the taker fee.
        """
        market = order.market
        if market.quote_symbol != self.quote_symbol or market.is_quote_market:
            return ExchangeResult.failure(
                ExchangeErrorCode.OPERATION_FAILED, f"Market {market} cannot be traded"
            )
        if order.amount is None and order.amount_quote is None:
            return ExchangeResult.failure(
                ExchangeErrorCode.OPERATION_FAILED, "Either amount or amount_quote is required"
            )

        asset = self.balance.get_allocation(market.base_symbol)
        cash = self.balance.get_allocation(self.quote_symbol)
        price = asset.price if asset is not None else Decimal(0)

        if order.amount is not None:
            amount_quote = order.amount * price
        else:
            amount_quote = order.amount_quote

        fee = amount_quote * self.taker_fee
        available = cash.amount_quote if cash is not None else Decimal(0)

        if order.side is OrderSide.BUY and amount_quote > available:
            return ExchangeResult.failure(
                ExchangeErrorCode.OPERATION_FAILED,
                f"Insufficient {self.quote_symbol}: required={amount_quote} available={available}",
            )
        if order.side is OrderSide.SELL and (
            asset is None or amount_quote > asset.amount_quote or (order.amount or 0) > asset.amount
        ):
            return ExchangeResult.failure(
                ExchangeErrorCode.OPERATION_FAILED,
                f"Insufficient {market.base_symbol} to sell",
            )

        if asset is None:
            asset = Allocation(market)
            self.balance.add_allocation(asset)
        if cash is None:
            cash = Allocation(Market(self.quote_symbol, self.quote_symbol), price=1)
            self.balance.add_allocation(cash)

        if order.side is OrderSide.BUY:
            asset.set_amount_quote(asset.amount_quote + amount_quote - fee)
            cash.set_amount_quote(cash.amount_quote - amount_quote)
        else:
            if order.amount is not None:
                asset.set_amount(asset.amount - order.amount)
            else:
                asset.set_amount_quote(asset.amount_quote - amount_quote)
            cash.set_amount_quote(cash.amount_quote + amount_quote - fee)

        filled = Order(
            **{
                **dict(order),
                "id": uuid.uuid4().hex,
                "status": OrderStatus.FILLED,
                "amount_filled": Decimal(0) if price == 0 else amount_quote / price,
                "amount_quote_filled": amount_quote,
                "fee_paid": fee,
            }
        )
        self._orders[filled.id] = filled

        self._logger.debug(
            "simulated_order_filled",
            market=str(market),
            side=order.side.value,
            amount_quote=str(amount_quote),
            fee=str(fee),
            source=source,
        )
        return ExchangeResult.success(filled)

    async def get_order(self, order_id: str, market: Market | None = None) -> Order | None:
        return self._orders.get(order_id)

    async def cancel_order(
        self, order_id: str, market: Market | None = None, source: str = "API"
    ) -> Order | None:
        order = self._orders.get(order_id)
        if order is None:
            return None
        if not order.has_ended:
            order = order.model_copy(update={"status": OrderStatus.CANCELED})
            self._orders[order_id] = order
        return order

    async def cancel_all_open_orders(self, market: Market | None = None) -> list[Order] | None:
        cancelled: list[Order] = []
        for order_id, order in list(self._orders.items()):
            if order.has_ended or (market is not None and order.market != market):
                continue
            cancelled_order = order.model_copy(update={"status": OrderStatus.CANCELED})
            self._orders[order_id] = cancelled_order
            cancelled.append(cancelled_order)
        return cancelled
