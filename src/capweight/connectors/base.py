"""Abstract exchange interface consumed by the rebalance engine.

Defines the BaseExchange ABC that every exchange integration must implement.
Operations that may fail for reasons the caller has to act on (bad
credentials, rejected orders) return an :class:`ExchangeResult` instead of
raising; lookups that simply may find nothing return ``None``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal

from capweight.logging import get_logger
from capweight.models import (
    AssetData,
    Balance,
    ExchangeResult,
    Market,
    MarketData,
    Order,
    OrderRequest,
)


class BaseExchange(ABC):
    """Abstract exchange interface.

    Args:
        exchange_name: Exchange identifier (e.g. "bitvavo").
        quote_symbol: Quote currency all balances are valued in.
        min_order_size_in_quote: Minimum order size in quote currency.
        maker_fee: Maker fee as a fraction (0.0015 = 0.15%).
        taker_fee: Taker fee as a fraction.
    """

    def __init__(
        self,
        exchange_name: str,
        quote_symbol: str,
        min_order_size_in_quote: Decimal,
        maker_fee: Decimal,
        taker_fee: Decimal,
    ) -> None:
        self.exchange_name = exchange_name
        self._quote_symbol = quote_symbol.upper()
        self._min_order_size_in_quote = Decimal(min_order_size_in_quote)
        self._maker_fee = Decimal(maker_fee)
        self._taker_fee = Decimal(taker_fee)
        self._logger = get_logger(f"connector.{exchange_name}")

    # --- Static exchange constants ---

    @property
    def quote_symbol(self) -> str:
        return self._quote_symbol

    @property
    def min_order_size_in_quote(self) -> Decimal:
        return self._min_order_size_in_quote

    @property
    def maker_fee(self) -> Decimal:
        return self._maker_fee

    @property
    def taker_fee(self) -> Decimal:
        return self._taker_fee

    # --- Account ---

    @abstractmethod
    async def get_balance(self) -> ExchangeResult[Balance]:
        """Fetch the current balance, valued in :attr:`quote_symbol`.

        Returns:
            The balance, or a failure result with ``AUTHENTICATION_ERROR``
            when credentials are rejected.
        """

    # --- Metadata ---

    @abstractmethod
    async def get_market(self, market: Market) -> MarketData | None:
        """Fetch market metadata.

        Args:
            market: Market to look up.

        Returns:
            Market metadata, or None if the exchange does not list it.
        """

    @abstractmethod
    async def get_asset(self, base_symbol: str) -> AssetData | None:
        """Fetch asset metadata such as amount precision.

        Args:
            base_symbol: Asset to look up.

        Returns:
            Asset metadata, or None if unknown.
        """

    # --- Trading ---

    @abstractmethod
    async def new_order(self, order: OrderRequest, source: str = "API") -> ExchangeResult[Order]:
        """Submit a new order.

        Args:
            order: The order to submit.
            source: Identifies the caller in the exchange's order history.

        Returns:
            The accepted order with exchange-assigned ID and initial status,
            or a failure result.
        """

    @abstractmethod
    async def get_order(self, order_id: str, market: Market | None = None) -> Order | None:
        """Fetch the current state of an order.

        Args:
            order_id: Exchange order ID.
            market: Market the order belongs to.

        Returns:
            The order, or None if it could not be fetched.
        """

    @abstractmethod
    async def cancel_order(
        self, order_id: str, market: Market | None = None, source: str = "API"
    ) -> Order | None:
        """Cancel an open order.

        Args:
            order_id: Exchange order ID.
            market: Market the order belongs to.
            source: Identifies the caller in the exchange's order history.

        Returns:
            The order after cancellation, or None if the request failed.
        """

    @abstractmethod
    async def cancel_all_open_orders(self, market: Market | None = None) -> list[Order] | None:
        """Cancel every open order, optionally restricted to one market.

        Args:
            market: Market to restrict cancellation to; all markets if None.

        Returns:
            The cancelled orders (possibly empty), or None if the request failed.
        """
