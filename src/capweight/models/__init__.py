"""Data models.

Re-exports the core models for convenient imports:

    from capweight.models import Balance, Allocation, Market, Order
"""

from capweight.models.allocation import AbsoluteAllocation, AllocationDiff
from capweight.models.config import RebalanceConfig
from capweight.models.exchange import (
    AssetData,
    ExchangeErrorCode,
    ExchangeResult,
    MarketData,
    MarketStatus,
)
from capweight.models.market import Market
from capweight.models.market_cap import MarketCapSample
from capweight.models.portfolio import Allocation, AllocationField, Balance
from capweight.models.trade import (
    Order,
    OrderRequest,
    OrderSide,
    OrderStatus,
    OrderType,
    TimeInForce,
)

__all__ = [
    "AbsoluteAllocation",
    "Allocation",
    "AllocationDiff",
    "AllocationField",
    "AssetData",
    "Balance",
    "ExchangeErrorCode",
    "ExchangeResult",
    "Market",
    "MarketCapSample",
    "MarketData",
    "MarketStatus",
    "Order",
    "OrderRequest",
    "OrderSide",
    "OrderStatus",
    "OrderType",
    "RebalanceConfig",
    "TimeInForce",
]
