"""Exchange metadata and result types."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class MarketStatus(str, enum.Enum):
    """Trading status of a market on an exchange."""

    UNKNOWN = "UNKNOWN"
    TRADING = "TRADING"
    HALTED = "HALTED"
    AUCTION = "AUCTION"
    UNAVAILABLE = "UNAVAILABLE"


class ExchangeErrorCode(str, enum.Enum):
    """Error codes carried by :class:`ExchangeResult`."""

    NONE = "NONE"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    OPERATION_FAILED = "OPERATION_FAILED"


class MarketData(BaseModel):
    """Market metadata published by an exchange.

    Attributes:
        status: Trading status of the market.
        price_precision: Number of significant digits allowed in prices.
        min_order_size_in_quote: Minimum order size in quote currency.
        min_order_size_in_base: Minimum order size in base currency.
    """

    model_config = {"frozen": True}

    status: MarketStatus = MarketStatus.UNAVAILABLE
    price_precision: int = 5
    min_order_size_in_quote: Decimal = Decimal(0)
    min_order_size_in_base: Decimal = Decimal(0)


class AssetData(BaseModel):
    """Asset metadata published by an exchange.

    Attributes:
        base_symbol: Symbol used in market names.
        name: Full asset name.
        decimals: Precision used when specifying amounts.
    """

    model_config = {"frozen": True}

    base_symbol: str
    name: str = ""
    decimals: int = 8


@dataclass(frozen=True)
class ExchangeResult(Generic[T]):
    """Outcome of an exchange operation that may fail without raising.

    Attributes:
        value: Result value on success (may also be set on partial failure).
        error_code: ``NONE`` on success.
        error_message: Human-readable failure detail.
    """

    value: T | None = None
    error_code: ExchangeErrorCode = ExchangeErrorCode.NONE
    error_message: str = ""

    @property
    def ok(self) -> bool:
        """Whether the operation succeeded."""
        return self.error_code is ExchangeErrorCode.NONE

    @classmethod
    def success(cls, value: T) -> ExchangeResult[T]:
        return cls(value=value)

    @classmethod
    def failure(
        cls,
        error_code: ExchangeErrorCode,
        error_message: str = "",
        value: T | None = None,
    ) -> ExchangeResult[T]:
        return cls(value=value, error_code=error_code, error_message=error_message)
