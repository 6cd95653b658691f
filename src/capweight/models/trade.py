"""Order request and order state models."""

import enum
from decimal import Decimal

from pydantic import BaseModel

from capweight.models.market import Market


class OrderSide(str, enum.Enum):
    """Order side."""

    BUY = "BUY"
    SELL = "SELL"


class OrderType(str, enum.Enum):
    """Order type."""

    MARKET = "MARKET"
    LIMIT = "LIMIT"


class TimeInForce(str, enum.Enum):
    """How long a limit order remains active."""

    GTC = "GTC"  # good-til-canceled
    IOC = "IOC"  # immediate-or-cancel
    FOK = "FOK"  # fill-or-kill


class OrderStatus(str, enum.Enum):
    """Order lifecycle status.

    ``BRAND_NEW -> NEW -> PARTIALLY_FILLED`` are live states; every other
    status is terminal.
    """

    BRAND_NEW = "BRAND_NEW"
    NEW = "NEW"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    FILLED = "FILLED"
    CANCELED = "CANCELED"
    EXPIRED = "EXPIRED"
    FAILED = "FAILED"
    REJECTED = "REJECTED"


_LIVE_STATUSES = frozenset(
    {OrderStatus.BRAND_NEW, OrderStatus.NEW, OrderStatus.PARTIALLY_FILLED}
)


class OrderRequest(BaseModel):
    """An order to be submitted to an exchange.

    For limit orders ``amount`` and ``price`` are required. For market
    orders either ``amount`` or ``amount_quote`` is required; ``amount``
    takes priority when both are given.

    Attributes:
        market: Market to trade.
        side: Buy or sell.
        type: Market or limit.
        price: Limit price in quote currency per base unit.
        amount: Amount of base currency to buy or sell.
        amount_quote: Amount of quote currency to spend or receive.
        time_in_force: Only for limit orders.
        fee_expected: Expected fee in quote currency, if known.
    """

    market: Market
    side: OrderSide
    type: OrderType = OrderType.MARKET
    price: Decimal | None = None
    amount: Decimal | None = None
    amount_quote: Decimal | None = None
    time_in_force: TimeInForce = TimeInForce.GTC
    fee_expected: Decimal | None = None


class Order(OrderRequest):
    """An order as known by the exchange after submission.

    Attributes:
        id: Exchange-assigned order ID (None until accepted).
        status: Current lifecycle status.
        amount_filled: Base amount filled so far.
        amount_quote_filled: Quote amount filled so far.
        fee_paid: Fee paid in quote currency.
    """

    id: str | None = None
    status: OrderStatus = OrderStatus.BRAND_NEW
    amount_filled: Decimal = Decimal(0)
    amount_quote_filled: Decimal = Decimal(0)
    fee_paid: Decimal = Decimal(0)

    @property
    def has_ended(self) -> bool:
        """Whether the order reached a terminal status."""
        return self.status not in _LIVE_STATUSES
