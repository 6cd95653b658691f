"""Portfolio model: per-asset allocations and the balance that owns them.

Derived values are cached and invalidated explicitly. An :class:`Allocation`
caches its quote value; mutating price, amount or quote value drops that
cache and notifies subscribed listeners. A :class:`Balance` subscribes to
each allocation it owns and drops its own cached totals when notified.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable, Iterator
from decimal import Decimal

from capweight.exceptions import AlreadyExistsError, InvalidObjectError
from capweight.logging import get_logger
from capweight.models.market import Market

logger = get_logger("models.portfolio")

Number = Decimal | int | float | str


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal, going through ``str`` for floats."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


class AllocationField(str, enum.Enum):
    """Mutable field of an allocation that raised a change notification."""

    PRICE = "price"
    AMOUNT = "amount"
    AMOUNT_QUOTE = "amount_quote"


AllocationListener = Callable[["Allocation", AllocationField], None]
BalanceListener = Callable[["Balance"], None]


class Allocation:
    """Holding of one asset, valued in the quote currency of its market.

    ``amount_quote`` equals ``price * amount`` unless it was written
    directly, in which case ``amount`` is recomputed as
    ``amount_quote / price`` (or zero when the price is zero) and the
    written quote value is kept until price or amount change again.

    Args:
        market: Market of this allocation.
        price: Price in quote currency per unit of base currency.
        amount: Amount in base currency.
    """

    def __init__(self, market: Market, price: Number = 0, amount: Number = 0) -> None:
        self._market = market
        self._price = to_decimal(price)
        self._amount = to_decimal(amount)
        self._amount_quote: Decimal | None = None
        self._listeners: list[AllocationListener] = []
        self._owner: Balance | None = None

    @property
    def market(self) -> Market:
        return self._market

    @property
    def owner(self) -> Balance | None:
        """The balance this allocation is attached to, if any."""
        return self._owner

    @property
    def price(self) -> Decimal:
        return self._price

    @price.setter
    def price(self, value: Number) -> None:
        self.set_price(value)

    @property
    def amount(self) -> Decimal:
        return self._amount

    @amount.setter
    def amount(self, value: Number) -> None:
        self.set_amount(value)

    @property
    def amount_quote(self) -> Decimal:
        if self._amount_quote is None:
            self._amount_quote = self._price * self._amount
        return self._amount_quote

    @amount_quote.setter
    def amount_quote(self, value: Number) -> None:
        self.set_amount_quote(value)

    def set_price(self, value: Number) -> None:
        """Set the price; notifies listeners only if the value changed."""
        new_value = to_decimal(value)
        if new_value == self._price:
            return
        self._price = new_value
        self._amount_quote = None
        self._notify(AllocationField.PRICE)

    def set_amount(self, value: Number) -> None:
        """Set the base amount; notifies listeners only if the value changed."""
        new_value = to_decimal(value)
        if new_value == self._amount:
            return
        self._amount = new_value
        self._amount_quote = None
        self._notify(AllocationField.AMOUNT)

    def set_amount_quote(self, value: Number) -> None:
        """Override the quote value and recompute the base amount from it."""
        new_value = to_decimal(value)
        if new_value == self.amount_quote:
            return
        self._amount_quote = new_value
        self._amount = Decimal(0) if self._price == 0 else new_value / self._price
        self._notify(AllocationField.AMOUNT_QUOTE)

    def subscribe(self, listener: AllocationListener) -> None:
        """Register a listener called as ``listener(allocation, field)`` on change."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: AllocationListener) -> None:
        """Remove a previously registered listener. Unknown listeners are ignored."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def copy(self) -> Allocation:
        """Detached copy with the same market and values, and no listeners."""
        clone = Allocation(self._market, self._price, self._amount)
        clone._amount_quote = self._amount_quote
        return clone

    def _notify(self, field: AllocationField) -> None:
        for listener in list(self._listeners):
            listener(self, field)

    def __repr__(self) -> str:
        return (
            f"Allocation(market={self._market}, price={self._price}, "
            f"amount={self._amount}, amount_quote={self.amount_quote})"
        )


class Balance:
    """Portfolio of allocations sharing one quote currency.

    Allocations are unique by market. ``amount_quote_total`` and
    ``amount_quote_available`` are cached and recomputed lazily after a
    change notification.

    Args:
        quote_symbol: Quote currency all allocations are valued in.
        allocations: Optional allocations to add right away.
    """

    def __init__(self, quote_symbol: str, allocations: Iterable[Allocation] = ()) -> None:
        self._quote_symbol = quote_symbol.upper()
        self._allocations: list[Allocation] = []
        self._amount_quote_total: Decimal | None = None
        self._amount_quote_available: Decimal | None = None
        self._total_changed_callbacks: list[BalanceListener] = []
        self._available_changed_callbacks: list[BalanceListener] = []

        for allocation in allocations:
            self.add_allocation(allocation)

    @property
    def quote_symbol(self) -> str:
        return self._quote_symbol

    @property
    def allocations(self) -> tuple[Allocation, ...]:
        """Allocations in insertion order."""
        return tuple(self._allocations)

    @property
    def amount_quote_total(self) -> Decimal:
        """Total value of all allocations in quote currency."""
        if self._amount_quote_total is None:
            self._amount_quote_total = sum(
                (alloc.amount_quote for alloc in self._allocations), Decimal(0)
            )
        return self._amount_quote_total

    @property
    def amount_quote_available(self) -> Decimal:
        """Quote currency held as cash, zero if there is no cash allocation."""
        if self._amount_quote_available is None:
            cash = self.get_allocation(self._quote_symbol)
            self._amount_quote_available = cash.amount_quote if cash else Decimal(0)
        return self._amount_quote_available

    # --- Membership ---

    def get_allocation(self, base_symbol: str) -> Allocation | None:
        """Find the allocation for ``base_symbol``, if present."""
        base_symbol = base_symbol.upper()
        for alloc in self._allocations:
            if alloc.market.base_symbol == base_symbol:
                return alloc
        return None

    def add_allocation(self, allocation: Allocation) -> None:
        """Attach ``allocation`` to this balance.

        Args:
            allocation: The allocation to add.

        Raises:
            InvalidObjectError: If the quote symbol differs from this balance's,
                or the allocation is owned by another balance.
            AlreadyExistsError: If an allocation in the same market is present.
        """
        if allocation.market.quote_symbol != self._quote_symbol:
            raise InvalidObjectError(
                f"Quote symbol of {allocation.market} does not match balance "
                f"quote symbol {self._quote_symbol}"
            )
        if any(alloc.market == allocation.market for alloc in self._allocations):
            raise AlreadyExistsError(f"An allocation in market {allocation.market} already exists")
        if allocation.owner is not None:
            raise InvalidObjectError(f"Allocation {allocation.market} is owned by another balance")

        allocation._owner = self
        allocation.subscribe(self._on_allocation_changed)
        self._allocations.append(allocation)

        self._reset_total()
        if self._is_cash(allocation):
            self._reset_available()

    def remove_allocation(self, base_symbol: str) -> Allocation | None:
        """Detach and return the allocation for ``base_symbol``, if present."""
        allocation = self.get_allocation(base_symbol)
        if allocation is None:
            return None

        allocation.unsubscribe(self._on_allocation_changed)
        allocation._owner = None
        self._allocations.remove(allocation)

        self._reset_total()
        if self._is_cash(allocation):
            self._reset_available()

        return allocation

    def copy(self) -> Balance:
        """Deep copy with detached allocation copies and no callbacks."""
        return Balance(self._quote_symbol, (alloc.copy() for alloc in self._allocations))

    # --- Change notifications ---

    def on_total_changed(self, callback: BalanceListener) -> None:
        """Register a callback invoked whenever the cached total is invalidated."""
        self._total_changed_callbacks.append(callback)

    def on_available_changed(self, callback: BalanceListener) -> None:
        """Register a callback invoked whenever the cached cash amount is invalidated."""
        self._available_changed_callbacks.append(callback)

    def _on_allocation_changed(self, allocation: Allocation, field: AllocationField) -> None:
        self._reset_total()
        if self._is_cash(allocation):
            self._reset_available()

    def _is_cash(self, allocation: Allocation) -> bool:
        return allocation.market.base_symbol == self._quote_symbol

    def _reset_total(self) -> None:
        self._amount_quote_total = None
        self._dispatch(self._total_changed_callbacks, "total_changed")

    def _reset_available(self) -> None:
        self._amount_quote_available = None
        self._dispatch(self._available_changed_callbacks, "available_changed")

    def _dispatch(self, callbacks: list[BalanceListener], event: str) -> None:
        for callback in callbacks:
            try:
                callback(self)
            except Exception:
                logger.exception("balance_callback_error", balance_event=event)

    # --- Container protocol ---

    def __iter__(self) -> Iterator[Allocation]:
        return iter(tuple(self._allocations))

    def __len__(self) -> int:
        return len(self._allocations)

    def __repr__(self) -> str:
        return (
            f"Balance(quote_symbol={self._quote_symbol!r}, "
            f"allocations={len(self._allocations)}, "
            f"amount_quote_total={self.amount_quote_total})"
        )
