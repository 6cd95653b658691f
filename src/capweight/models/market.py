"""Market (trading pair) model."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, field_validator


class Market(BaseModel):
    """A pair of quote currency and base currency.

    Both symbols are normalized to uppercase on construction, which makes
    equality and hashing case-insensitive. The canonical string form is
    ``BASE-QUOTE`` (e.g. ``"BTC-EUR"``).

    Attributes:
        quote_symbol: Currency the base asset is priced in (e.g. "EUR").
        base_symbol: Traded asset (e.g. "BTC").
    """

    model_config = {"frozen": True}

    quote_symbol: str
    base_symbol: str

    def __init__(self, quote_symbol: str, base_symbol: str, **data: Any) -> None:
        super().__init__(quote_symbol=quote_symbol, base_symbol=base_symbol, **data)

    @field_validator("quote_symbol", "base_symbol", mode="before")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        return str(value).strip().upper()

    @classmethod
    def from_string(cls, market: str) -> Market:
        """Parse a ``BASE-QUOTE`` string.

        Args:
            market: Market string, e.g. "btc-eur".

        Returns:
            The parsed Market.

        Raises:
            ValueError: If the string is not of the form ``BASE-QUOTE``.
        """
        parts = market.split("-")
        if len(parts) != 2 or not all(parts):
            raise ValueError(f"Invalid market string: {market!r}")
        base, quote = parts
        return cls(quote, base)

    @property
    def is_quote_market(self) -> bool:
        """Whether this market trades the quote currency against itself."""
        return self.base_symbol == self.quote_symbol

    def __str__(self) -> str:
        return f"{self.base_symbol}-{self.quote_symbol}"
