"""Target weights and allocation diffs produced during a rebalance run."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from capweight.models.exchange import MarketStatus
from capweight.models.market import Market


class AbsoluteAllocation(BaseModel):
    """Unnormalized target weight of one asset.

    Weights are only meaningful relative to the sum of all weights included
    in the same run.

    Attributes:
        market: Market of the target asset.
        absolute_weight: Non-negative, unnormalized weight.
        market_status: Trading status on the target exchange, if resolved.
    """

    model_config = {"frozen": True}

    market: Market
    absolute_weight: Decimal = Field(ge=0)
    market_status: MarketStatus = MarketStatus.UNKNOWN

    @classmethod
    def for_symbol(
        cls,
        quote_symbol: str,
        base_symbol: str,
        absolute_weight: Decimal | int | str,
        market_status: MarketStatus = MarketStatus.UNKNOWN,
    ) -> AbsoluteAllocation:
        """Build a target weight from bare symbols."""
        return cls(
            market=Market(quote_symbol, base_symbol),
            absolute_weight=Decimal(absolute_weight),
            market_status=market_status,
        )

    def with_status(self, market_status: MarketStatus) -> AbsoluteAllocation:
        """Copy of this target weight with ``market_status`` replaced."""
        return self.model_copy(update={"market_status": market_status})


class AllocationDiff(BaseModel):
    """Deviation of one current allocation from its target.

    A positive ``amount_quote_diff`` marks an oversized allocation (sell
    candidate), a negative one an undersized allocation (buy candidate).

    Attributes:
        market: Market of the asset.
        price: Current price (zero if not currently held).
        amount: Current base amount (zero if not currently held).
        amount_quote: Current value in quote currency.
        amount_quote_diff: Current quote value minus target quote value.
    """

    model_config = {"frozen": True}

    market: Market
    price: Decimal
    amount: Decimal
    amount_quote: Decimal
    amount_quote_diff: Decimal
