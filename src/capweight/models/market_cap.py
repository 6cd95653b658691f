"""Market capitalization snapshot model."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field, field_validator

from capweight.models.market import Market


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Naive values are taken to be UTC already, as stored by most SQL backends.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class MarketCapSample(BaseModel):
    """A market-cap snapshot of one asset at one point in time.

    Prices and market caps are magnitudes used for ranking only, so they
    are kept as floats.

    Attributes:
        market: Market in which the market cap is expressed.
        price: Price of the base asset in quote currency.
        market_cap: Market capitalization in quote currency.
        tags: Tags associated with the asset (e.g. "stablecoin").
        updated: Timestamp of the snapshot, always timezone-aware UTC.
    """

    model_config = {"frozen": True}

    market: Market
    price: float
    market_cap: float
    tags: tuple[str, ...] = Field(default_factory=tuple)
    updated: datetime

    @field_validator("updated")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        return as_utc(value)
