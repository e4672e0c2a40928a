"""
ScanFlow — Product Snapshot & Listing Types

A ProductSnapshot is the price-tracking view of one ISBN: per-channel time
series of (keepa_minute, value) samples plus summary statistics. Prices are
integer cents; -1 on the AMAZON channel means Amazon 1P was out of stock.

Keepa time: minutes elapsed since 2011-01-01 00:00 UTC.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import IntEnum
from typing import Any, Sequence

from pydantic import BaseModel, ConfigDict, Field

KEEPA_EPOCH = datetime(2011, 1, 1, tzinfo=timezone.utc)
OUT_OF_STOCK = -1

_HUNDRED = Decimal("100")

Sample = tuple[int, int]
PriceSeries = tuple[Sample, ...]


class Channel(IntEnum):
    """Keepa csv indices for the channels the engine reads."""
    AMAZON = 0
    NEW = 1
    USED = 2
    SALES_RANK = 3
    NEW_FBA = 10
    BUY_BOX = 18


def to_keepa_minutes(moment: datetime) -> float:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - KEEPA_EPOCH).total_seconds() / 60


def from_keepa_minutes(minutes: float) -> datetime:
    return KEEPA_EPOCH + timedelta(minutes=minutes)


def cents_to_dollars(cents: int) -> Decimal:
    return Decimal(cents) / _HUNDRED


def parse_series(flat: Sequence[Any] | None) -> PriceSeries | None:
    """
    Convert a Keepa flat array ``[t0, v0, t1, v1, ...]`` into sample pairs.

    Returns None for missing, truncated (odd length), non-integer, or
    out-of-order data. Malformed channels are treated as absent.
    """
    if not flat or len(flat) < 2 or len(flat) % 2:
        return None

    samples: list[Sample] = []
    previous = None
    for i in range(0, len(flat), 2):
        t, v = flat[i], flat[i + 1]
        if isinstance(t, bool) or isinstance(v, bool):
            return None
        if not isinstance(t, int) or not isinstance(v, int):
            return None
        if previous is not None and t < previous:
            return None
        samples.append((t, v))
        previous = t
    return tuple(samples)


class ProductSnapshot(BaseModel):
    """Price-tracking data for a single identifier."""

    model_config = ConfigDict(frozen=True)

    asin: str = ""
    title: str | None = None
    series: dict[Channel, PriceSeries] = Field(default_factory=dict)
    avg180: dict[Channel, int] = Field(default_factory=dict)
    avg90: dict[Channel, int] = Field(default_factory=dict)
    sales_rank_drops_90: int = 0
    item_weight: int | None = None        # grams
    package_weight: int | None = None     # grams
    binding: str | None = None

    def channel(self, channel: Channel) -> PriceSeries | None:
        samples = self.series.get(channel)
        return samples or None

    def weight_lbs(self) -> Decimal | None:
        """Item weight in pounds, falling back to package weight."""
        for grams in (self.item_weight, self.package_weight):
            if grams and grams > 0:
                return Decimal(grams) / Decimal("453.592")
        return None


class Listing(BaseModel):
    """A candidate purchase. Prices are integer cents."""

    isbn: str
    price: int
    shipping: int = 0

    @property
    def buy_price(self) -> Decimal:
        """Price plus shipping in dollars."""
        return cents_to_dollars(self.price + self.shipping)
