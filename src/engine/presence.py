"""
ScanFlow — Amazon 1P Presence Analysis

Measures how often Amazon itself was out of stock over a trailing window and
estimates what a third-party seller can realistically charge.

Algorithm:
    1. Window = [now - STOCKOUT_WINDOW_DAYS, now].
    2. Each AMAZON sample holds its value until the next sample; the last
       sample holds until now. Every interval is clipped to the window.
    3. stockout_percent = round(100 * stockout_time / observed_time).
    4. Flag: > 50% green, 20-50% yellow, otherwise red.
    5. Realistic price = median buy box price observed while Amazon was out
       of stock. With no such samples and 0% stockout, the current new
       third-party price is used and the flag is forced red.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from statistics import median
from typing import NamedTuple

import structlog

from src.config import CompetitionFlag, settings
from src.engine.prices import last_price
from src.engine.snapshot import (
    OUT_OF_STOCK,
    Channel,
    PriceSeries,
    ProductSnapshot,
    cents_to_dollars,
    to_keepa_minutes,
)

logger = structlog.get_logger(__name__)

_MINUTES_PER_DAY = 24 * 60
_ONE = Decimal("1")


class PresenceAnalysis(NamedTuple):
    stockout_percent: int | None
    realistic_price: Decimal | None
    flag: CompetitionFlag | None


class Interval(NamedTuple):
    """A clipped constant-value span of the AMAZON channel, in Keepa minutes."""
    start: float
    end: float
    value: int
    is_open: bool   # last sample, runs until now

    @property
    def duration(self) -> float:
        return self.end - self.start

    def contains(self, moment: float) -> bool:
        if self.is_open:
            return self.start <= moment <= self.end
        return self.start <= moment < self.end


def clip_intervals(samples: PriceSeries, window_start: float, now: float) -> list[Interval]:
    """
    Turn samples into intervals clipped to [window_start, now].

    Intervals that end before the window or start after now are dropped, so
    no returned interval has a non-positive duration.
    """
    intervals: list[Interval] = []
    last_index = len(samples) - 1
    for i, (t, value) in enumerate(samples):
        is_open = i == last_index
        next_t = now if is_open else samples[i + 1][0]
        start = max(t, window_start)
        end = min(next_t, now)
        if end <= start:
            continue
        intervals.append(Interval(start=start, end=end, value=value, is_open=is_open))
    return intervals


def classify_stockout(stockout_percent: int | None) -> CompetitionFlag | None:
    if stockout_percent is None:
        return None
    if stockout_percent > settings.STOCKOUT_FAVORABLE_ABOVE:
        return CompetitionFlag.FAVORABLE
    if stockout_percent >= settings.STOCKOUT_NEUTRAL_FLOOR:
        return CompetitionFlag.NEUTRAL
    return CompetitionFlag.UNFAVORABLE


def _buy_box_during_stockouts(
    stockouts: list[Interval],
    buy_box: PriceSeries | None,
) -> list[Decimal]:
    if not stockouts or not buy_box:
        return []

    prices = [
        cents_to_dollars(value)
        for t, value in buy_box
        if value > 0 and any(interval.contains(t) for interval in stockouts)
    ]

    # An ongoing stockout sells at whatever buy box price is in effect, even
    # when that price was recorded before Amazon went out of stock.
    final = stockouts[-1]
    last_t, last_value = buy_box[-1]
    if final.is_open and last_t < final.start and last_value > 0:
        prices.append(cents_to_dollars(last_value))

    return prices


def analyze_amazon_presence(
    snapshot: ProductSnapshot,
    now: datetime | None = None,
    window_days: int | None = None,
) -> PresenceAnalysis:
    """
    Analyze Amazon 1P stock history over the trailing window.

    Args:
        snapshot: Product snapshot for the book.
        now: Evaluation time (default: current UTC time).
        window_days: Override for STOCKOUT_WINDOW_DAYS.

    Returns:
        PresenceAnalysis. All fields are None when the AMAZON channel is
        missing or malformed.
    """
    amazon = snapshot.channel(Channel.AMAZON)
    if not amazon:
        return PresenceAnalysis(stockout_percent=None, realistic_price=None, flag=None)

    now_minutes = to_keepa_minutes(now or datetime.now(timezone.utc))
    days = window_days if window_days is not None else settings.STOCKOUT_WINDOW_DAYS
    window_start = now_minutes - days * _MINUTES_PER_DAY

    intervals = clip_intervals(amazon, window_start, now_minutes)
    stockouts = [interval for interval in intervals if interval.value == OUT_OF_STOCK]
    total = sum(interval.duration for interval in intervals)
    stockout_time = sum(interval.duration for interval in stockouts)

    stockout_percent: int | None = None
    if total > 0:
        ratio = Decimal(repr(stockout_time * 100 / total))
        stockout_percent = int(ratio.quantize(_ONE, rounding=ROUND_HALF_UP))
    flag = classify_stockout(stockout_percent)

    buy_box_prices = _buy_box_during_stockouts(stockouts, snapshot.channel(Channel.BUY_BOX))

    realistic_price: Decimal | None = None
    if buy_box_prices:
        realistic_price = median(buy_box_prices)
    elif stockout_percent == 0:
        third_party = last_price(snapshot.channel(Channel.NEW))
        if third_party is not None:
            realistic_price = third_party
            flag = CompetitionFlag.UNFAVORABLE

    logger.debug(
        "amazon_presence_analyzed",
        asin=snapshot.asin,
        observed_minutes=round(total, 1),
        stockout_minutes=round(stockout_time, 1),
        stockout_percent=stockout_percent,
        buy_box_samples=len(buy_box_prices),
        realistic_price=str(realistic_price) if realistic_price is not None else None,
        flag=flag.value if flag else None,
    )
    return PresenceAnalysis(
        stockout_percent=stockout_percent,
        realistic_price=realistic_price,
        flag=flag,
    )
