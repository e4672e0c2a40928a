"""
ScanFlow — Amazon Price Channel Extraction

Current price = last sample of a channel if positive.
180-day average = stats.avg for the channel if positive.
Channel priority for a single price: NEW_FBA -> NEW -> USED.
"""

from __future__ import annotations

from decimal import Decimal
from typing import NamedTuple

import structlog

from src.engine.snapshot import Channel, PriceSeries, ProductSnapshot, cents_to_dollars

logger = structlog.get_logger(__name__)

PRICE_PRIORITY: tuple[Channel, ...] = (Channel.NEW_FBA, Channel.NEW, Channel.USED)


class ChannelPrices(NamedTuple):
    """Dollar prices keyed by channel; missing channels map to None."""
    current: dict[Channel, Decimal | None]
    avg180: dict[Channel, Decimal | None]


def last_price(samples: PriceSeries | None) -> Decimal | None:
    if not samples:
        return None
    value = samples[-1][1]
    return cents_to_dollars(value) if value > 0 else None


def _first_available(prices: dict[Channel, Decimal | None]) -> Decimal | None:
    for channel in PRICE_PRIORITY:
        price = prices.get(channel)
        if price is not None:
            return price
    return None


def get_channel_prices(snapshot: ProductSnapshot) -> ChannelPrices:
    current = {channel: last_price(snapshot.channel(channel)) for channel in PRICE_PRIORITY}
    avg180: dict[Channel, Decimal | None] = {}
    for channel in PRICE_PRIORITY:
        avg = snapshot.avg180.get(channel, 0)
        avg180[channel] = cents_to_dollars(avg) if avg > 0 else None
    return ChannelPrices(current=current, avg180=avg180)


def best_current(prices: ChannelPrices) -> Decimal | None:
    return _first_available(prices.current)


def best_average(prices: ChannelPrices) -> Decimal | None:
    return _first_available(prices.avg180)


def fallback_sell_price(prices: ChannelPrices) -> Decimal | None:
    """
    Sell price when no realistic price is available.

    The lower of the best 180-day average and the best current price, or
    whichever one exists.
    """
    avg = best_average(prices)
    current = best_current(prices)
    if avg is not None and current is not None:
        price = min(avg, current)
    else:
        price = avg if avg is not None else current

    logger.debug(
        "fallback_sell_price",
        avg180=str(avg) if avg is not None else None,
        current=str(current) if current is not None else None,
        price=str(price) if price is not None else None,
    )
    return price
