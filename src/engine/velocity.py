"""
ScanFlow - Sales Velocity (sales rank metrics)

Average sales rank prefers the 180-day average and falls back to the 90-day
average. Sales rank drops over 90 days stand in for completed sales.
"""

from __future__ import annotations

from typing import NamedTuple

import structlog

from src.config import VelocityTier, settings
from src.engine.snapshot import Channel, ProductSnapshot

logger = structlog.get_logger(__name__)


class SalesRankMetrics(NamedTuple):
    avg_sales_rank: int | None
    sales_rank_drops_90: int


def get_sales_rank_metrics(snapshot: ProductSnapshot) -> SalesRankMetrics:
    """
    Extract the average sales rank and 90-day drop count.

    A missing rank or zero drops is returned as-is; the decision classifier
    treats both as knockouts.
    """
    drops = snapshot.sales_rank_drops_90 or 0

    avg_rank: int | None = None
    for averages in (snapshot.avg180, snapshot.avg90):
        rank = averages.get(Channel.SALES_RANK, 0)
        if rank > 0:
            avg_rank = rank
            break

    return SalesRankMetrics(avg_sales_rank=avg_rank, sales_rank_drops_90=drops)


def classify_velocity(
    drops_90: int,
    threshold_steady: int | None = None,
    threshold_fast: int | None = None,
) -> VelocityTier:
    """
    Label 90-day sales velocity.

    Tier rules:
    - drops_90 >= fast -> FAST
    - steady <= drops_90 < fast -> STEADY
    - drops_90 < steady -> SLOW
    """
    if drops_90 < 0:
        raise ValueError("drops_90 must be non-negative")

    steady = threshold_steady if threshold_steady is not None else settings.VELOCITY_STEADY_DROPS
    fast = threshold_fast if threshold_fast is not None else settings.VELOCITY_FAST_DROPS
    if steady >= fast:
        raise ValueError("threshold_steady must be less than threshold_fast")

    if drops_90 >= fast:
        tier = VelocityTier.FAST
    elif drops_90 >= steady:
        tier = VelocityTier.STEADY
    else:
        tier = VelocityTier.SLOW

    logger.debug(
        "velocity_classified",
        drops_90=drops_90,
        threshold_steady=steady,
        threshold_fast=fast,
        velocity_tier=tier.value,
    )
    return tier
