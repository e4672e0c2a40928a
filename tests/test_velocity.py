"""Tests for sales rank metrics and velocity tiers."""

from __future__ import annotations

import pytest

from src.config import VelocityTier, settings
from src.engine.snapshot import Channel
from src.engine.velocity import classify_velocity, get_sales_rank_metrics


def test_rank_prefers_180_day_average(make_snapshot) -> None:
    snapshot = make_snapshot(
        avg180={Channel.SALES_RANK: 400_000},
        avg90={Channel.SALES_RANK: 250_000},
    )
    metrics = get_sales_rank_metrics(snapshot)

    assert metrics.avg_sales_rank == 400_000
    assert metrics.sales_rank_drops_90 == 5


def test_rank_falls_back_to_90_day_average(make_snapshot) -> None:
    snapshot = make_snapshot(
        avg180={Channel.SALES_RANK: -1},
        avg90={Channel.SALES_RANK: 250_000},
    )
    assert get_sales_rank_metrics(snapshot).avg_sales_rank == 250_000


def test_rank_unknown(make_snapshot) -> None:
    snapshot = make_snapshot(avg180={}, sales_rank_drops_90=0)
    metrics = get_sales_rank_metrics(snapshot)

    assert metrics.avg_sales_rank is None
    assert metrics.sales_rank_drops_90 == 0


def test_classify_velocity_fast() -> None:
    assert classify_velocity(settings.VELOCITY_FAST_DROPS) == VelocityTier.FAST
    assert classify_velocity(40) == VelocityTier.FAST


def test_classify_velocity_steady() -> None:
    """Boundary: exactly the steady floor is STEADY, one below fast is STEADY."""
    assert classify_velocity(settings.VELOCITY_STEADY_DROPS) == VelocityTier.STEADY
    assert classify_velocity(settings.VELOCITY_FAST_DROPS - 1) == VelocityTier.STEADY


def test_classify_velocity_slow() -> None:
    assert classify_velocity(0) == VelocityTier.SLOW
    assert classify_velocity(settings.VELOCITY_STEADY_DROPS - 1) == VelocityTier.SLOW


def test_classify_velocity_custom_thresholds() -> None:
    assert classify_velocity(5, threshold_steady=1, threshold_fast=5) == VelocityTier.FAST


def test_classify_velocity_negative_raises() -> None:
    with pytest.raises(ValueError, match="non-negative"):
        classify_velocity(-1)


def test_classify_velocity_bad_thresholds_raise() -> None:
    with pytest.raises(ValueError, match="less than"):
        classify_velocity(3, threshold_steady=10, threshold_fast=10)
