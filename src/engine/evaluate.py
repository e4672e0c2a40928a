"""
ScanFlow — Book Evaluation

Runs the engine for one listing, in order:
1. Sales rank metrics (rank knockouts short-circuit here)
2. Amazon 1P presence analysis -> realistic sell price
3. Fallback sell price from channel prices
4. Multiplier, profits, and the decision rule table

Missing data never raises; it ends in REJECT with a reason.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import NamedTuple

import structlog

from src.config import CompetitionFlag, Decision, DecisionThresholds
from src.engine.decision import classify_decision
from src.engine.presence import PresenceAnalysis, analyze_amazon_presence
from src.engine.prices import fallback_sell_price, get_channel_prices
from src.engine.snapshot import ProductSnapshot
from src.engine.velocity import classify_velocity, get_sales_rank_metrics

logger = structlog.get_logger(__name__)

_NO_PRESENCE = PresenceAnalysis(stockout_percent=None, realistic_price=None, flag=None)


class EvaluationResult(NamedTuple):
    decision: Decision
    reason: str
    sell_price: Decimal | None = None
    fba_profit: Decimal | None = None
    fbm_profit: Decimal | None = None
    sales_rank: int | None = None
    sales_rank_drops_90: int = 0
    flag: CompetitionFlag | None = None
    weight_lbs: Decimal | None = None
    binding: str | None = None
    multiplier: Decimal | None = None
    asin: str | None = None


def _rank_passes_knockouts(rank: int | None, thresholds: DecisionThresholds) -> bool:
    return rank is not None and rank <= thresholds.knockout_max_sales_rank


def evaluate_book(
    snapshot: ProductSnapshot | None,
    buy_price: Decimal,
    now: datetime | None = None,
    thresholds: DecisionThresholds | None = None,
) -> EvaluationResult:
    """
    Decide whether a listing is worth buying.

    Args:
        snapshot: Price-tracking data, None when the lookup found nothing.
        buy_price: Listing price plus shipping in dollars. Callers guarantee
            it is positive.
        now: Evaluation time for the stockout window (default: now, UTC).
        thresholds: Override for the settings-backed threshold table.

    Returns:
        An immutable EvaluationResult.
    """
    if snapshot is None:
        logger.info("book_evaluated", decision=Decision.REJECT.value, reason="no_snapshot")
        return EvaluationResult(decision=Decision.REJECT, reason="No price-tracking data")

    table = thresholds or DecisionThresholds.from_settings()
    metrics = get_sales_rank_metrics(snapshot)

    presence = _NO_PRESENCE
    sell_price: Decimal | None = None
    if _rank_passes_knockouts(metrics.avg_sales_rank, table):
        presence = analyze_amazon_presence(snapshot, now=now)
        sell_price = presence.realistic_price
        if sell_price is None:
            sell_price = fallback_sell_price(get_channel_prices(snapshot))

    classification = classify_decision(
        buy_price=buy_price,
        avg_sales_rank=metrics.avg_sales_rank,
        sales_rank_drops_90=metrics.sales_rank_drops_90,
        sell_price=sell_price,
        thresholds=table,
    )
    profits = classification.profits

    result = EvaluationResult(
        decision=classification.decision,
        reason=classification.reason,
        sell_price=sell_price,
        fba_profit=profits.fba_profit if profits else None,
        fbm_profit=profits.fbm_profit if profits else None,
        sales_rank=metrics.avg_sales_rank,
        sales_rank_drops_90=metrics.sales_rank_drops_90,
        flag=presence.flag,
        weight_lbs=snapshot.weight_lbs(),
        binding=snapshot.binding,
        multiplier=classification.multiplier,
        asin=snapshot.asin or None,
    )

    logger.info(
        "book_evaluated",
        asin=result.asin,
        decision=result.decision.value,
        rule=classification.rule,
        reason=result.reason,
        buy_price=str(buy_price),
        sell_price=str(sell_price) if sell_price is not None else None,
        stockout_percent=presence.stockout_percent,
        flag=result.flag.value if result.flag else None,
        velocity_tier=classify_velocity(metrics.sales_rank_drops_90).value,
    )
    return result
