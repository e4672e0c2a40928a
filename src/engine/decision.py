"""
ScanFlow — Decision Classifier

Ordered rule table, first match wins.

Knockouts (REJECT):
    1. Unknown average sales rank
    2. Rank above the absolute cap (3M)
    3. No usable sell price
    4. Multiplier below the REVIEW multiplier (4x), unless the high-profit
       exception holds
    5. No sales rank drops in 90 days

Tiers:
    | Tier            | Multiplier | Rank                    | Drops90 | Other        |
    |:----------------|:-----------|:------------------------|:--------|:-------------|
    | BUY high-profit | any        | < 1M                    | >= 10   | FBM >= $60   |
    | BUY             | >= 6x      | < 1.5M (< 2M if < $6)   | >= 3    |              |
    | REVIEW          | >= 4x      | < 2.5M                  | >= 2    |              |

Anything else is REJECT with every unmet REVIEW criterion listed.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Callable, NamedTuple

import structlog

from src.config import Decision, DecisionThresholds
from src.engine.profit import ProfitBreakdown, calculate_profits

logger = structlog.get_logger(__name__)

_ZERO = Decimal("0")


class DecisionInputs(NamedTuple):
    buy_price: Decimal
    avg_sales_rank: int | None
    sales_rank_drops_90: int
    sell_price: Decimal | None
    multiplier: Decimal | None
    profits: ProfitBreakdown | None


class Rule(NamedTuple):
    name: str
    decision: Decision
    applies: Callable[[DecisionInputs, DecisionThresholds], bool]
    reason: Callable[[DecisionInputs, DecisionThresholds], str]


class Classification(NamedTuple):
    decision: Decision
    reason: str
    rule: str
    multiplier: Decimal | None
    profits: ProfitBreakdown | None


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def buy_max_rank(buy_price: Decimal, thresholds: DecisionThresholds) -> int:
    """Rank cap for the standard BUY tier; cheap books get a relaxed cap."""
    if buy_price < thresholds.cheap_price_threshold:
        return thresholds.buy_max_rank_cheap
    return thresholds.buy_max_rank


def is_high_profit(inputs: DecisionInputs, t: DecisionThresholds) -> bool:
    return (
        inputs.profits is not None
        and inputs.avg_sales_rank is not None
        and inputs.profits.fbm_profit >= t.high_profit_min
        and inputs.avg_sales_rank < t.high_profit_max_rank
        and inputs.sales_rank_drops_90 >= t.high_profit_min_drops
    )


def meets_buy(inputs: DecisionInputs, t: DecisionThresholds) -> bool:
    return (
        inputs.multiplier is not None
        and inputs.avg_sales_rank is not None
        and inputs.multiplier >= t.buy_multiplier
        and inputs.avg_sales_rank < buy_max_rank(inputs.buy_price, t)
        and inputs.sales_rank_drops_90 >= t.buy_min_drops
    )


def meets_review(inputs: DecisionInputs, t: DecisionThresholds) -> bool:
    return (
        inputs.multiplier is not None
        and inputs.avg_sales_rank is not None
        and inputs.multiplier >= t.review_multiplier
        and inputs.avg_sales_rank < t.review_max_rank
        and inputs.sales_rank_drops_90 >= t.review_min_drops
    )


def _multiplier_too_low(inputs: DecisionInputs, t: DecisionThresholds) -> bool:
    assert inputs.multiplier is not None
    return inputs.multiplier < t.review_multiplier and not is_high_profit(inputs, t)


# ---------------------------------------------------------------------------
# Reasons
# ---------------------------------------------------------------------------


def _metrics(inputs: DecisionInputs) -> str:
    return (
        f"{inputs.multiplier:.1f}x | Rank: {inputs.avg_sales_rank:,} "
        f"| Drops: {inputs.sales_rank_drops_90}"
    )


def _high_profit_reason(inputs: DecisionInputs, t: DecisionThresholds) -> str:
    assert inputs.profits is not None
    return f"{_metrics(inputs)} | HIGH_PROFIT FBM ${inputs.profits.fbm_profit:.0f}"


def unmet_review_criteria(inputs: DecisionInputs, t: DecisionThresholds) -> list[str]:
    failed: list[str] = []
    if inputs.multiplier is not None and inputs.multiplier < t.review_multiplier:
        failed.append(f"{inputs.multiplier:.1f}x < {t.review_multiplier}x")
    if inputs.avg_sales_rank is not None and inputs.avg_sales_rank >= t.review_max_rank:
        failed.append(f"rank {inputs.avg_sales_rank:,} >= {t.review_max_rank:,}")
    if inputs.sales_rank_drops_90 < t.review_min_drops:
        failed.append(f"drops {inputs.sales_rank_drops_90} < {t.review_min_drops}")
    return failed


# ---------------------------------------------------------------------------
# Rule tables
# ---------------------------------------------------------------------------

KNOCKOUT_RULES: tuple[Rule, ...] = (
    Rule(
        name="unknown_rank",
        decision=Decision.REJECT,
        applies=lambda i, t: i.avg_sales_rank is None,
        reason=lambda i, t: "Unknown sales rank",
    ),
    Rule(
        name="rank_cap",
        decision=Decision.REJECT,
        applies=lambda i, t: i.avg_sales_rank > t.knockout_max_sales_rank,
        reason=lambda i, t: f"Rank {i.avg_sales_rank:,} > {t.knockout_max_sales_rank:,}",
    ),
    Rule(
        name="no_price",
        decision=Decision.REJECT,
        applies=lambda i, t: i.sell_price is None,
        reason=lambda i, t: "No Amazon price data",
    ),
    Rule(
        name="low_multiplier",
        decision=Decision.REJECT,
        applies=_multiplier_too_low,
        reason=lambda i, t: f"Multiplier {i.multiplier:.1f}x < {t.review_multiplier}x",
    ),
    Rule(
        name="no_recent_sales",
        decision=Decision.REJECT,
        applies=lambda i, t: i.sales_rank_drops_90 == 0,
        reason=lambda i, t: "No sales in 90 days (drops90 = 0)",
    ),
)

TIER_RULES: tuple[Rule, ...] = (
    Rule(name="buy_high_profit", decision=Decision.BUY, applies=is_high_profit, reason=_high_profit_reason),
    Rule(name="buy", decision=Decision.BUY, applies=meets_buy, reason=lambda i, t: _metrics(i)),
    Rule(name="review", decision=Decision.REVIEW, applies=meets_review, reason=lambda i, t: _metrics(i)),
)

FALLBACK_RULE = Rule(
    name="below_review",
    decision=Decision.REJECT,
    applies=lambda i, t: True,
    reason=lambda i, t: ", ".join(unmet_review_criteria(i, t)) or _metrics(i),
)

DECISION_RULES: tuple[Rule, ...] = KNOCKOUT_RULES + TIER_RULES + (FALLBACK_RULE,)


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


def build_inputs(
    buy_price: Decimal,
    avg_sales_rank: int | None,
    sales_rank_drops_90: int,
    sell_price: Decimal | None,
) -> DecisionInputs:
    """Derive the multiplier and profits for a buy/sell pair."""
    if buy_price <= _ZERO:
        raise ValueError("buy_price must be positive")

    multiplier = None
    profits = None
    if sell_price is not None:
        multiplier = sell_price / buy_price
        profits = calculate_profits(buy_price, sell_price)

    return DecisionInputs(
        buy_price=buy_price,
        avg_sales_rank=avg_sales_rank,
        sales_rank_drops_90=sales_rank_drops_90,
        sell_price=sell_price,
        multiplier=multiplier,
        profits=profits,
    )


def classify_decision(
    buy_price: Decimal,
    avg_sales_rank: int | None,
    sales_rank_drops_90: int,
    sell_price: Decimal | None,
    thresholds: DecisionThresholds | None = None,
) -> Classification:
    """
    Run the rule table and return the first matching outcome.

    Args:
        buy_price: Listing price plus shipping, in dollars. Must be positive.
        avg_sales_rank: Average sales rank, None when unknown.
        sales_rank_drops_90: Sales rank drops over 90 days.
        sell_price: Realistic sell price in dollars, None when unknown.
        thresholds: Override for the settings-backed threshold table.

    Raises:
        ValueError: If buy_price is not positive.
    """
    table = thresholds or DecisionThresholds.from_settings()
    inputs = build_inputs(buy_price, avg_sales_rank, sales_rank_drops_90, sell_price)

    for rule in DECISION_RULES:
        if rule.applies(inputs, table):
            outcome = Classification(
                decision=rule.decision,
                reason=rule.reason(inputs, table),
                rule=rule.name,
                multiplier=inputs.multiplier,
                profits=inputs.profits,
            )
            break

    logger.debug(
        "decision_classified",
        rule=outcome.rule,
        decision=outcome.decision.value,
        buy_price=str(buy_price),
        sell_price=str(sell_price) if sell_price is not None else None,
        avg_sales_rank=avg_sales_rank,
        sales_rank_drops_90=sales_rank_drops_90,
    )
    return outcome
