"""
ScanFlow - Net Profit Calculator

Profit = Sell_Price - Buy_Price - Amazon_Fees(fulfillment)

Negative results are valid and signal a loss.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple

import structlog

from src.engine.fees import Fulfillment, calculate_amazon_fees

logger = structlog.get_logger(__name__)

_TWO_DP = Decimal("0.01")


class ProfitBreakdown(NamedTuple):
    fba_profit: Decimal
    fbm_profit: Decimal


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(_TWO_DP, rounding=ROUND_HALF_UP)


def calculate_fba_profit(buy_price: Decimal, sell_price: Decimal) -> Decimal:
    return _quantize(sell_price - buy_price - calculate_amazon_fees(sell_price, Fulfillment.FBA))


def calculate_fbm_profit(buy_price: Decimal, sell_price: Decimal) -> Decimal:
    return _quantize(sell_price - buy_price - calculate_amazon_fees(sell_price, Fulfillment.FBM))


def calculate_profits(buy_price: Decimal, sell_price: Decimal) -> ProfitBreakdown:
    """Calculate FBA and FBM profit for one buy/sell pair (dollars, 2dp)."""
    result = ProfitBreakdown(
        fba_profit=calculate_fba_profit(buy_price, sell_price),
        fbm_profit=calculate_fbm_profit(buy_price, sell_price),
    )

    logger.debug(
        "profit_calculated",
        buy_price=str(buy_price),
        sell_price=str(sell_price),
        fba_profit=str(result.fba_profit),
        fbm_profit=str(result.fbm_profit),
    )
    return result
