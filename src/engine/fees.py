"""
ScanFlow — Amazon Fee Calculator

Media category fees:
- Referral: P × 0.15
- Closing fee: $1.80 flat
- FBA fulfillment: $3.50 per book
- FBM shipping: $4.00 per book (estimated)
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from enum import Enum

import structlog

from src.config import settings

logger = structlog.get_logger(__name__)

_TWO_DP = Decimal("0.01")


class Fulfillment(str, Enum):
    FBA = "fba"     # warehouse-fulfilled
    FBM = "fbm"     # merchant-fulfilled


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(_TWO_DP, rounding=ROUND_HALF_UP)


def calculate_referral_fee(price: Decimal) -> Decimal:
    """Referral fee on a sell price."""
    if price < Decimal("0"):
        raise ValueError("price must be non-negative")
    return _quantize(price * settings.REFERRAL_FEE_PERCENT)


def calculate_amazon_fees(price: Decimal, fulfillment: Fulfillment) -> Decimal:
    """
    Total selling cost for a given price and fulfillment channel.

    Formulas:
    - FBA: P × 0.15 + $1.80 + $3.50
    - FBM: P × 0.15 + $1.80 + $4.00

    Args:
        price: The sell price.
        fulfillment: Which fulfillment channel.

    Returns:
        Decimal fee amount (2dp).

    Raises:
        ValueError: If price is negative.
    """
    referral = calculate_referral_fee(price)

    if fulfillment == Fulfillment.FBA:
        fee = _quantize(referral + settings.CLOSING_FEE + settings.FBA_FULFILLMENT_FEE)
    elif fulfillment == Fulfillment.FBM:
        fee = _quantize(referral + settings.CLOSING_FEE + settings.FBM_SHIPPING_COST)
    else:
        raise ValueError(f"Unsupported fulfillment: {fulfillment}")

    logger.debug(
        "amazon_fee_calculated",
        price=str(price),
        fulfillment=fulfillment.value,
        fee=str(fee),
        source="fees",
    )
    return fee
