from src.engine.decision import classify_decision
from src.engine.evaluate import EvaluationResult, evaluate_book
from src.engine.fees import calculate_amazon_fees, calculate_referral_fee
from src.engine.presence import analyze_amazon_presence
from src.engine.prices import fallback_sell_price, get_channel_prices
from src.engine.profit import calculate_fba_profit, calculate_fbm_profit, calculate_profits
from src.engine.snapshot import Channel, Listing, ProductSnapshot
from src.engine.velocity import classify_velocity, get_sales_rank_metrics

__all__ = [
    "Channel",
    "EvaluationResult",
    "Listing",
    "ProductSnapshot",
    "analyze_amazon_presence",
    "calculate_amazon_fees",
    "calculate_fba_profit",
    "calculate_fbm_profit",
    "calculate_profits",
    "calculate_referral_fee",
    "classify_decision",
    "classify_velocity",
    "evaluate_book",
    "fallback_sell_price",
    "get_channel_prices",
    "get_sales_rank_metrics",
]
