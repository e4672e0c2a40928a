"""
ScanFlow — Book Listing Persistence

Reads pending listings and writes evaluation results back, keyed by ISBN.
Dollar amounts from the engine are stored as integer cents and weight as
ounces (1 dp).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Sequence

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Decision, settings
from src.engine.evaluate import EvaluationResult
from src.models.book_listing import BookListing

logger = structlog.get_logger(__name__)

_ONE = Decimal("1")
_ONE_DP = Decimal("0.1")
_OUNCES_PER_POUND = Decimal("16")


def dollars_to_cents(amount: Decimal | None) -> int | None:
    if amount is None:
        return None
    return int((amount * 100).quantize(_ONE, rounding=ROUND_HALF_UP))


def pounds_to_ounces(weight_lbs: Decimal | None) -> Decimal | None:
    if weight_lbs is None:
        return None
    return (weight_lbs * _OUNCES_PER_POUND).quantize(_ONE_DP, rounding=ROUND_HALF_UP)


def evaluation_columns(result: EvaluationResult) -> dict[str, Any]:
    """Map an EvaluationResult onto ebay_books evaluation columns."""
    return {
        "decision": result.decision.value,
        "asin": result.asin,
        "amazon_price": dollars_to_cents(result.sell_price),
        "sales_rank": result.sales_rank,
        "sales_rank_drops_90": result.sales_rank_drops_90,
        "fba_profit": dollars_to_cents(result.fba_profit),
        "fbm_profit": dollars_to_cents(result.fbm_profit),
        "amazon_flag": result.flag.value if result.flag else None,
        "book_type": result.binding,
        "weight_oz": pounds_to_ounces(result.weight_lbs),
    }


async def get_pending_books(
    session: AsyncSession,
    limit: int | None = None,
) -> Sequence[BookListing]:
    """Listings with no decision yet, oldest scrape first."""
    stmt = (
        select(BookListing)
        .where(BookListing.decision.is_(None))
        .order_by(BookListing.scraped_at.asc())
        .limit(limit or settings.PENDING_BATCH_LIMIT)
    )
    result = await session.execute(stmt)
    books = result.scalars().all()

    logger.info("pending_books_loaded", count=len(books))
    return books


async def _write(session: AsyncSession, isbn: str, values: dict[str, Any]) -> bool:
    stmt = update(BookListing).where(BookListing.isbn == isbn).values(**values)
    result = await session.execute(stmt)
    await session.commit()

    if result.rowcount == 0:
        logger.warning("book_evaluation_not_stored", isbn=isbn)
        return False
    return True


async def update_book_evaluation(
    session: AsyncSession,
    isbn: str,
    result: EvaluationResult,
    evaluated_at: datetime,
) -> bool:
    """
    Persist an evaluation and its completion timestamp.

    Returns:
        True if a listing with this ISBN was updated.
    """
    values = evaluation_columns(result)
    values["evaluated_at"] = evaluated_at
    stored = await _write(session, isbn, values)

    if stored:
        logger.info(
            "book_evaluation_stored",
            isbn=isbn,
            decision=result.decision.value,
            amazon_price=values["amazon_price"],
        )
    return stored


async def mark_rejected(session: AsyncSession, isbn: str, evaluated_at: datetime) -> bool:
    """Reject a listing that could not be evaluated (no snapshot, bad input)."""
    stored = await _write(
        session,
        isbn,
        {"decision": Decision.REJECT.value, "evaluated_at": evaluated_at},
    )
    if stored:
        logger.info("book_rejected_without_data", isbn=isbn)
    return stored
