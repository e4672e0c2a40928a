"""
ScanFlow — Pending Book Evaluation (batch orchestration)

Evaluates every pending listing, one Keepa lookup at a time, with a fixed
delay between lookups. The loop is sequential on purpose: the delay is the
only thing keeping us inside Keepa's token budget.

A Keepa rate-limit response stops the batch. Everything evaluated before it
has already been committed and stays.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, NamedTuple, Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import Decision, settings
from src.engine.evaluate import evaluate_book
from src.engine.snapshot import ProductSnapshot
from src.pipeline.auth import Clock, utc_now
from src.pipeline.keepa import KeepaRateLimitError
from src.pipeline.repository import get_pending_books, mark_rejected, update_book_evaluation
from src.utils.isbn import validate_isbn

logger = structlog.get_logger(__name__)


class SnapshotSource(Protocol):
    async def fetch_product(self, isbn: str) -> ProductSnapshot | None: ...


class EvaluationSummary(NamedTuple):
    evaluated: int = 0
    buy: int = 0
    review: int = 0
    reject: int = 0
    no_data: int = 0
    invalid: int = 0
    aborted: bool = False


class BookEvaluator:
    """
    Sequential evaluator for pending listings.

    Usage:
        async with KeepaClient() as keepa:
            summary = await BookEvaluator(session_factory, keepa).evaluate_pending()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        snapshot_source: SnapshotSource,
        delay_seconds: float | None = None,
        clock: Clock = utc_now,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.snapshot_source = snapshot_source
        self.delay_seconds = (
            delay_seconds if delay_seconds is not None else settings.KEEPA_DELAY_SECONDS
        )
        self._clock = clock
        self._sleep = sleep

    async def evaluate_pending(self, limit: int | None = None) -> EvaluationSummary:
        """
        Evaluate up to ``limit`` pending listings.

        Returns:
            EvaluationSummary with per-decision counts. ``aborted`` is True
            when Keepa rate-limited the batch.
        """
        counts = {"evaluated": 0, "buy": 0, "review": 0, "reject": 0, "no_data": 0, "invalid": 0}
        aborted = False
        looked_up = False

        async with self.session_factory() as session:
            books = await get_pending_books(session, limit)
            listings = [book.to_listing() for book in books]
            total = len(listings)
            logger.info("evaluation_batch_started", pending=total)

            for position, listing in enumerate(listings, start=1):
                if not validate_isbn(listing.isbn).valid or listing.price + listing.shipping <= 0:
                    await mark_rejected(session, listing.isbn, self._clock())
                    counts["invalid"] += 1
                    logger.warning(
                        "evaluation_invalid_listing",
                        isbn=listing.isbn,
                        price=listing.price,
                        shipping=listing.shipping,
                    )
                    continue

                if looked_up:
                    await self._sleep(self.delay_seconds)
                looked_up = True

                try:
                    snapshot = await self.snapshot_source.fetch_product(listing.isbn)
                except KeepaRateLimitError as e:
                    aborted = True
                    logger.warning(
                        "evaluation_batch_aborted",
                        isbn=listing.isbn,
                        remaining=total - position + 1,
                        error=str(e),
                    )
                    break

                counts["evaluated"] += 1

                if snapshot is None:
                    await mark_rejected(session, listing.isbn, self._clock())
                    counts["no_data"] += 1
                    logger.info(
                        "evaluation_no_data",
                        position=position,
                        total=total,
                        isbn=listing.isbn,
                    )
                    continue

                now = self._clock()
                result = evaluate_book(snapshot, listing.buy_price, now=now)
                await update_book_evaluation(session, listing.isbn, result, evaluated_at=now)

                if result.decision == Decision.BUY:
                    counts["buy"] += 1
                elif result.decision == Decision.REVIEW:
                    counts["review"] += 1
                else:
                    counts["reject"] += 1

                logger.info(
                    "evaluation_progress",
                    position=position,
                    total=total,
                    isbn=listing.isbn,
                    decision=result.decision.value,
                    reason=result.reason,
                )

        summary = EvaluationSummary(aborted=aborted, **counts)
        logger.info("evaluation_batch_complete", **summary._asdict())
        return summary
