"""
ScanFlow — Book Listing Model

One row per eBay listing, keyed by ISBN. Listing columns are written by the
crawler; evaluation columns stay NULL until the book has been evaluated.
Money columns are integer cents.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import INTEGER, NUMERIC, TIMESTAMP, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.engine.snapshot import Listing


class Base(DeclarativeBase):
    pass


class BookListing(Base):
    """A scraped book listing and its latest evaluation."""

    __tablename__ = "ebay_books"

    id: Mapped[int] = mapped_column(INTEGER, primary_key=True, autoincrement=True)

    # --- Listing data ---
    isbn: Mapped[str] = mapped_column(String(13), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price: Mapped[int] = mapped_column(INTEGER, nullable=False, comment="Price in cents")
    shipping: Mapped[int] = mapped_column(
        INTEGER, nullable=False, default=0, comment="Shipping cost in cents"
    )
    condition: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    seller: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    ebay_item_id: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    ebay_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    scraped_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # --- Evaluation data ---
    decision: Mapped[str | None] = mapped_column(
        String(10), nullable=True, comment="BUY, REVIEW, REJECT, or BOUGHT"
    )
    asin: Mapped[str | None] = mapped_column(String(20), nullable=True)
    amazon_price: Mapped[int | None] = mapped_column(
        INTEGER, nullable=True, comment="Realistic sell price in cents"
    )
    sales_rank: Mapped[int | None] = mapped_column(
        INTEGER, nullable=True, comment="Average sales rank (180d, else 90d)"
    )
    sales_rank_drops_90: Mapped[int | None] = mapped_column(INTEGER, nullable=True)
    fba_profit: Mapped[int | None] = mapped_column(INTEGER, nullable=True, comment="Cents")
    fbm_profit: Mapped[int | None] = mapped_column(INTEGER, nullable=True, comment="Cents")
    amazon_flag: Mapped[str | None] = mapped_column(
        String(10), nullable=True, comment="green / yellow / red"
    )
    book_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    weight_oz: Mapped[Decimal | None] = mapped_column(NUMERIC(6, 1), nullable=True)
    evaluated_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_ebay_books_decision", "decision"),
        Index("ix_ebay_books_scraped_at", "scraped_at"),
    )

    def to_listing(self) -> Listing:
        return Listing(isbn=self.isbn, price=self.price, shipping=self.shipping or 0)

    def __repr__(self) -> str:
        return (
            f"<BookListing isbn={self.isbn!r} price={self.price} "
            f"decision={self.decision!r}>"
        )
