"""
Models package — export all SQLAlchemy models.
"""

from src.models.book_listing import Base, BookListing

__all__ = ["Base", "BookListing"]
