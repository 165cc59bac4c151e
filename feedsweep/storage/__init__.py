"""
FeedSweep Storage Layer
=======================

Repository pattern implementations for data access abstraction.

This module provides:
- Feed repository for feed CRUD and health bookkeeping
- Article repository for deduplicated article storage
"""

from .article_repository import ArticleRepository
from .feed_repository import FeedRepository

__all__ = [
    "ArticleRepository",
    "FeedRepository",
]
