"""
FeedSweep Ingestion Module
==========================

Feed document retrieval and parsing components.

This module handles:
- Regex-based field extraction from RSS and Atom documents
- Item parsing and normalization into article records
- HTTP retrieval of feed documents
"""

from .feed_parser import RawItem, parse_feed_items
from .document_fetcher import DocumentFetcher

__all__ = [
    "RawItem",
    "parse_feed_items",
    "DocumentFetcher",
]
