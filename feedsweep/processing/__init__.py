"""
FeedSweep Processing Module
===========================

Per-feed fetch coordination: fetch, parse, deduplicate, store and record
feed health.
"""

from .feed_coordinator import FeedFetchCoordinator, FeedFetchResult

__all__ = [
    'FeedFetchCoordinator',
    'FeedFetchResult',
]
