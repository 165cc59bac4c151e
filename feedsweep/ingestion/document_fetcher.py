"""
Feed Document Fetcher
=====================

Retrieves raw feed documents over HTTP with a descriptive User-Agent,
a bounded timeout and certifi-backed TLS verification.
"""

import asyncio
import ssl
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import aiohttp
import certifi

from ..config.settings import get_settings
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import FeedFetchError, ErrorCode


class DocumentFetcher:
    """HTTP client for feed documents."""

    def __init__(self, user_agent: Optional[str] = None, timeout: Optional[int] = None,
                 max_concurrent: Optional[int] = None):
        """Initialize document fetcher.

        Args:
            user_agent: User-Agent header (default from config)
            timeout: Request timeout in seconds (default from config)
            max_concurrent: Expected concurrent requests, sizes the connector pool
        """
        settings = get_settings()
        self.user_agent = user_agent or settings.ingestion.user_agent
        self.timeout = timeout or settings.ingestion.request_timeout
        self.max_concurrent = max_concurrent or settings.ingestion.max_concurrent_feeds
        self.logger = get_logger_for_component("document_fetcher")

        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Get configured aiohttp session."""
        connector = aiohttp.TCPConnector(
            ssl=self.ssl_context,
            limit=self.max_concurrent * 2,
            limit_per_host=5,
            enable_cleanup_closed=True,
        )

        timeout = aiohttp.ClientTimeout(total=self.timeout)

        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml, */*",
            "Accept-Encoding": "gzip, deflate",
        }

        async with aiohttp.ClientSession(
            connector=connector, timeout=timeout, headers=headers
        ) as session:
            yield session

    async def fetch(self, url: str, session: aiohttp.ClientSession) -> str:
        """Fetch a feed document body.

        Args:
            url: Feed URL
            session: aiohttp session from get_session()

        Returns:
            Response body text

        Raises:
            FeedFetchError: On non-2xx status, timeout or transport failure
        """
        self.logger.debug(f"Fetching feed document: {url}")

        try:
            async with session.get(url) as response:
                if not 200 <= response.status < 300:
                    raise FeedFetchError(
                        f"HTTP {response.status}: {response.reason}",
                        feed_url=url,
                        error_code=ErrorCode.FEED_HTTP_ERROR,
                    )

                return await response.text(errors="replace")

        except FeedFetchError:
            raise

        except asyncio.TimeoutError as e:
            raise FeedFetchError(
                f"Request timeout after {self.timeout}s",
                feed_url=url,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
            ) from e

        except aiohttp.ClientError as e:
            raise FeedFetchError(
                f"Network error: {e}",
                feed_url=url,
                error_code=ErrorCode.FEED_NETWORK_ERROR,
            ) from e
