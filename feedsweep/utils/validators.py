"""
FeedSweep Input Validators
==========================

Validation utilities for feed URLs and management input, with
normalization and basic safety checks.
"""

import re
from urllib.parse import urlparse, urlunparse

from .exceptions import ValidationError, ErrorCode


class URLValidator:
    """URL validation and normalization utilities."""

    # Allowed schemes for feed documents
    ALLOWED_SCHEMES = {'http', 'https'}

    # Common RSS/Atom feed URL shapes
    FEED_PATTERNS = [
        r'\.rss$', r'\.xml$', r'\.atom$',
        r'/rss/?$', r'/feed/?$', r'/feeds/?$',
        r'/atom/?$', r'/rss\.xml$', r'/feed\.xml$'
    ]

    @classmethod
    def validate_feed_url(cls, url: str) -> str:
        """Validate and normalize a feed URL.

        Args:
            url: URL to validate

        Returns:
            Normalized URL

        Raises:
            ValidationError: If URL is invalid
        """
        if not url or not isinstance(url, str):
            raise ValidationError(
                "URL is required and must be a string",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="url"
            )

        url = url.strip()

        try:
            parsed = urlparse(url)
        except ValueError as e:
            raise ValidationError(
                f"Invalid URL format: {e}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            ) from e

        if parsed.scheme.lower() not in cls.ALLOWED_SCHEMES:
            raise ValidationError(
                "URL scheme must be http or https",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            )

        if not parsed.netloc:
            raise ValidationError(
                "URL must include a hostname",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            )

        if cls._has_suspicious_patterns(url):
            raise ValidationError(
                "URL contains suspicious patterns",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            )

        # Query strings are kept: many feeds select content through them
        return urlunparse(parsed._replace(
            scheme=parsed.scheme.lower(),
            netloc=parsed.netloc.lower(),
            path=parsed.path or '/',
            fragment=''
        ))

    @classmethod
    def _has_suspicious_patterns(cls, url: str) -> bool:
        suspicious_patterns = [
            r'javascript:',
            r'data:',
            r'file:',
        ]

        url_lower = url.lower()
        return any(re.search(pattern, url_lower) for pattern in suspicious_patterns)

    @classmethod
    def is_likely_feed_url(cls, url: str) -> bool:
        """Check if URL looks like an RSS/Atom feed."""
        url_lower = url.lower()
        return any(re.search(pattern, url_lower) for pattern in cls.FEED_PATTERNS)
