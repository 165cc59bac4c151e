"""
Content Cleaner
===============

Normalization of parsed feed items into ArticleRecord models.

This module provides:
- HTML to plain text conversion
- Publish date parsing with UTC normalization
- Field truncation to the configured article limits
"""

from datetime import datetime, timezone
from typing import Optional

from bs4 import BeautifulSoup, Comment
from bs4.element import CData, Doctype, ProcessingInstruction
from dateutil import parser as date_parser
from dateutil.parser import ParserError

from .feed_parser import RawItem
from .xml_extractor import collapse_whitespace, decode_html, deep_decode_html, strip_markup
from ..database.models import (
    ArticleRecord,
    FeedSource,
    CONTENT_HTML_MAX_LENGTH,
    CONTENT_TEXT_MAX_LENGTH,
    DESCRIPTION_MAX_LENGTH,
    utc_now,
)
from ..utils.logging import get_logger_for_component


HTML_PARSER = "html.parser"

# Elements dropped together with their content
NON_CONTENT_ELEMENTS = ["script", "style", "noscript", "template"]

logger = get_logger_for_component("content_cleaner")

# Zone abbreviations seen in RFC-822 pubDate values that dateutil does not know
TZINFOS = {
    "UT": 0,
    "UTC": 0,
    "GMT": 0,
    "Z": 0,
    "EST": -5 * 3600,
    "EDT": -4 * 3600,
    "CST": -6 * 3600,
    "CDT": -5 * 3600,
    "MST": -7 * 3600,
    "MDT": -6 * 3600,
    "PST": -8 * 3600,
    "PDT": -7 * 3600,
}


def html_to_text(html: str) -> str:
    """Convert an HTML fragment to a single line of plain text.

    Script and style blocks are dropped with their content, comments and
    processing instructions removed, entities decoded and whitespace
    collapsed.
    """
    if not html or not html.strip():
        return ""

    try:
        soup = BeautifulSoup(html, HTML_PARSER)

        for element in soup(NON_CONTENT_ELEMENTS):
            element.decompose()

        for node in soup(string=lambda text: isinstance(
            text, (Comment, CData, ProcessingInstruction, Doctype)
        )):
            node.extract()

        text = soup.get_text(separator=" ")

    except Exception as e:
        logger.warning(f"Failed to parse HTML, using markup stripper: {e}")
        text = strip_markup(html)

    return collapse_whitespace(decode_html(text))


def parse_published_at(text: Optional[str], fallback: Optional[datetime] = None) -> datetime:
    """Parse an RSS or Atom date into an aware UTC datetime.

    Args:
        text: Raw date text (RFC-822 or ISO-8601)
        fallback: Value returned when text is absent, unparseable or out of
            range once converted to UTC; defaults to the current time

    Returns:
        Timezone-aware UTC datetime
    """
    if fallback is None:
        fallback = utc_now()

    if not text or not text.strip():
        return fallback

    try:
        parsed = date_parser.parse(text.strip(), tzinfos=TZINFOS)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except (ParserError, ValueError, OverflowError, TypeError):
        return fallback


def build_article_record(feed: FeedSource, item: RawItem, now: Optional[datetime] = None,
                         description_max_length: int = DESCRIPTION_MAX_LENGTH,
                         content_html_max_length: int = CONTENT_HTML_MAX_LENGTH,
                         content_text_max_length: int = CONTENT_TEXT_MAX_LENGTH) -> ArticleRecord:
    """Normalize one parsed item into an ArticleRecord for the given feed.

    content_html falls back to the description when the item has no
    separate content body; content_text is always derived from it.
    """
    now = now or utc_now()

    content_html = deep_decode_html(item.content or item.description)[:content_html_max_length]
    content_text = html_to_text(content_html)[:content_text_max_length]
    description = html_to_text(deep_decode_html(item.description))[:description_max_length]

    return ArticleRecord(
        feed_id=feed.id,
        guid=item.guid or item.link,
        title=item.title.strip(),
        link=item.link,
        description=description,
        content_html=content_html,
        content_text=content_text,
        author=html_to_text(item.author),
        published_at=parse_published_at(item.published, fallback=now),
        created_at=now,
    )
