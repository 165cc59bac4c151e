"""
Feed Item Parser
================

Turns one raw RSS 2.0 or Atom document into a list of RawItem records.

The document format is decided once per document by select_parser; each
format has its own FeedFormatParser implementation built on the regex
extractors in xml_extractor.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

from .xml_extractor import decode_entities, extract_tag, extract_text
from ..utils.exceptions import FeedParseError, ErrorCode


ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"

_FEED_MARKERS_RE = re.compile(r"<(rss|feed|rdf:RDF|channel|item|entry)[\s>/]", re.IGNORECASE)
_ATOM_ROOT_RE = re.compile(r"<feed[\s>]", re.IGNORECASE)
_ITEM_RE = re.compile(r"<item(?:\s[^>]*)?>(.*?)</item\s*>", re.IGNORECASE | re.DOTALL)
_ENTRY_RE = re.compile(r"<entry(?:\s[^>]*)?>(.*?)</entry\s*>", re.IGNORECASE | re.DOTALL)
_LINK_HREF_RE = re.compile(r"""<link\b[^>]*?\bhref\s*=\s*["']([^"']+)["']""", re.IGNORECASE)


@dataclass
class RawItem:
    """One feed item as extracted from the document, before normalization."""

    guid: str = ""
    title: str = ""
    link: str = ""
    description: str = ""
    content: str = ""
    author: str = ""
    published: str = ""

    def is_usable(self) -> bool:
        """An item needs a title and something to deduplicate it by."""
        return bool(self.title) and bool(self.link or self.guid)


class FeedFormatParser(ABC):
    """Extracts items from one feed document format."""

    format_name = ""

    def parse(self, document: str) -> List[RawItem]:
        """Parse every item block, dropping items that cannot be stored."""
        items = (self.parse_block(block) for block in self.item_blocks(document))
        return [item for item in items if item.is_usable()]

    @abstractmethod
    def item_blocks(self, document: str) -> List[str]:
        """Return the raw text of each item block in document order."""

    @abstractmethod
    def parse_block(self, block: str) -> RawItem:
        """Build a RawItem from one item block."""


class RssFeedParser(FeedFormatParser):
    """RSS 2.0 (and RSS 1.0 item layout) parser."""

    format_name = "rss"

    def item_blocks(self, document: str) -> List[str]:
        return _ITEM_RE.findall(document)

    def parse_block(self, block: str) -> RawItem:
        link = extract_tag(block, "link")
        return RawItem(
            guid=extract_tag(block, "guid") or link,
            title=decode_entities(extract_tag(block, "title")),
            link=link,
            description=extract_text(block, "description"),
            content=extract_text(block, "content:encoded"),
            author=extract_tag(block, "author") or extract_tag(block, "dc:creator"),
            published=extract_tag(block, "pubDate") or extract_tag(block, "dc:date"),
        )


class AtomFeedParser(FeedFormatParser):
    """Atom 1.0 parser."""

    format_name = "atom"

    def item_blocks(self, document: str) -> List[str]:
        return _ENTRY_RE.findall(document)

    def parse_block(self, block: str) -> RawItem:
        return RawItem(
            guid=extract_tag(block, "id"),
            title=decode_entities(extract_tag(block, "title")),
            link=self._extract_link(block),
            description=extract_tag(block, "summary"),
            content=extract_tag(block, "content"),
            author=self._extract_author(block),
            published=extract_tag(block, "updated") or extract_tag(block, "published"),
        )

    @staticmethod
    def _extract_link(block: str) -> str:
        # Atom links live in the href attribute, never in element text
        match = _LINK_HREF_RE.search(block)
        return match.group(1).strip() if match else ""

    @staticmethod
    def _extract_author(block: str) -> str:
        author = extract_tag(block, "author")
        if not author:
            return ""
        return extract_tag(author, "name") or author


def is_atom_document(document: str) -> bool:
    """Atom when the document opens a <feed> element and names the Atom namespace."""
    return bool(_ATOM_ROOT_RE.search(document)) and ATOM_NAMESPACE in document


def select_parser(document: str) -> FeedFormatParser:
    """Pick the format parser for a document."""
    if is_atom_document(document):
        return AtomFeedParser()
    return RssFeedParser()


def parse_feed_items(raw_xml: str, feed_url: str = None) -> List[RawItem]:
    """Parse a feed document into usable items, in document order.

    Args:
        raw_xml: Raw feed document text
        feed_url: Source URL, used only for error context

    Returns:
        List of RawItem; empty when the feed has no usable items

    Raises:
        FeedParseError: If the input is not text or carries no feed markup
    """
    if not isinstance(raw_xml, str):
        raise FeedParseError(
            f"Feed document must be text, got {type(raw_xml).__name__}",
            feed_url=feed_url,
            error_code=ErrorCode.FEED_PARSE_ERROR,
        )

    if not _FEED_MARKERS_RE.search(raw_xml):
        raise FeedParseError(
            "Document is not an RSS or Atom feed",
            feed_url=feed_url,
            error_code=ErrorCode.FEED_PARSE_ERROR,
        )

    return select_parser(raw_xml).parse(raw_xml)
