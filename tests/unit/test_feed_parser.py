"""
Tests for Feed Item Parser
==========================

RSS/Atom classification, per-format field mapping, item filtering and
parse failures.
"""

import pytest

from feedsweep.ingestion.feed_parser import (
    AtomFeedParser,
    RawItem,
    RssFeedParser,
    is_atom_document,
    parse_feed_items,
    select_parser,
)
from feedsweep.utils.exceptions import FeedParseError, ErrorCode


def _rss(*items: str) -> str:
    return (
        '<?xml version="1.0"?><rss version="2.0"><channel><title>Channel</title>'
        + "".join(items)
        + "</channel></rss>"
    )


class TestClassification:
    """Test suite for format selection."""

    def test_atom_needs_feed_tag_and_namespace(self, sample_atom):
        assert is_atom_document(sample_atom)
        assert isinstance(select_parser(sample_atom), AtomFeedParser)

    def test_feed_tag_without_namespace_is_rss(self):
        doc = "<feed><entry><title>x</title></entry></feed>"
        assert not is_atom_document(doc)
        assert isinstance(select_parser(doc), RssFeedParser)

    def test_namespace_without_feed_tag_is_rss(self, sample_rss):
        doc = sample_rss.replace("<channel>", '<channel xmlns:atom="http://www.w3.org/2005/Atom">')
        assert isinstance(select_parser(doc), RssFeedParser)


class TestRssParsing:
    """Test suite for RSS item extraction."""

    def test_parses_sample_feed(self, sample_rss):
        items = parse_feed_items(sample_rss)

        assert len(items) == 2
        first, second = items

        assert first.guid == "post-1001"
        assert first.title == "Scaling SQLite & friends"
        assert first.link == "https://blog.example.com/posts/sqlite"
        assert first.description == "<p>How we scaled <b>SQLite</b>.</p>"
        assert first.content == "<p>Full <em>body</em> text.</p><script>track();</script>"
        assert first.author == "Ada Lovelace"
        assert first.published == "Thu, 05 Sep 2024 12:00:00 GMT"

        # guid falls back to the link
        assert second.guid == "https://blog.example.com/posts/async"
        assert second.author == "grace@example.com (Grace Hopper)"
        assert second.content == ""

    @pytest.mark.parametrize("count", [0, 1, 5, 20])
    def test_returns_one_record_per_item_in_order(self, count):
        items_xml = [
            f"<item><title>Post {i}</title><link>https://example.com/{i}</link></item>"
            for i in range(count)
        ]
        items = parse_feed_items(_rss(*items_xml))

        assert [item.title for item in items] == [f"Post {i}" for i in range(count)]
        assert [item.link for item in items] == [f"https://example.com/{i}" for i in range(count)]

    def test_dc_date_fallback(self):
        doc = _rss("<item><title>t</title><link>l</link><dc:date>2024-01-02T03:04:05Z</dc:date></item>")
        assert parse_feed_items(doc)[0].published == "2024-01-02T03:04:05Z"

    def test_item_without_link_or_guid_is_dropped(self):
        doc = _rss(
            "<item><title>No identity</title><description>x</description></item>",
            "<item><title>Has guid</title><guid>g-1</guid></item>",
        )
        items = parse_feed_items(doc)
        assert [item.title for item in items] == ["Has guid"]

    def test_item_without_title_is_dropped(self):
        doc = _rss("<item><link>https://example.com/a</link></item>")
        assert parse_feed_items(doc) == []

    def test_item_attributes_are_allowed(self):
        doc = _rss('<item rdf:about="x"><title>t</title><link>https://example.com/t</link></item>')
        assert len(parse_feed_items(doc)) == 1

    def test_malformed_item_degrades_to_missing_fields(self):
        doc = _rss(
            "<item><title>Broken<link>https://example.com/broken</link></item>",
            "<item><title>Fine</title><link>https://example.com/fine</link></item>",
        )
        assert [item.title for item in parse_feed_items(doc)] == ["Fine"]


class TestAtomParsing:
    """Test suite for Atom entry extraction."""

    def test_parses_sample_feed(self, sample_atom):
        items = parse_feed_items(sample_atom)

        assert len(items) == 2
        first, second = items

        assert first.guid == "urn:uuid:1225c695-cfb8-4ebb-aaaa-80da344efa6a"
        assert first.title == "First entry"
        assert first.link == "https://atom.example.com/first"
        assert first.description == "Short summary"
        assert first.content == "&lt;p&gt;Entry body&lt;/p&gt;"
        assert first.author == "John Doe"
        assert first.published == "2024-09-05T12:00:00Z"

        assert second.author == "Jane Roe"
        assert second.published == "2024-09-04T08:30:00+02:00"

    def test_link_comes_from_href_never_text(self, sample_atom):
        items = parse_feed_items(sample_atom)
        assert items[1].link == ""
        assert all("wrong.example.com" not in item.link for item in items)

    def test_first_href_wins(self):
        block = (
            '<link rel="self" href="https://example.com/self"/>'
            "<link rel='alternate' href='https://example.com/alt'/>"
        )
        assert AtomFeedParser._extract_link(block) == "https://example.com/self"

    def test_updated_preferred_over_published(self):
        block = "<published>2024-01-01T00:00:00Z</published><updated>2024-02-01T00:00:00Z</updated>"
        item = AtomFeedParser().parse_block("<title>t</title><id>i</id>" + block)
        assert item.published == "2024-02-01T00:00:00Z"


class TestParseFailures:
    """Test suite for documents that cannot be parsed."""

    def test_html_page_is_a_parse_error(self):
        with pytest.raises(FeedParseError) as exc_info:
            parse_feed_items("<html><body>Service unavailable</body></html>", feed_url="https://x.test/f")

        assert exc_info.value.error_code == ErrorCode.FEED_PARSE_ERROR
        assert exc_info.value.context["feed_url"] == "https://x.test/f"

    def test_non_text_is_a_parse_error(self):
        with pytest.raises(FeedParseError):
            parse_feed_items(b"<rss></rss>")

    def test_feed_without_items_is_empty(self):
        assert parse_feed_items(_rss()) == []


def test_raw_item_usability():
    assert RawItem(title="t", link="l").is_usable()
    assert RawItem(title="t", guid="g").is_usable()
    assert not RawItem(title="t").is_usable()
    assert not RawItem(link="l", guid="g").is_usable()
