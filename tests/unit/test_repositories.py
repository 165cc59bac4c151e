"""
Tests for Repository Components
===============================

Test suite for FeedRepository and ArticleRepository covering CRUD,
deduplication and feed health bookkeeping.
"""

from datetime import datetime, timezone, timedelta

import pytest

from feedsweep.database.models import ArticleRecord, FeedSource
from feedsweep.utils.exceptions import DatabaseError, DuplicateArticleError


NOW = datetime(2024, 9, 6, 10, 0, tzinfo=timezone.utc)


def make_article(feed_id, guid="guid-1", published_at=NOW, **kwargs):
    return ArticleRecord(
        feed_id=feed_id,
        guid=guid,
        title=kwargs.pop("title", f"Title {guid}"),
        link=kwargs.pop("link", f"https://example.com/{guid}"),
        published_at=published_at,
        **kwargs,
    )


class TestFeedRepository:
    """Test suite for FeedRepository."""

    def test_create_and_get_feed(self, feed_repo):
        feed_id = feed_repo.create_feed(FeedSource(
            name="Example", url="https://example.com/feed.xml", cron_expression="*/30 * * * *",
        ))

        feed = feed_repo.get_feed(feed_id)
        assert feed.id == feed_id
        assert feed.name == "Example"
        assert feed.category == "tech"
        assert feed.cron_expression == "*/30 * * * *"
        assert feed.is_active is True
        assert feed.error_count == 0
        assert feed.last_error is None
        assert feed.last_fetch_at is None

    def test_get_missing_feed(self, feed_repo):
        assert feed_repo.get_feed(999) is None

    def test_get_active_feeds(self, feed_repo, make_feed):
        active = make_feed(name="Active")
        make_feed(name="Paused", url="https://example.com/paused.xml", is_active=False)

        assert [feed.id for feed in feed_repo.get_active_feeds()] == [active.id]

    def test_get_active_feeds_raises_on_failure(self, feed_repo, db_connection):
        with db_connection.get_connection() as conn:
            conn.execute("DROP TABLE articles")
            conn.execute("DROP TABLE feeds")
            conn.commit()

        with pytest.raises(DatabaseError):
            feed_repo.get_active_feeds()

    def test_update_feed_sets_only_given_fields(self, feed_repo, make_feed):
        feed = make_feed(cron_expression="0 * * * *")

        assert feed_repo.update_feed(feed.id, name="Renamed", is_active=False)

        updated = feed_repo.get_feed(feed.id)
        assert updated.name == "Renamed"
        assert updated.is_active is False
        assert updated.url == feed.url
        assert updated.cron_expression == "0 * * * *"
        assert updated.updated_at is not None

    def test_update_feed_ignores_unknown_fields(self, feed_repo, make_feed):
        feed = make_feed()
        assert feed_repo.update_feed(feed.id, id=42) is False
        assert feed_repo.get_feed(feed.id) is not None

    def test_update_missing_feed(self, feed_repo):
        assert feed_repo.update_feed(999, name="x") is False

    def test_record_fetch_success_resets_health(self, feed_repo, make_feed):
        feed = make_feed(error_count=1, last_error="HTTP 500: Internal Server Error")

        feed_repo.record_fetch_success(feed.id, NOW)

        updated = feed_repo.get_feed(feed.id)
        assert updated.error_count == 0
        assert updated.last_error is None
        assert updated.last_fetch_at == NOW

    def test_record_fetch_failure_deactivates_at_threshold(self, feed_repo, make_feed):
        feed = make_feed()

        feed_repo.record_fetch_failure(feed.id, "HTTP 404: Not Found", threshold=2)
        after_first = feed_repo.get_feed(feed.id)
        assert after_first.error_count == 1
        assert after_first.last_error == "HTTP 404: Not Found"
        assert after_first.is_active is True

        feed_repo.record_fetch_failure(feed.id, "HTTP 404: Not Found", threshold=2)
        after_second = feed_repo.get_feed(feed.id)
        assert after_second.error_count == 2
        assert after_second.is_active is False

    def test_record_fetch_failure_keeps_inactive_feed_inactive(self, feed_repo, make_feed):
        feed = make_feed(is_active=False)
        feed_repo.record_fetch_failure(feed.id, "boom", threshold=5)

        assert feed_repo.get_feed(feed.id).is_active is False

    def test_record_fetch_failure_does_not_touch_last_fetch(self, feed_repo, make_feed):
        feed = make_feed()
        feed_repo.record_fetch_success(feed.id, NOW)
        feed_repo.record_fetch_failure(feed.id, "boom", threshold=2)

        assert feed_repo.get_feed(feed.id).last_fetch_at == NOW

    def test_delete_feed_cascades_to_articles(self, feed_repo, article_repo, make_feed):
        feed = make_feed()
        article_repo.create_article(make_article(feed.id))

        assert feed_repo.delete_feed(feed.id)
        assert feed_repo.get_feed(feed.id) is None
        assert not article_repo.exists("guid-1")

    def test_feed_statistics(self, feed_repo, make_feed):
        make_feed()
        make_feed(name="Broken", url="https://example.com/broken.xml", error_count=1)

        stats = feed_repo.get_feed_statistics()
        assert stats["total_feeds"] == 2
        assert stats["active_feeds"] == 2
        assert stats["feeds_with_errors"] == 1


class TestArticleRepository:
    """Test suite for ArticleRepository."""

    def test_create_and_lookup(self, article_repo, make_feed):
        feed = make_feed()
        article_id = article_repo.create_article(make_article(
            feed.id, description="Summary", author="Ada",
        ))

        assert article_repo.exists("guid-1")
        stored = article_repo.get_by_guid("guid-1")
        assert stored.id == article_id
        assert stored.feed_id == feed.id
        assert stored.description == "Summary"
        assert stored.author == "Ada"
        assert stored.published_at == NOW
        assert stored.is_read is False

    def test_lookup_missing(self, article_repo):
        assert article_repo.get_by_guid("nope") is None
        assert not article_repo.exists("nope")

    def test_duplicate_guid_raises(self, article_repo, make_feed):
        feed = make_feed()
        other = make_feed(name="Other", url="https://other.example.com/feed.xml")
        article_repo.create_article(make_article(feed.id))

        with pytest.raises(DuplicateArticleError) as exc_info:
            article_repo.create_article(make_article(other.id))

        assert exc_info.value.guid == "guid-1"
        assert article_repo.count_for_feed(other.id) == 0

    def test_unknown_feed_is_database_error(self, article_repo):
        with pytest.raises(DatabaseError) as exc_info:
            article_repo.create_article(make_article(feed_id=12345))

        assert not isinstance(exc_info.value, DuplicateArticleError)

    def test_get_articles_newest_first(self, article_repo, make_feed):
        feed = make_feed()
        for offset in range(3):
            article_repo.create_article(make_article(
                feed.id, guid=f"g{offset}", published_at=NOW - timedelta(hours=offset),
            ))

        assert [a.guid for a in article_repo.get_articles()] == ["g0", "g1", "g2"]
        assert [a.guid for a in article_repo.get_articles(limit=2)] == ["g0", "g1"]

    def test_get_articles_by_feed(self, article_repo, make_feed):
        first = make_feed()
        second = make_feed(name="Second", url="https://second.example.com/feed.xml")
        article_repo.create_article(make_article(first.id, guid="a"))
        article_repo.create_article(make_article(second.id, guid="b"))

        assert [a.guid for a in article_repo.get_articles(feed_id=second.id)] == ["b"]
        assert article_repo.count_for_feed(first.id) == 1

    def test_mark_read(self, article_repo, make_feed):
        feed = make_feed()
        first_id = article_repo.create_article(make_article(feed.id, guid="a"))
        article_repo.create_article(make_article(feed.id, guid="b"))

        assert article_repo.mark_read([first_id]) == 1
        assert article_repo.get_article(first_id).is_read is True
        assert [a.guid for a in article_repo.get_articles(unread_only=True)] == ["b"]
        assert article_repo.mark_read([]) == 0

    def test_delete_published_before(self, article_repo, make_feed):
        feed = make_feed()
        article_repo.create_article(make_article(feed.id, guid="old", published_at=NOW - timedelta(days=8)))
        article_repo.create_article(make_article(feed.id, guid="recent", published_at=NOW - timedelta(days=6)))

        deleted = article_repo.delete_published_before(NOW - timedelta(days=7))

        assert deleted == 1
        assert not article_repo.exists("old")
        assert article_repo.exists("recent")
