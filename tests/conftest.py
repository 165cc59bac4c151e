"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for FeedSweep tests.

- Environment is set before any feedsweep import so settings never touch
  the real data or log directories
- Each test gets its own temporary SQLite database with the schema applied
- Network access is replaced by StubFetcher
"""

import pytest
import tempfile
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
_TEST_DIR = Path(tempfile.gettempdir()) / "feedsweep_tests"
os.environ["FEEDSWEEP_DATABASE__PATH"] = str(_TEST_DIR / "feedsweep_default.db")
os.environ["FEEDSWEEP_LOGGING__FILE_PATH"] = ""
os.environ["FEEDSWEEP_LOGGING__CONSOLE_LOGGING"] = "false"
os.environ["FEEDSWEEP_DEBUG"] = "true"


SAMPLE_RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:content="http://purl.org/rss/1.0/modules/content/"
     xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel>
    <title>Example Engineering Blog</title>
    <link>https://blog.example.com</link>
    <description>Engineering notes</description>
    <item>
      <title>Scaling SQLite &amp; friends</title>
      <link>https://blog.example.com/posts/sqlite</link>
      <guid isPermaLink="false">post-1001</guid>
      <description><![CDATA[<p>How we scaled <b>SQLite</b>.</p>]]></description>
      <content:encoded><![CDATA[<p>Full <em>body</em> text.</p><script>track();</script>]]></content:encoded>
      <dc:creator>Ada Lovelace</dc:creator>
      <pubDate>Thu, 05 Sep 2024 12:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Async all the things</title>
      <link>https://blog.example.com/posts/async</link>
      <description>Plain description with &lt;b&gt;escaped&lt;/b&gt; markup</description>
      <author>grace@example.com (Grace Hopper)</author>
      <pubDate>not a real date</pubDate>
    </item>
  </channel>
</rss>
"""

SAMPLE_ATOM = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Example Atom Feed</title>
  <link href="https://atom.example.com/"/>
  <updated>2024-09-05T12:00:00Z</updated>
  <entry>
    <title>First entry</title>
    <link rel="alternate" type="text/html" href="https://atom.example.com/first"/>
    <id>urn:uuid:1225c695-cfb8-4ebb-aaaa-80da344efa6a</id>
    <updated>2024-09-05T12:00:00Z</updated>
    <summary>Short summary</summary>
    <content type="html">&lt;p&gt;Entry body&lt;/p&gt;</content>
    <author><name>John Doe</name><email>john@example.com</email></author>
  </entry>
  <entry>
    <title>Text link is ignored</title>
    <link>https://wrong.example.com/text-link</link>
    <id>tag:atom.example.com,2024:2</id>
    <published>2024-09-04T08:30:00+02:00</published>
    <author>Jane Roe</author>
  </entry>
</feed>
"""


class StubFetcher:
    """Stands in for DocumentFetcher: serves documents from a dict.

    A value that is an exception instance is raised instead of returned.
    """

    def __init__(self, documents=None):
        self.documents = dict(documents or {})
        self.calls = []
        self.sessions_opened = 0

    @asynccontextmanager
    async def get_session(self):
        self.sessions_opened += 1
        yield object()

    async def fetch(self, url, session):
        self.calls.append(url)
        document = self.documents[url]
        if isinstance(document, Exception):
            raise document
        return document


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def temp_db():
    """Temporary database file with the schema applied."""
    from feedsweep.database.schema import DatabaseSchema

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    DatabaseSchema(db_path).create_tables()

    yield db_path

    for suffix in ("", "-wal", "-shm"):
        try:
            os.unlink(db_path + suffix)
        except FileNotFoundError:
            pass


@pytest.fixture
def db_connection(temp_db):
    """Create a database connection manager for testing."""
    from feedsweep.database.connection import DatabaseConnection

    connection = DatabaseConnection(temp_db, pool_size=2)
    yield connection

    connection.close_all_connections()


@pytest.fixture
def feed_repo(db_connection):
    from feedsweep.storage.feed_repository import FeedRepository

    return FeedRepository(db_connection)


@pytest.fixture
def article_repo(db_connection):
    from feedsweep.storage.article_repository import ArticleRepository

    return ArticleRepository(db_connection)


@pytest.fixture
def settings():
    """Fresh settings built from the test environment."""
    from feedsweep.config.settings import FeedSweepSettings

    return FeedSweepSettings()


@pytest.fixture
def operation_log():
    from feedsweep.monitoring.operation_log import OperationLog

    return OperationLog()


@pytest.fixture
def stub_fetcher():
    return StubFetcher()


@pytest.fixture
def make_feed(feed_repo):
    """Factory that stores a feed and returns it as loaded from the database."""
    from feedsweep.database.models import FeedSource

    def _make_feed(name="Example Blog", url="https://blog.example.com/feed.xml", **kwargs):
        feed_id = feed_repo.create_feed(FeedSource(name=name, url=url, **kwargs))
        return feed_repo.get_feed(feed_id)

    return _make_feed


@pytest.fixture
def coordinator(db_connection, stub_fetcher, operation_log, settings):
    from feedsweep.processing.feed_coordinator import FeedFetchCoordinator

    return FeedFetchCoordinator(
        db_connection, fetcher=stub_fetcher, operation_log=operation_log, settings=settings
    )


@pytest.fixture
def sweeper(db_connection, coordinator, operation_log, settings):
    from feedsweep.scheduler.sweep import SchedulerSweep

    return SchedulerSweep(
        db_connection, coordinator=coordinator, operation_log=operation_log, settings=settings
    )


@pytest.fixture
def sample_rss():
    return SAMPLE_RSS


@pytest.fixture
def sample_atom():
    return SAMPLE_ATOM
