"""
Tests for Operation Log Ring Buffer
===================================
"""

import threading
from datetime import timezone

import pytest

from feedsweep.monitoring.operation_log import OperationLog, DEFAULT_CAPACITY


class TestOperationLog:
    """Test suite for OperationLog."""

    def test_default_capacity(self):
        assert OperationLog().capacity == DEFAULT_CAPACITY == 200

    def test_append_creates_entry(self):
        log = OperationLog()
        entry = log.append("rss", "fetch", {"feed": "Example", "new_count": 2})

        assert entry.type == "rss"
        assert entry.action == "fetch"
        assert entry.details == {"feed": "Example", "new_count": 2}
        assert entry.id
        assert entry.timestamp.tzinfo == timezone.utc
        assert log.entries() == [entry]

    def test_ids_are_unique(self):
        log = OperationLog()
        ids = {log.append("rss", "fetch").id for _ in range(50)}
        assert len(ids) == 50

    def test_details_default_to_empty_mapping(self):
        assert OperationLog().append("error", "sweep").details == {}

    def test_newest_first(self):
        log = OperationLog()
        for i in range(3):
            log.append("rss", "fetch", {"n": i})

        assert [entry.details["n"] for entry in log.entries()] == [2, 1, 0]

    def test_evicts_oldest_beyond_capacity(self):
        log = OperationLog()
        for i in range(1, 206):
            log.append("rss", "fetch", {"n": i})

        entries = log.entries()
        assert len(log) == 200
        assert len(entries) == 200
        assert entries[0].details["n"] == 205
        assert entries[-1].details["n"] == 6

    def test_entries_is_a_snapshot(self):
        log = OperationLog()
        log.append("rss", "fetch")
        snapshot = log.entries()
        log.append("rss", "fetch")

        assert len(snapshot) == 1
        assert len(log) == 2

    def test_clear(self):
        log = OperationLog(capacity=5)
        log.append("rss", "fetch")
        log.clear()

        assert len(log) == 0
        assert log.entries() == []

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            OperationLog(capacity=0)

    def test_concurrent_appends_respect_capacity(self):
        log = OperationLog(capacity=50)

        def writer(worker):
            for i in range(100):
                log.append("rss", "fetch", {"worker": worker, "n": i})

        threads = [threading.Thread(target=writer, args=(w,)) for w in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        entries = log.entries()
        assert len(entries) == 50
        assert len({entry.id for entry in entries}) == 50
