"""
Tests for durable storage and its in-memory fallback during outages.
"""
import pytest
from sqlalchemy.exc import OperationalError

from app.storage import DurableStorage


class TestDurableStorage:
    """Tests for normal database-backed operation."""

    def test_set_get_remove(self, storage: DurableStorage):
        """Test that values round-trip through the database and can be removed."""
        storage.set_item("k", "v")
        assert storage.get_item("k") == "v"

        storage.remove_item("k")
        assert storage.get_item("k") is None

    def test_json_helpers(self, storage: DurableStorage):
        """Test JSON reads and writes, with unparsable values reading as None."""
        storage.set_json("k", {"a": [1, 2]})
        assert storage.get_json("k") == {"a": [1, 2]}

        storage.set_item("k", "{broken")
        assert storage.get_json("k") is None

    def test_ping(self, storage: DurableStorage):
        """Test that ping succeeds against a reachable database."""
        assert storage.ping() is True


class TestOutageFallback:
    """Tests for writes made while the database is unreachable."""

    def test_read_and_write_during_outage(self, flaky_sessions):
        """Test that writes during an outage are readable before recovery."""
        storage = DurableStorage(flaky_sessions)
        flaky_sessions.down = True

        storage.set_item("k", "v")

        assert storage.get_item("k") == "v"
        assert storage.keys() == ["k"]

    def test_outage_write_wins_after_recovery(self, flaky_sessions):
        """Test that a value written during an outage replaces the older stored row."""
        storage = DurableStorage(flaky_sessions)
        storage.set_item("spirithub-language", "en")

        flaky_sessions.down = True
        storage.set_item("spirithub-language", "ar")
        flaky_sessions.down = False

        assert storage.get_item("spirithub-language") == "ar"

    def test_pending_write_is_flushed_to_database(self, flaky_sessions):
        """Test that recovered storage persists pending writes for other instances."""
        storage = DurableStorage(flaky_sessions)
        storage.set_item("k", "old")

        flaky_sessions.down = True
        storage.set_item("k", "new")
        flaky_sessions.down = False
        storage.get_item("other")

        assert DurableStorage(flaky_sessions).get_item("k") == "new"

    def test_remove_during_outage(self, flaky_sessions):
        """Test that a delete during an outage hides the row and is applied on recovery."""
        storage = DurableStorage(flaky_sessions)
        storage.set_item("k", "v")
        storage.set_item("keep", "1")

        flaky_sessions.down = True
        storage.remove_item("k")
        assert storage.get_item("k") is None
        assert storage.keys() == []

        flaky_sessions.down = False
        assert storage.keys() == ["keep"]
        assert DurableStorage(flaky_sessions).get_item("k") is None

    def test_ping_fails_during_outage(self, flaky_sessions):
        """Test that ping surfaces the outage to the health check."""
        storage = DurableStorage(flaky_sessions)
        flaky_sessions.down = True

        with pytest.raises(OperationalError, match="unreachable"):
            storage.ping()
