"""Tests for the batched speed history store."""
from datetime import datetime, timedelta

import pytest

from config.exceptions import StorageError
from storage.history import SpeedHistoryStore
from storage.sqlite_store import SpeedSnapshot
from tests.mocks import MemoryGateway


def snapshot(ts, down=100.0, up=10.0):
    return SpeedSnapshot(timestamp=ts, download_bps=down, upload_bps=up)


class TestSpeedHistoryStore:
    """Tests for SpeedHistoryStore batching and queries."""

    @pytest.fixture
    def gateway(self):
        return MemoryGateway()

    @pytest.fixture
    def history(self, gateway):
        return SpeedHistoryStore(gateway, batch_size=3, flush_seconds=30.0)

    def test_buffers_until_batch_size(self, history, gateway, base_time):
        """Test that points are held until the batch is full."""
        assert history.append(snapshot(base_time)) == 0
        assert history.append(snapshot(base_time + timedelta(seconds=1))) == 0
        assert gateway.snapshots == []
        assert history.pending == 2

        assert history.append(snapshot(base_time + timedelta(seconds=2))) == 3
        assert len(gateway.snapshots) == 3
        assert history.pending == 0

    def test_flushes_when_oldest_point_ages_out(self, history, gateway, base_time):
        """Test that an old buffered point forces a flush before the batch fills."""
        history.append(snapshot(base_time))

        written = history.append(snapshot(base_time + timedelta(seconds=30)))

        assert written == 2
        assert len(gateway.snapshots) == 2

    def test_failed_flush_drops_batch(self, history, gateway, base_time):
        """Test that a failed batch is dropped and not retried."""
        gateway.fail_writes = True
        history.append(snapshot(base_time))
        history.append(snapshot(base_time + timedelta(seconds=1)))

        with pytest.raises(StorageError):
            history.append(snapshot(base_time + timedelta(seconds=2)))
        assert history.pending == 0

        gateway.fail_writes = False
        history.append(snapshot(base_time + timedelta(seconds=3)))
        assert history.flush() == 1
        assert [s.timestamp for s in gateway.snapshots] == [base_time + timedelta(seconds=3)]

    def test_flush_empty_buffer(self, history, gateway):
        """Test that flushing nothing does not touch the gateway."""
        assert history.flush() == 0
        assert gateway.write_calls == 0

    def test_history_includes_buffered_points(self, history, base_time):
        """Test that queries see persisted and still-buffered points in order."""
        for i in range(4):
            history.append(snapshot(base_time + timedelta(seconds=i), down=float(i)))

        result = history.get_speed_history(base_time + timedelta(seconds=1))

        assert [s.download_bps for s in result] == [1.0, 2.0, 3.0]

    def test_chart_history_is_downsampled(self, gateway, base_time):
        """Test that chart history is limited to the target point count."""
        history = SpeedHistoryStore(gateway, batch_size=1000)
        for i in range(200):
            history.append(snapshot(base_time + timedelta(seconds=i), down=float(i % 17)))

        result = history.get_chart_history(base_time, target=25)

        assert len(result) == 25
        assert result[0].timestamp == base_time
        assert result[-1].timestamp == base_time + timedelta(seconds=199)

    def test_purge_deletes_old_points(self, history, gateway, base_time):
        """Test that purge removes persisted points older than the window."""
        for hours_ago in (10, 8, 1):
            gateway.snapshots.append(snapshot(base_time - timedelta(hours=hours_ago)))

        deleted = history.purge(timedelta(hours=6), now=base_time)

        assert deleted == 2
        assert [s.timestamp for s in gateway.snapshots] == [base_time - timedelta(hours=1)]


class TestSpeedHistoryWithSQLite:
    """Tests for SpeedHistoryStore on a real database."""

    def test_round_trip_through_store(self, store, base_time):
        """Test that flushed points come back from the database."""
        history = SpeedHistoryStore(store, batch_size=2)
        history.append(snapshot(base_time, down=1.5))
        history.append(snapshot(base_time + timedelta(milliseconds=250), down=2.5))

        result = store.get_speed_history(base_time)

        assert [s.download_bps for s in result] == [1.5, 2.5]
        assert result[1].timestamp == base_time + timedelta(milliseconds=250)

    def test_default_purge_window(self, store):
        """Test that purge defaults to the configured retention window."""
        history = SpeedHistoryStore(store, batch_size=1)
        now = datetime(2024, 5, 1, 12, 0)
        history.append(snapshot(now - timedelta(hours=7)))
        history.append(snapshot(now - timedelta(hours=5)))

        assert history.purge(now=now) == 1
        assert len(store.get_speed_history(now - timedelta(days=1))) == 1
