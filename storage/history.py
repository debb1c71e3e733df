"""Batched speed history sink.

Speed snapshots are buffered in memory and written to the gateway in
batches: when the buffer holds ``batch_size`` points or its oldest point is
``flush_seconds`` old, whichever comes first. A failed batch is logged and
dropped; it is not retried on the next tick.
"""
import threading
from datetime import datetime, timedelta
from typing import List, Optional, Protocol

from config import INTERVALS, STORAGE, THRESHOLDS, get_logger
from config.exceptions import StorageError
from monitor.downsample import downsample
from storage.sqlite_store import SpeedSnapshot

logger = get_logger(__name__)


class SnapshotGateway(Protocol):
    def save_speed_snapshot_batch(self, snapshots: List[SpeedSnapshot]) -> int: ...

    def get_speed_history(self, since: datetime) -> List[SpeedSnapshot]: ...

    def cleanup_old_speed_snapshots(self, max_age: timedelta,
                                    now: Optional[datetime] = None) -> int: ...


class SpeedHistoryStore:
    """Append-only speed history with batched persistence.

    Args:
        gateway: Persistence gateway, usually a SQLiteStore.
        batch_size: Flush once this many points are buffered.
        flush_seconds: Flush once the oldest buffered point is this old.
    """

    def __init__(
        self,
        gateway: SnapshotGateway,
        batch_size: int = THRESHOLDS.SNAPSHOT_BATCH_SIZE,
        flush_seconds: float = INTERVALS.SNAPSHOT_FLUSH_SECONDS,
    ):
        self._gateway = gateway
        self._batch_size = max(1, batch_size)
        self._flush_after = timedelta(seconds=flush_seconds)
        self._buffer: List[SpeedSnapshot] = []
        self._lock = threading.Lock()
        self._flush_lock = threading.Lock()

    @property
    def pending(self) -> int:
        """Number of buffered, not yet persisted points."""
        with self._lock:
            return len(self._buffer)

    def append(self, snapshot: SpeedSnapshot) -> int:
        """Buffer a snapshot and flush if the batch is due.

        Returns:
            Number of points written by this call (0 when nothing was flushed).

        Raises:
            StorageError: If a due flush failed. The batch is dropped.
        """
        with self._lock:
            self._buffer.append(snapshot)
            due = (
                len(self._buffer) >= self._batch_size
                or snapshot.timestamp - self._buffer[0].timestamp >= self._flush_after
            )
        if due:
            return self.flush()
        return 0

    def flush(self) -> int:
        """Write every buffered point to the gateway.

        Raises:
            StorageError: If the write failed. The batch is dropped.
        """
        with self._flush_lock:
            with self._lock:
                batch, self._buffer = self._buffer, []
            if not batch:
                return 0
            try:
                return self._gateway.save_speed_snapshot_batch(batch)
            except StorageError:
                logger.warning(f"Dropped {len(batch)} speed snapshots after a failed write")
                raise

    def get_speed_history(self, since: datetime) -> List[SpeedSnapshot]:
        """Persisted plus buffered points at or after ``since``, oldest first."""
        stored = self._gateway.get_speed_history(since)
        with self._lock:
            buffered = [s for s in self._buffer if s.timestamp >= since]
        return sorted(stored + buffered, key=lambda s: s.timestamp)

    def get_chart_history(self, since: datetime,
                          target: int = THRESHOLDS.CHART_TARGET_POINTS) -> List[SpeedSnapshot]:
        """Speed history reduced to at most ``target`` points."""
        return downsample(self.get_speed_history(since), target)

    def purge(self, max_age: Optional[timedelta] = None,
              now: Optional[datetime] = None) -> int:
        """Delete persisted snapshots older than ``max_age``.

        Safe to call while appends continue: new points are always newer
        than the cutoff.
        """
        if max_age is None:
            max_age = timedelta(hours=STORAGE.SNAPSHOT_RETENTION_HOURS)
        return self._gateway.cleanup_old_speed_snapshots(max_age, now)


__all__ = ["SpeedHistoryStore", "SnapshotGateway"]
