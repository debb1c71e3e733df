"""SQLite-based persistence for usage aggregates and speed history.

This module is the persistence gateway of the statistics engine. It stores
hourly and daily usage buckets per adapter plus the short-horizon speed
snapshot series used for charting.

Features:
- Per-adapter hourly and daily usage, unique on (adapter, bucket)
- Append-only speed snapshots indexed by timestamp
- Read-only query surface ordered by time ascending
- Retention cleanup for aggregates and snapshots
- Backup and JSON export

Timestamps are stored as ISO-8601 text in local time, so lexicographic
order equals chronological order.
"""
import json
import shutil
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from config import STORAGE, get_logger
from config.exceptions import StorageError

logger = get_logger(__name__)


# Schema version for migrations
SCHEMA_VERSION = 1


def truncate_to_hour(ts: datetime) -> datetime:
    """Start of the hour containing ``ts``."""
    return ts.replace(minute=0, second=0, microsecond=0)


def _hour_key(hour: datetime) -> str:
    return truncate_to_hour(hour).isoformat(timespec="seconds")


def _ts_key(ts: datetime) -> str:
    return ts.isoformat(timespec="microseconds")


@dataclass
class HourlyUsage:
    """Usage of one adapter during one clock hour."""
    adapter_id: str
    hour: datetime
    bytes_received: int = 0
    bytes_sent: int = 0
    peak_download_speed: float = 0.0
    peak_upload_speed: float = 0.0

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> 'HourlyUsage':
        return cls(
            adapter_id=row["adapter_id"],
            hour=datetime.fromisoformat(row["hour"]),
            bytes_received=row["bytes_received"],
            bytes_sent=row["bytes_sent"],
            peak_download_speed=row["peak_download_speed"],
            peak_upload_speed=row["peak_upload_speed"],
        )


@dataclass
class DailyUsage:
    """Usage of one adapter during one calendar day."""
    adapter_id: str
    date: date
    bytes_received: int = 0
    bytes_sent: int = 0
    peak_download_speed: float = 0.0
    peak_upload_speed: float = 0.0

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> 'DailyUsage':
        return cls(
            adapter_id=row["adapter_id"],
            date=date.fromisoformat(row["date"]),
            bytes_received=row["bytes_received"],
            bytes_sent=row["bytes_sent"],
            peak_download_speed=row["peak_download_speed"],
            peak_upload_speed=row["peak_upload_speed"],
        )


@dataclass(frozen=True)
class SpeedSnapshot:
    """One point of the speed history series."""
    timestamp: datetime
    download_bps: float
    upload_bps: float


class SQLiteStore:
    """Handles persistence of usage aggregates and speed history to SQLite.

    Writes raise StorageError on database failures so callers can mark the
    tick as failed. Reads log the failure and return empty results.
    """

    DEFAULT_DATA_DIR = Path.home() / STORAGE.DATA_DIR_NAME
    DEFAULT_DB_FILE = STORAGE.DATABASE_FILE

    # SQL schema for database tables
    SCHEMA = """
    -- Usage per adapter per clock hour
    CREATE TABLE IF NOT EXISTS hourly_usage (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        adapter_id TEXT NOT NULL,
        hour TEXT NOT NULL,
        bytes_received INTEGER DEFAULT 0,
        bytes_sent INTEGER DEFAULT 0,
        peak_download_speed REAL DEFAULT 0,
        peak_upload_speed REAL DEFAULT 0,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE(adapter_id, hour)
    );

    -- Usage per adapter per day
    CREATE TABLE IF NOT EXISTS daily_usage (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        adapter_id TEXT NOT NULL,
        date TEXT NOT NULL,
        bytes_received INTEGER DEFAULT 0,
        bytes_sent INTEGER DEFAULT 0,
        peak_download_speed REAL DEFAULT 0,
        peak_upload_speed REAL DEFAULT 0,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE(adapter_id, date)
    );

    -- Short-horizon speed history
    CREATE TABLE IF NOT EXISTS speed_snapshots (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TEXT NOT NULL,
        download_bps REAL DEFAULT 0,
        upload_bps REAL DEFAULT 0
    );

    -- Schema version tracking
    CREATE TABLE IF NOT EXISTS schema_info (
        key TEXT PRIMARY KEY,
        value TEXT
    );

    -- Indexes for common queries
    CREATE INDEX IF NOT EXISTS idx_hourly_hour ON hourly_usage(hour);
    CREATE INDEX IF NOT EXISTS idx_daily_date ON daily_usage(date);
    CREATE INDEX IF NOT EXISTS idx_snapshots_timestamp ON speed_snapshots(timestamp);
    """

    def __init__(self, data_dir: Optional[Path] = None):
        """Initialize SQLite store.

        Args:
            data_dir: Directory for database file. Defaults to ~/.network-monitor/
        """
        self.data_dir = Path(data_dir) if data_dir else self.DEFAULT_DATA_DIR
        self.db_path = self.data_dir / self.DEFAULT_DB_FILE
        self._lock = threading.Lock()

        self._ensure_data_dir()
        self._init_db()

        logger.info(f"SQLiteStore initialized at {self.db_path}")

    def _ensure_data_dir(self) -> None:
        """Create data directory if it doesn't exist."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data directory: {e}", {"path": str(self.data_dir)})

    @contextmanager
    def _connection(self):
        """Context manager for database connections.

        Uses WAL mode so readers never block the tick writer.
        """
        conn = sqlite3.connect(
            self.db_path,
            timeout=30.0,
            isolation_level=None  # Autocommit mode, we handle transactions manually
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        try:
            yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        try:
            with self._connection() as conn:
                conn.executescript(self.SCHEMA)
                conn.execute(
                    "INSERT OR IGNORE INTO schema_info (key, value) VALUES (?, ?)",
                    ("version", str(SCHEMA_VERSION))
                )
            logger.debug("Database schema initialized")
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize database: {e}")
            raise StorageError(f"Database initialization failed: {e}")

    def _today(self) -> date:
        return date.today()

    # === Aggregate writes ===
    #
    # Rows carry absolute bucket values. Stored counters and peaks never go
    # down, so an older value cannot overwrite a newer one.

    _UPSERT_HOURLY = """
        INSERT INTO hourly_usage
        (adapter_id, hour, bytes_received, bytes_sent,
         peak_download_speed, peak_upload_speed, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
        ON CONFLICT(adapter_id, hour) DO UPDATE SET
            bytes_received = MAX(bytes_received, excluded.bytes_received),
            bytes_sent = MAX(bytes_sent, excluded.bytes_sent),
            peak_download_speed = MAX(peak_download_speed, excluded.peak_download_speed),
            peak_upload_speed = MAX(peak_upload_speed, excluded.peak_upload_speed),
            updated_at = CURRENT_TIMESTAMP
    """

    _UPSERT_DAILY = """
        INSERT INTO daily_usage
        (adapter_id, date, bytes_received, bytes_sent,
         peak_download_speed, peak_upload_speed, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
        ON CONFLICT(adapter_id, date) DO UPDATE SET
            bytes_received = MAX(bytes_received, excluded.bytes_received),
            bytes_sent = MAX(bytes_sent, excluded.bytes_sent),
            peak_download_speed = MAX(peak_download_speed, excluded.peak_download_speed),
            peak_upload_speed = MAX(peak_upload_speed, excluded.peak_upload_speed),
            updated_at = CURRENT_TIMESTAMP
    """

    @staticmethod
    def _hourly_params(usage: HourlyUsage) -> tuple:
        return (
            usage.adapter_id, _hour_key(usage.hour),
            usage.bytes_received, usage.bytes_sent,
            usage.peak_download_speed, usage.peak_upload_speed,
        )

    @staticmethod
    def _daily_params(usage: DailyUsage) -> tuple:
        return (
            usage.adapter_id, usage.date.isoformat(),
            usage.bytes_received, usage.bytes_sent,
            usage.peak_download_speed, usage.peak_upload_speed,
        )

    def upsert_buckets(self, hourly: HourlyUsage, daily: DailyUsage) -> None:
        """Write an hourly and a daily bucket in one transaction.

        Either both rows are written or neither is, which keeps the sum of
        a day's hourly rows equal to its daily row.
        """
        with self._lock:
            try:
                with self._connection() as conn:
                    conn.execute("BEGIN TRANSACTION")
                    try:
                        conn.execute(self._UPSERT_HOURLY, self._hourly_params(hourly))
                        conn.execute(self._UPSERT_DAILY, self._daily_params(daily))
                        conn.execute("COMMIT")
                    except sqlite3.Error:
                        conn.execute("ROLLBACK")
                        raise
            except sqlite3.Error as e:
                logger.error(f"Failed to upsert usage buckets: {e}")
                raise StorageError(
                    f"Failed to upsert usage buckets: {e}",
                    {"adapter_id": hourly.adapter_id, "hour": _hour_key(hourly.hour)}
                )

    # === Aggregate point reads ===

    def get_hourly_row(self, adapter_id: str, hour: datetime) -> Optional[HourlyUsage]:
        """Get one hourly bucket, or None if it doesn't exist yet.

        Raises:
            StorageError: If the database cannot be read.
        """
        try:
            with self._connection() as conn:
                row = conn.execute("""
                    SELECT adapter_id, hour, bytes_received, bytes_sent,
                           peak_download_speed, peak_upload_speed
                    FROM hourly_usage
                    WHERE adapter_id = ? AND hour = ?
                """, (adapter_id, _hour_key(hour))).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read hourly usage: {e}", {"adapter_id": adapter_id})
        return HourlyUsage.from_row(row) if row else None

    def get_daily_row(self, adapter_id: str, day: date) -> Optional[DailyUsage]:
        """Get one daily bucket, or None if it doesn't exist yet.

        Raises:
            StorageError: If the database cannot be read.
        """
        try:
            with self._connection() as conn:
                row = conn.execute("""
                    SELECT adapter_id, date, bytes_received, bytes_sent,
                           peak_download_speed, peak_upload_speed
                    FROM daily_usage
                    WHERE adapter_id = ? AND date = ?
                """, (adapter_id, day.isoformat())).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read daily usage: {e}", {"adapter_id": adapter_id})
        return DailyUsage.from_row(row) if row else None

    # === Speed snapshots ===

    def save_speed_snapshot_batch(self, snapshots: Iterable[SpeedSnapshot]) -> int:
        """Append a batch of speed snapshots in one transaction.

        Returns:
            Number of snapshots written.
        """
        rows = [(_ts_key(s.timestamp), s.download_bps, s.upload_bps) for s in snapshots]
        if not rows:
            return 0

        with self._lock:
            try:
                with self._connection() as conn:
                    conn.execute("BEGIN TRANSACTION")
                    try:
                        conn.executemany(
                            "INSERT INTO speed_snapshots (timestamp, download_bps, upload_bps) "
                            "VALUES (?, ?, ?)",
                            rows
                        )
                        conn.execute("COMMIT")
                    except sqlite3.Error:
                        conn.execute("ROLLBACK")
                        raise
            except sqlite3.Error as e:
                logger.error(f"Failed to save speed snapshots: {e}")
                raise StorageError(f"Failed to save speed snapshots: {e}", {"count": len(rows)})

        logger.debug(f"Saved {len(rows)} speed snapshots")
        return len(rows)

    def get_speed_history(self, since: datetime) -> List[SpeedSnapshot]:
        """Get speed snapshots at or after ``since``, oldest first."""
        try:
            with self._connection() as conn:
                cursor = conn.execute("""
                    SELECT timestamp, download_bps, upload_bps
                    FROM speed_snapshots
                    WHERE timestamp >= ?
                    ORDER BY timestamp ASC, id ASC
                """, (_ts_key(since),))
                return [
                    SpeedSnapshot(
                        timestamp=datetime.fromisoformat(row["timestamp"]),
                        download_bps=row["download_bps"],
                        upload_bps=row["upload_bps"],
                    )
                    for row in cursor
                ]
        except sqlite3.Error as e:
            logger.error(f"Failed to get speed history: {e}")
            return []

    def cleanup_old_speed_snapshots(self, max_age: timedelta,
                                    now: Optional[datetime] = None) -> int:
        """Delete snapshots older than ``now - max_age``.

        Returns:
            Number of snapshots deleted.
        """
        cutoff = (now or datetime.now()) - max_age

        with self._lock:
            try:
                with self._connection() as conn:
                    cursor = conn.execute(
                        "DELETE FROM speed_snapshots WHERE timestamp < ?", (_ts_key(cutoff),)
                    )
                    deleted = cursor.rowcount
            except sqlite3.Error as e:
                logger.error(f"Snapshot cleanup failed: {e}")
                raise StorageError(f"Failed to purge speed snapshots: {e}")

        if deleted > 0:
            logger.debug(f"Purged {deleted} speed snapshots older than {cutoff}")
        return deleted

    # === Query surface ===

    def get_daily_usage(self, start: date, end: date) -> List[DailyUsage]:
        """Get daily rows for every adapter between two dates, inclusive."""
        try:
            with self._connection() as conn:
                cursor = conn.execute("""
                    SELECT adapter_id, date, bytes_received, bytes_sent,
                           peak_download_speed, peak_upload_speed
                    FROM daily_usage
                    WHERE date >= ? AND date <= ?
                    ORDER BY date ASC, adapter_id ASC
                """, (start.isoformat(), end.isoformat()))
                return [DailyUsage.from_row(row) for row in cursor]
        except sqlite3.Error as e:
            logger.error(f"Failed to get daily usage: {e}")
            return []

    def get_hourly_usage(self, day: date) -> List[HourlyUsage]:
        """Get hourly rows for every adapter on one day."""
        start = datetime.combine(day, datetime.min.time())
        end = start + timedelta(days=1)
        try:
            with self._connection() as conn:
                cursor = conn.execute("""
                    SELECT adapter_id, hour, bytes_received, bytes_sent,
                           peak_download_speed, peak_upload_speed
                    FROM hourly_usage
                    WHERE hour >= ? AND hour < ?
                    ORDER BY hour ASC, adapter_id ASC
                """, (_hour_key(start), _hour_key(end)))
                return [HourlyUsage.from_row(row) for row in cursor]
        except sqlite3.Error as e:
            logger.error(f"Failed to get hourly usage: {e}")
            return []

    def get_today_usage(self) -> Tuple[int, int]:
        """Get today's (received, sent) across all adapters."""
        try:
            with self._connection() as conn:
                row = conn.execute("""
                    SELECT COALESCE(SUM(bytes_received), 0) as total_received,
                           COALESCE(SUM(bytes_sent), 0) as total_sent
                    FROM daily_usage
                    WHERE date = ?
                """, (self._today().isoformat(),)).fetchone()
                return (row["total_received"], row["total_sent"])
        except sqlite3.Error as e:
            logger.error(f"Failed to get today's usage: {e}")
            return (0, 0)

    def get_today_usage_by_adapter(self) -> Dict[str, Tuple[int, int]]:
        """Get today's (received, sent) per adapter."""
        result = {}
        try:
            with self._connection() as conn:
                cursor = conn.execute("""
                    SELECT adapter_id, bytes_received, bytes_sent
                    FROM daily_usage
                    WHERE date = ?
                    ORDER BY adapter_id
                """, (self._today().isoformat(),))
                for row in cursor:
                    result[row["adapter_id"]] = (row["bytes_received"], row["bytes_sent"])
        except sqlite3.Error as e:
            logger.error(f"Failed to get today's usage by adapter: {e}")
        return result

    def get_total_usage(self) -> Tuple[int, int]:
        """Get all-time (received, sent) across all adapters."""
        try:
            with self._connection() as conn:
                row = conn.execute("""
                    SELECT COALESCE(SUM(bytes_received), 0) as total_received,
                           COALESCE(SUM(bytes_sent), 0) as total_sent
                    FROM daily_usage
                """).fetchone()
                return (row["total_received"], row["total_sent"])
        except sqlite3.Error as e:
            logger.error(f"Failed to get total usage: {e}")
            return (0, 0)

    # === Maintenance ===

    def cleanup_old_data(self, keep_days: Optional[int] = None) -> int:
        """Remove aggregate rows older than the retention window.

        Daily rows dated before ``today - keep_days`` and hourly rows before
        midnight of that date are deleted.

        Args:
            keep_days: Number of days to retain. Defaults to STORAGE.RETENTION_DAYS.
                Zero or negative disables cleanup.

        Returns:
            Number of records deleted
        """
        if keep_days is None:
            keep_days = STORAGE.RETENTION_DAYS
        if keep_days <= 0:
            return 0

        cutoff_date = self._today() - timedelta(days=keep_days)
        cutoff_hour = datetime.combine(cutoff_date, datetime.min.time())

        with self._lock:
            try:
                with self._connection() as conn:
                    daily_deleted = conn.execute(
                        "DELETE FROM daily_usage WHERE date < ?", (cutoff_date.isoformat(),)
                    ).rowcount
                    hourly_deleted = conn.execute(
                        "DELETE FROM hourly_usage WHERE hour < ?", (_hour_key(cutoff_hour),)
                    ).rowcount
            except sqlite3.Error as e:
                logger.error(f"Cleanup failed: {e}")
                return 0

        total_deleted = daily_deleted + hourly_deleted
        if total_deleted > 0:
            logger.info(
                f"Cleanup: removed {daily_deleted} daily and {hourly_deleted} hourly "
                f"records older than {keep_days} days"
            )
        return total_deleted

    def flush(self) -> None:
        """Checkpoint the WAL so all data is in the main database file."""
        try:
            with self._connection() as conn:
                conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            logger.debug("Database flushed")
        except sqlite3.Error as e:
            logger.error(f"Flush failed: {e}")

    # === Backup/Export ===

    def backup(self, backup_path: Optional[Path] = None) -> Path:
        """Create a backup of the database.

        Args:
            backup_path: Optional custom backup path. If not provided,
                        creates backup in data_dir with timestamp.

        Returns:
            Path to the backup file
        """
        if backup_path is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            backup_path = self.data_dir / f"backup_{timestamp}.db"

        backup_path = Path(backup_path)

        try:
            with self._lock:
                with self._connection() as conn:
                    conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
                shutil.copy2(self.db_path, backup_path)

            logger.info(f"Database backed up to {backup_path}")
            return backup_path
        except (OSError, sqlite3.Error) as e:
            logger.error(f"Backup failed: {e}")
            raise StorageError(f"Failed to create backup: {e}")

    def export_json(self, output_path: Optional[Path] = None, days: int = 90) -> Path:
        """Export recent daily and hourly usage to JSON.

        Args:
            output_path: Optional custom output path
            days: Number of days of history to export

        Returns:
            Path to the exported JSON file
        """
        if output_path is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            output_path = self.data_dir / f"export_{timestamp}.json"

        output_path = Path(output_path)
        since = self._today() - timedelta(days=days)

        try:
            export_data = {
                "export_timestamp": datetime.now().isoformat(),
                "schema_version": SCHEMA_VERSION,
                "daily_usage": [],
                "hourly_usage": [],
            }

            with self._connection() as conn:
                cursor = conn.execute("""
                    SELECT adapter_id, date, bytes_received, bytes_sent,
                           peak_download_speed, peak_upload_speed
                    FROM daily_usage
                    WHERE date >= ?
                    ORDER BY date, adapter_id
                """, (since.isoformat(),))
                export_data["daily_usage"] = [dict(row) for row in cursor]

                cursor = conn.execute("""
                    SELECT adapter_id, hour, bytes_received, bytes_sent,
                           peak_download_speed, peak_upload_speed
                    FROM hourly_usage
                    WHERE hour >= ?
                    ORDER BY hour, adapter_id
                """, (since.isoformat(),))
                export_data["hourly_usage"] = [dict(row) for row in cursor]

            with open(output_path, 'w') as f:
                json.dump(export_data, f, indent=2)

            logger.info(f"Data exported to {output_path}")
            return output_path
        except (OSError, sqlite3.Error) as e:
            logger.error(f"Export failed: {e}")
            raise StorageError(f"Failed to export data: {e}")

    def get_database_stats(self) -> Dict:
        """Get statistics about the database.

        Returns:
            Dict with record counts, date range, and file size
        """
        try:
            with self._connection() as conn:
                daily_count = conn.execute("SELECT COUNT(*) FROM daily_usage").fetchone()[0]
                hourly_count = conn.execute("SELECT COUNT(*) FROM hourly_usage").fetchone()[0]
                snapshot_count = conn.execute("SELECT COUNT(*) FROM speed_snapshots").fetchone()[0]
                date_range = conn.execute("""
                    SELECT MIN(date) as oldest, MAX(date) as newest
                    FROM daily_usage
                """).fetchone()

            file_size = self.db_path.stat().st_size if self.db_path.exists() else 0

            return {
                "daily_records": daily_count,
                "hourly_records": hourly_count,
                "snapshot_records": snapshot_count,
                "oldest_date": date_range["oldest"],
                "newest_date": date_range["newest"],
                "file_size_bytes": file_size,
                "file_size_mb": round(file_size / (1024 * 1024), 2)
            }
        except sqlite3.Error as e:
            logger.error(f"Failed to get database stats: {e}")
            return {}

