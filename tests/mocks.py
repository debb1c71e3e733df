"""Mock implementations for testing Network Monitor.

Provides scriptable stand-ins for the counter source and the persistence
gateway so engine tests run without system access.

Usage:
    from tests.mocks import MockCounterSource

    source = MockCounterSource()
    source.add_adapter("eth0")
    source.set_counters("eth0", received=1000, sent=500)
"""

import threading
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from config.exceptions import AdapterError, StorageError
from monitor.adapters import AdapterCounterSource, AdapterCounters, AdapterInfo, classify_adapter
from storage.sqlite_store import DailyUsage, HourlyUsage, SpeedSnapshot, truncate_to_hour


class MockCounterSource(AdapterCounterSource):
    """Counter source driven entirely by the test."""

    def __init__(self):
        self._adapters: Dict[str, AdapterInfo] = {}
        self._counters: Dict[str, Tuple[int, int]] = {}
        self._failing: set = set()
        self.read_calls = 0

    def add_adapter(self, adapter_id: str, is_active: bool = True,
                    received: int = 0, sent: int = 0) -> None:
        info = classify_adapter(adapter_id, is_active)
        self._adapters[adapter_id] = info
        self._counters[adapter_id] = (received, sent)

    def remove_adapter(self, adapter_id: str) -> None:
        self._adapters.pop(adapter_id, None)
        self._counters.pop(adapter_id, None)

    def set_active(self, adapter_id: str, is_active: bool) -> None:
        info = self._adapters[adapter_id]
        self._adapters[adapter_id] = classify_adapter(info.id, is_active)

    def set_counters(self, adapter_id: str, received: int, sent: int = 0) -> None:
        self._counters[adapter_id] = (received, sent)

    def fail_reads(self, adapter_id: str, failing: bool = True) -> None:
        if failing:
            self._failing.add(adapter_id)
        else:
            self._failing.discard(adapter_id)

    def list_adapters(self) -> List[AdapterInfo]:
        return list(self._adapters.values())

    def read_counters(self, adapter_id: str) -> AdapterCounters:
        self.read_calls += 1
        if adapter_id in self._failing or adapter_id not in self._counters:
            raise AdapterError("Adapter not readable", {"adapter_id": adapter_id})
        received, sent = self._counters[adapter_id]
        return AdapterCounters(bytes_received=received, bytes_sent=sent)


class MemoryGateway:
    """In-memory persistence gateway with switchable failures."""

    def __init__(self):
        self.hourly: Dict[Tuple[str, datetime], HourlyUsage] = {}
        self.daily: Dict[Tuple[str, date], DailyUsage] = {}
        self.snapshots: List[SpeedSnapshot] = []
        self.fail_writes = False
        self.fail_reads = False
        self.write_delay = 0.0
        self.write_calls = 0
        self._lock = threading.Lock()

    def _check_write(self) -> None:
        self.write_calls += 1
        if self.write_delay:
            threading.Event().wait(self.write_delay)
        if self.fail_writes:
            raise StorageError("Storage unavailable")

    def get_hourly_row(self, adapter_id: str, hour: datetime) -> Optional[HourlyUsage]:
        if self.fail_reads:
            raise StorageError("Storage unavailable")
        return self.hourly.get((adapter_id, truncate_to_hour(hour)))

    def get_daily_row(self, adapter_id: str, day: date) -> Optional[DailyUsage]:
        if self.fail_reads:
            raise StorageError("Storage unavailable")
        return self.daily.get((adapter_id, day))

    def upsert_buckets(self, hourly: HourlyUsage, daily: DailyUsage) -> None:
        self._check_write()
        with self._lock:
            self.hourly[(hourly.adapter_id, hourly.hour)] = hourly
            self.daily[(daily.adapter_id, daily.date)] = daily

    def save_speed_snapshot_batch(self, snapshots: List[SpeedSnapshot]) -> int:
        self._check_write()
        with self._lock:
            self.snapshots.extend(snapshots)
        return len(snapshots)

    def get_speed_history(self, since: datetime) -> List[SpeedSnapshot]:
        with self._lock:
            return sorted((s for s in self.snapshots if s.timestamp >= since),
                          key=lambda s: s.timestamp)

    def cleanup_old_speed_snapshots(self, max_age: timedelta,
                                    now: Optional[datetime] = None) -> int:
        cutoff = (now or datetime.now()) - max_age
        with self._lock:
            before = len(self.snapshots)
            self.snapshots = [s for s in self.snapshots if s.timestamp >= cutoff]
            return before - len(self.snapshots)


class MockSettingsManager:
    """Settings manager that never touches disk."""

    def __init__(self, poll_interval_ms: int = 1000, selected_adapter_id: str = "auto",
                 retention_days: int = 365, snapshot_retention_hours: int = 6):
        self.poll_interval_ms = poll_interval_ms
        self.selected_adapter_id = selected_adapter_id
        self.retention_days = retention_days
        self.snapshot_retention_hours = snapshot_retention_hours

    def get_poll_interval_ms(self) -> int:
        return self.poll_interval_ms

    def set_poll_interval_ms(self, value: int) -> int:
        self.poll_interval_ms = max(100, min(60000, value))
        return self.poll_interval_ms

    def get_selected_adapter_id(self) -> str:
        return self.selected_adapter_id

    def set_selected_adapter_id(self, adapter_id: Optional[str]) -> None:
        self.selected_adapter_id = adapter_id or "auto"

    def get_retention_days(self) -> int:
        return self.retention_days

    def get_snapshot_retention_hours(self) -> int:
        return self.snapshot_retention_hours


def seed_usage(store, adapter_id: str, when, received: int, sent: int = 0) -> None:
    """Write matching hourly and daily rows through the paired upsert.

    ``when`` is a datetime (its hour is used) or a date (midnight is used).
    """
    if not isinstance(when, datetime):
        when = datetime.combine(when, datetime.min.time())
    hour = truncate_to_hour(when)
    store.upsert_buckets(
        HourlyUsage(adapter_id, hour, received, sent),
        DailyUsage(adapter_id, hour.date(), received, sent),
    )
