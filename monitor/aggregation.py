"""Hourly and daily usage aggregation.

The engine folds each Sample's delta into the hourly bucket for
``truncate(timestamp, hour)`` and the daily bucket for the sample's date.
Both buckets receive the same delta that the sampler computed, so a day's
hourly rows always sum to its daily row.

Buckets are mirrored in memory and written through the persistence
gateway with their absolute values. The first time a bucket is touched
its stored row (if any) is loaded, so a restart keeps accumulating into
the current hour and day instead of starting over.

Bucket lifecycle: a bucket is created by its first sample and accumulates
every later sample for its window. Nothing closes it explicitly; a late
sample for a past hour still updates that hour's row.

Example:
    >>> engine = AggregationEngine(store)
    >>> for sample in sampler.sample():
    ...     engine.apply(sample)
"""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Dict, Optional, Protocol, Tuple

from config import get_logger
from monitor.sampler import Sample
from storage.sqlite_store import DailyUsage, HourlyUsage, truncate_to_hour

logger = get_logger(__name__)


class UsageGateway(Protocol):
    """The part of the persistence gateway the engine writes through."""

    def get_hourly_row(self, adapter_id: str, hour: datetime) -> Optional[HourlyUsage]: ...

    def get_daily_row(self, adapter_id: str, day: date) -> Optional[DailyUsage]: ...

    def upsert_buckets(self, hourly: HourlyUsage, daily: DailyUsage) -> None: ...


@dataclass(frozen=True)
class BucketUpdate:
    """Bucket values after a sample was applied."""

    hourly: HourlyUsage
    daily: DailyUsage


class AggregationEngine:
    """Consumes Samples and maintains hourly/daily usage buckets.

    Samples for different adapters never block each other; samples for the
    same adapter are serialized by a per-adapter lock.

    Args:
        gateway: Persistence gateway, usually a SQLiteStore.
    """

    def __init__(self, gateway: UsageGateway) -> None:
        self._gateway = gateway
        self._hourly: Dict[Tuple[str, datetime], HourlyUsage] = {}
        self._daily: Dict[Tuple[str, date], DailyUsage] = {}
        self._adapter_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()
        self._cache_guard = threading.Lock()

    def _lock_for(self, adapter_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._adapter_locks[adapter_id]

    def _current_hourly(self, adapter_id: str, hour: datetime) -> Tuple[HourlyUsage, bool]:
        """Mirrored or stored hourly bucket, and whether it already exists."""
        with self._cache_guard:
            cached = self._hourly.get((adapter_id, hour))
        if cached is not None:
            return cached, True
        stored = self._gateway.get_hourly_row(adapter_id, hour)
        if stored is not None:
            return stored, True
        return HourlyUsage(adapter_id=adapter_id, hour=hour), False

    def _current_daily(self, adapter_id: str, day: date) -> Tuple[DailyUsage, bool]:
        with self._cache_guard:
            cached = self._daily.get((adapter_id, day))
        if cached is not None:
            return cached, True
        stored = self._gateway.get_daily_row(adapter_id, day)
        if stored is not None:
            return stored, True
        return DailyUsage(adapter_id=adapter_id, date=day), False

    def apply(self, sample: Sample) -> Optional[BucketUpdate]:
        """Fold one sample into its hourly and daily buckets.

        Returns:
            The updated buckets, or None when the sample changed nothing.

        Raises:
            StorageError: If the buckets could not be read or written. The
                in-memory mirror is left untouched, so the sample is dropped
                without being counted.
        """
        hour = truncate_to_hour(sample.timestamp)
        day = sample.timestamp.date()

        with self._lock_for(sample.adapter_id):
            hourly, hourly_exists = self._current_hourly(sample.adapter_id, hour)
            daily, daily_exists = self._current_daily(sample.adapter_id, day)

            if (
                sample.is_zero_delta
                and hourly_exists and daily_exists
                and sample.download_bps <= min(hourly.peak_download_speed, daily.peak_download_speed)
                and sample.upload_bps <= min(hourly.peak_upload_speed, daily.peak_upload_speed)
            ):
                return None

            new_hourly = replace(
                hourly,
                bytes_received=hourly.bytes_received + sample.delta_received,
                bytes_sent=hourly.bytes_sent + sample.delta_sent,
                peak_download_speed=max(hourly.peak_download_speed, sample.download_bps),
                peak_upload_speed=max(hourly.peak_upload_speed, sample.upload_bps),
            )
            new_daily = replace(
                daily,
                bytes_received=daily.bytes_received + sample.delta_received,
                bytes_sent=daily.bytes_sent + sample.delta_sent,
                peak_download_speed=max(daily.peak_download_speed, sample.download_bps),
                peak_upload_speed=max(daily.peak_upload_speed, sample.upload_bps),
            )

            self._gateway.upsert_buckets(new_hourly, new_daily)

            with self._cache_guard:
                self._hourly[(sample.adapter_id, hour)] = new_hourly
                self._daily[(sample.adapter_id, day)] = new_daily

        return BucketUpdate(hourly=replace(new_hourly), daily=replace(new_daily))

    def get_hourly(self, adapter_id: str, hour: datetime) -> Optional[HourlyUsage]:
        """In-memory copy of an hourly bucket, if the engine has touched it."""
        with self._cache_guard:
            usage = self._hourly.get((adapter_id, truncate_to_hour(hour)))
        return replace(usage) if usage else None

    def get_daily(self, adapter_id: str, day: date) -> Optional[DailyUsage]:
        """In-memory copy of a daily bucket, if the engine has touched it."""
        with self._cache_guard:
            usage = self._daily.get((adapter_id, day))
        return replace(usage) if usage else None

    def prune_cache(self, now: Optional[datetime] = None,
                    keep: timedelta = timedelta(days=2)) -> int:
        """Drop mirrored buckets older than ``keep``.

        A later sample for a dropped bucket reloads it from the gateway.

        Returns:
            Number of mirrored buckets dropped.
        """
        cutoff = (now or datetime.now()) - keep
        with self._cache_guard:
            old_hours = [k for k in self._hourly if k[1] < cutoff]
            old_days = [k for k in self._daily if k[1] < cutoff.date()]
            for key in old_hours:
                del self._hourly[key]
            for key in old_days:
                del self._daily[key]
        dropped = len(old_hours) + len(old_days)
        if dropped:
            logger.debug(f"Pruned {dropped} cached buckets older than {cutoff}")
        return dropped


__all__ = ["AggregationEngine", "BucketUpdate", "HourlyUsage", "DailyUsage", "UsageGateway"]
