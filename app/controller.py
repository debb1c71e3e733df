"""Engine controller for Network Monitor.

Drives the sampling tick and coordinates sampler, resolver, aggregation,
speed history and storage. Uses dependency injection for testability.

Each tick:
1. Lists adapters and samples every active one (sampler state always advances).
2. Resolves the primary adapter and publishes a switch notification if it changed.
3. Hands the samples and the primary adapter's speed snapshot to a single
   persistence worker and waits for it with a bounded timeout.

A persistence failure or timeout drops that tick's writes and marks the
engine as degraded ("last saved: stale") until a later write succeeds. If
the previous write is still running when the next tick arrives, the new
tick skips persistence instead of queueing behind it.

Usage:
    from app.controller import AppController
    from app.dependencies import create_dependencies

    deps = create_dependencies()
    controller = AppController(deps)
    controller.start()
"""
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from app.dependencies import AppDependencies
from app.events import EventBus, EventType, get_event_bus
from app.timer import PollingTimer
from config import INTERVALS, STORAGE, THRESHOLDS, LogContext, get_logger
from config.exceptions import PersistenceTimeoutError, StorageError
from monitor.resolver import AdapterDisplayItem, Resolution, speeds_from_samples
from monitor.sampler import Sample
from storage.sqlite_store import DailyUsage, HourlyUsage, SpeedSnapshot

logger = get_logger(__name__)


class AppController:
    """Central controller of the statistics engine.

    Attributes:
        deps: The dependency container with all components.
        event_bus: Event bus for publishing state changes.
    """

    def __init__(
        self,
        deps: AppDependencies,
        event_bus: Optional[EventBus] = None,
        persist_timeout: float = INTERVALS.PERSIST_TIMEOUT_SECONDS,
        shutdown_grace: float = INTERVALS.SHUTDOWN_GRACE_SECONDS,
    ):
        """Initialize the controller with dependencies.

        Args:
            deps: AppDependencies container with all required components.
            event_bus: Optional event bus (uses deps' or the global one if not provided).
            persist_timeout: Seconds a tick waits for its writes.
            shutdown_grace: Seconds stop() waits for an in-flight tick.
        """
        self.deps = deps
        self.event_bus = event_bus or deps.event_bus or get_event_bus()
        self._persist_timeout = persist_timeout
        self._shutdown_grace = shutdown_grace

        self._running = False
        self._timer: Optional[PollingTimer] = None
        self._tick_lock = threading.Lock()
        self._executor = self._new_executor()
        self._executor_closed = False
        self._pending: Optional[Future] = None

        # Persistence health
        self._last_saved_at: Optional[datetime] = None
        self._consecutive_failures = 0
        self._degraded = False
        self._last_sweep: Optional[datetime] = None

        self._last_resolution = Resolution(primary_id=None)

        logger.info("AppController initialized")

    # === Lifecycle ===

    def start(self) -> None:
        """Run the startup retention sweep and start the polling timer."""
        if self._running:
            return
        logger.info("Starting AppController...")
        self._running = True

        if self._executor_closed:
            self._executor = self._new_executor()
            self._executor_closed = False
            self._pending = None
        # Counters read before a restart are stale
        self.deps.sampler.reset()

        if STORAGE.CLEANUP_ON_STARTUP:
            self.run_retention_sweep()

        interval = self.deps.settings.get_poll_interval_ms() / 1000.0
        self._timer = PollingTimer(lambda _timer: self.update(), interval)
        self._timer.start()

        self.event_bus.publish(EventType.APP_STARTING, {'poll_interval': interval})
        logger.info(f"AppController started, polling every {interval}s")

    def stop(self) -> None:
        """Stop polling and let in-flight writes finish within the grace period.

        Session counters are not saved; the next start re-baselines them.
        """
        if not self._running:
            return
        logger.info("Stopping AppController...")
        self._running = False

        if self._timer is not None:
            self._timer.stop(timeout=self._shutdown_grace)
            self._timer = None

        pending = self._pending
        if pending is not None and not pending.done():
            try:
                pending.result(timeout=self._shutdown_grace)
            except FutureTimeoutError:
                logger.warning("Persistence still running at shutdown, abandoning it")
            except StorageError as e:
                logger.warning(f"Final persistence failed: {e}")

        try:
            self.deps.history.flush()
        except StorageError as e:
            logger.warning(f"Could not flush speed history on shutdown: {e}")

        self.deps.store.flush()
        self._executor.shutdown(wait=False)
        self._executor_closed = True

        self.event_bus.publish(EventType.APP_STOPPING)
        logger.info("AppController stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @staticmethod
    def _new_executor() -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=1, thread_name_prefix="persist")

    # === Tick ===

    def update(self, now: Optional[datetime] = None) -> dict:
        """Perform one sampling tick and return the current state.

        A call made while another tick is still running is skipped and
        returns an empty dict.

        Args:
            now: Tick timestamp. Defaults to the current local time.
        """
        if not self._tick_lock.acquire(blocking=False):
            logger.debug("Tick skipped, previous tick still running")
            return {}
        try:
            return self._tick(now or datetime.now())
        finally:
            self._tick_lock.release()

    def _tick(self, now: datetime) -> dict:
        adapters = self.deps.source.list_adapters()
        samples = self.deps.sampler.sample(now, adapters)
        resolution = self.deps.resolver.resolve(adapters, speeds_from_samples(samples))
        self._last_resolution = resolution

        if resolution.notification:
            self.event_bus.publish(EventType.PRIMARY_ADAPTER_CHANGED, {
                'adapter_id': resolution.primary_id,
                'message': resolution.notification,
            })

        primary = next((s for s in samples if s.adapter_id == resolution.primary_id), None)
        snapshot = None
        if primary is not None:
            snapshot = SpeedSnapshot(
                timestamp=now,
                download_bps=primary.download_bps,
                upload_bps=primary.upload_bps,
            )

        self.event_bus.publish(EventType.SAMPLES_UPDATED, {
            'samples': samples,
            'primary_adapter': resolution.primary_id,
            'secondaries': resolution.secondaries,
        })

        persisted = self._persist(samples, snapshot, now)
        self._maybe_sweep(now)

        return {
            'samples': samples,
            'primary_adapter': resolution.primary_id,
            'primary_sample': primary,
            'secondaries': resolution.secondaries,
            'notification': resolution.notification,
            'fell_back_to_auto': resolution.fell_back_to_auto,
            'persisted': persisted,
            'degraded': self._degraded,
            'last_saved_at': self._last_saved_at,
        }

    # === Persistence ===

    def _write(self, samples: List[Sample], snapshot: Optional[SpeedSnapshot]) -> None:
        """Apply samples and append the snapshot. Runs on the persistence worker.

        Every sample is attempted; the first failure is re-raised at the end.
        """
        first_error: Optional[StorageError] = None

        for sample in samples:
            try:
                update = self.deps.aggregation.apply(sample)
            except StorageError as e:
                logger.warning(f"Dropped sample for {sample.adapter_id}: {e}")
                first_error = first_error or e
                continue
            if update is not None:
                self.event_bus.publish(EventType.BUCKET_UPDATED, {
                    'adapter_id': sample.adapter_id,
                    'hourly': update.hourly,
                    'daily': update.daily,
                })

        if snapshot is not None:
            try:
                flushed = self.deps.history.append(snapshot)
            except StorageError as e:
                first_error = first_error or e
            else:
                if flushed:
                    self.event_bus.publish(EventType.HISTORY_FLUSHED, {'count': flushed})

        if first_error is not None:
            raise first_error

    def _persist(self, samples: List[Sample], snapshot: Optional[SpeedSnapshot],
                 now: datetime) -> bool:
        """Run this tick's writes with a bounded wait. Returns True on success."""
        if self._pending is not None and not self._pending.done():
            logger.warning("Previous persistence still running, skipping this tick's writes")
            self._record_failure(now, PersistenceTimeoutError(
                "Persistence backlog", self._persist_timeout
            ))
            return False

        try:
            self._pending = self._executor.submit(self._write, samples, snapshot)
        except RuntimeError as e:
            # Executor already shut down
            self._record_failure(now, StorageError(f"Persistence unavailable: {e}"))
            return False
        try:
            self._pending.result(timeout=self._persist_timeout)
        except FutureTimeoutError:
            error = PersistenceTimeoutError(
                "Persistence timed out", self._persist_timeout, {'samples': len(samples)}
            )
            logger.warning(str(error))
            self._pending.add_done_callback(self._log_late_write)
            self._record_failure(now, error)
            return False
        except StorageError as e:
            self._record_failure(now, e)
            return False

        self._record_success(now)
        return True

    @staticmethod
    def _log_late_write(future: Future) -> None:
        """Report how a timed-out write eventually ended."""
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.warning(f"Timed-out persistence failed late: {error}")
        else:
            logger.info("Timed-out persistence completed late")

    def _record_success(self, now: datetime) -> None:
        self._last_saved_at = now
        self._consecutive_failures = 0
        if self._degraded:
            self._degraded = False
            logger.info("Persistence recovered")
            self.event_bus.publish(EventType.PERSISTENCE_RECOVERED, {'last_saved_at': now})

    def _record_failure(self, now: datetime, error: StorageError) -> None:
        self._consecutive_failures += 1
        if not self._degraded and self._consecutive_failures >= THRESHOLDS.STALE_AFTER_FAILURES:
            self._degraded = True
            logger.error(f"Persistence degraded: {error}")
            self.event_bus.publish(EventType.PERSISTENCE_DEGRADED, {
                'last_saved_at': self._last_saved_at,
                'error': str(error),
            })

    def get_status(self) -> dict:
        """Persistence health for a "last saved" indicator."""
        return {
            'degraded': self._degraded,
            'last_saved_at': self._last_saved_at,
            'consecutive_failures': self._consecutive_failures,
        }

    # === Retention ===

    def _maybe_sweep(self, now: datetime) -> None:
        """Run the hourly sweep on the persistence worker with a bounded wait.

        Deferred to a later tick while a write is still pending.
        """
        if self._last_sweep is not None and now - self._last_sweep < timedelta(
            seconds=INTERVALS.CLEANUP_CHECK_SECONDS
        ):
            return
        if self._pending is not None and not self._pending.done():
            logger.debug("Retention sweep deferred, persistence still running")
            return
        if self._executor_closed:
            return

        self._last_sweep = now
        self._pending = self._executor.submit(self.run_retention_sweep, now)
        try:
            self._pending.result(timeout=self._persist_timeout)
        except FutureTimeoutError:
            logger.warning("Retention sweep still running, not waiting for it")

    def run_retention_sweep(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Delete aggregates and speed snapshots past their retention windows.

        Returns:
            Counts of deleted aggregate rows and snapshots.
        """
        now = now or datetime.now()
        self._last_sweep = now
        settings = self.deps.settings

        with LogContext(logger, "Retention sweep"):
            aggregates = self.deps.store.cleanup_old_data(settings.get_retention_days())
            try:
                snapshots = self.deps.history.purge(
                    timedelta(hours=settings.get_snapshot_retention_hours()), now
                )
            except StorageError as e:
                logger.warning(f"Speed snapshot purge failed: {e}")
                snapshots = 0
            self.deps.aggregation.prune_cache(now)

        result = {'aggregates': aggregates, 'snapshots': snapshots}
        if aggregates or snapshots:
            self.event_bus.publish(EventType.RETENTION_SWEEP, result)
        return result

    def cleanup_old_data(self, keep_days: int) -> int:
        """Delete aggregate rows older than ``keep_days``. No-op when keep_days <= 0."""
        return self.deps.store.cleanup_old_data(keep_days)

    # === Settings ===

    def set_poll_interval_ms(self, value: int) -> int:
        """Change the polling interval (clamped to 100 ms .. 60 s)."""
        stored = self.deps.settings.set_poll_interval_ms(value)
        if self._timer is not None:
            self._timer.interval = stored / 1000.0
        self.event_bus.publish(EventType.SETTINGS_CHANGED, {'poll_interval_ms': stored})
        return stored

    def set_selected_adapter(self, adapter_id: Optional[str]) -> None:
        """Pin an adapter, or pass None / the Auto id to follow the primary adapter."""
        self.deps.settings.set_selected_adapter_id(adapter_id)
        self.deps.resolver.selected_adapter_id = self.deps.settings.get_selected_adapter_id()
        self.event_bus.publish(EventType.SETTINGS_CHANGED, {
            'selected_adapter_id': self.deps.resolver.selected_adapter_id,
        })

    def get_adapter_display_items(self) -> List[AdapterDisplayItem]:
        """Selectable adapters, Auto first."""
        return self.deps.resolver.display_items(self.deps.source.list_adapters())

    # === Query surface ===

    def get_daily_usage(self, start: date, end: date) -> List[DailyUsage]:
        return self.deps.store.get_daily_usage(start, end)

    def get_hourly_usage(self, day: date) -> List[HourlyUsage]:
        return self.deps.store.get_hourly_usage(day)

    def get_speed_history(self, since: datetime) -> List[SpeedSnapshot]:
        return self.deps.history.get_speed_history(since)

    def get_chart_history(self, since: datetime,
                          target: int = THRESHOLDS.CHART_TARGET_POINTS) -> List[SpeedSnapshot]:
        return self.deps.history.get_chart_history(since, target)

    def get_today_usage(self) -> Tuple[int, int]:
        return self.deps.store.get_today_usage()

    def get_today_usage_by_adapter(self) -> Dict[str, Tuple[int, int]]:
        return self.deps.store.get_today_usage_by_adapter()

    def get_total_usage(self) -> Tuple[int, int]:
        return self.deps.store.get_total_usage()
