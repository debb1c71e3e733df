"""Periodic tick driver.

A single background thread calls the tick callback on a fixed schedule.
Ticks never overlap and never queue up: when a tick runs past the next
due time, the missed ticks are skipped and the schedule continues from
the next future slot.

Usage:
    from app.timer import PollingTimer

    def on_tick(timer):
        print("Tick!")

    timer = PollingTimer(on_tick, interval=1.0)
    timer.start()
"""

import threading
import time
from typing import Callable, Optional

from config import get_logger, log_exception

logger = get_logger(__name__)


class PollingTimer:
    """Drift-free periodic timer that skips ticks instead of queueing them.

    Attributes:
        interval: Time between ticks in seconds.
        skipped_ticks: Ticks dropped because the previous one overran.

    Example:
        >>> timer = PollingTimer(callback, interval=1.0)
        >>> timer.start()
        >>> # Later...
        >>> timer.stop(timeout=5.0)
    """

    def __init__(self, callback: Callable[["PollingTimer"], None], interval: float):
        """Initialize the timer.

        Args:
            callback: Function to call on each tick. Receives the timer as argument.
            interval: Time between ticks in seconds.
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._callback = callback
        self._interval = interval
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self.skipped_ticks = 0

    @property
    def interval(self) -> float:
        """Get the current interval."""
        with self._lock:
            return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        """Update interval. Takes effect from the next scheduled tick."""
        if value <= 0:
            raise ValueError("interval must be positive")
        with self._lock:
            self._interval = value

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _timer_loop(self) -> None:
        next_due = time.monotonic() + self.interval

        while not self._stop_event.wait(max(0.0, next_due - time.monotonic())):
            try:
                self._callback(self)
            except Exception as e:
                # One failing tick must not stop sampling
                log_exception(logger, "Tick failed", e)

            interval = self.interval
            next_due += interval
            now = time.monotonic()
            if now > next_due:
                missed = int((now - next_due) // interval) + 1
                self.skipped_ticks += missed
                next_due += missed * interval
                logger.debug(f"Tick overran, skipped {missed} tick(s)")

    def start(self) -> None:
        """Start the timer in a background thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._timer_loop, daemon=True, name="PollingTimer")
        self._thread.start()
        logger.debug(f"PollingTimer started with interval {self._interval}s")

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Stop the timer and wait for an in-flight tick to finish.

        Args:
            timeout: Maximum seconds to wait for the running tick.

        Returns:
            True if the timer thread finished within the timeout.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return True
        if thread is not threading.current_thread():
            thread.join(timeout)
        finished = not thread.is_alive()
        if finished:
            self._thread = None
        else:
            logger.warning(f"Tick still running after {timeout}s shutdown grace period")
        logger.debug("PollingTimer stopped")
        return finished
