"""Tests for the polling timer."""
import threading
import time

import pytest

from app.timer import PollingTimer


@pytest.mark.slow
class TestPollingTimer:
    """Tests for PollingTimer scheduling."""

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            PollingTimer(lambda t: None, 0)

    def test_ticks_periodically(self):
        """Test that the callback runs repeatedly until stopped."""
        ticks = []
        timer = PollingTimer(lambda t: ticks.append(time.monotonic()), interval=0.02)
        timer.start()
        time.sleep(0.2)
        assert timer.stop(timeout=1.0)

        assert len(ticks) >= 3
        assert not timer.is_running

    def test_callback_receives_timer(self):
        received = []
        done = threading.Event()

        def on_tick(timer):
            received.append(timer)
            done.set()

        timer = PollingTimer(on_tick, interval=0.01)
        timer.start()
        assert done.wait(timeout=1.0)
        timer.stop(timeout=1.0)

        assert received[0] is timer

    def test_failing_tick_does_not_stop_timer(self):
        """Test that an exception in one tick does not end the loop."""
        calls = []

        def on_tick(timer):
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first tick fails")

        timer = PollingTimer(on_tick, interval=0.01)
        timer.start()
        time.sleep(0.15)
        timer.stop(timeout=1.0)

        assert len(calls) >= 2

    def test_overrun_skips_ticks_without_overlap(self):
        """Test that a slow tick causes skipped ticks, never overlapping ones."""
        active = []
        overlaps = []

        def slow_tick(timer):
            if active:
                overlaps.append(1)
            active.append(1)
            time.sleep(0.08)
            active.pop()

        timer = PollingTimer(slow_tick, interval=0.02)
        timer.start()
        time.sleep(0.3)
        timer.stop(timeout=1.0)

        assert overlaps == []
        assert timer.skipped_ticks > 0

    def test_interval_change(self):
        timer = PollingTimer(lambda t: None, interval=1.0)
        timer.interval = 0.5
        assert timer.interval == 0.5
        with pytest.raises(ValueError):
            timer.interval = -1

    def test_stop_before_start(self):
        timer = PollingTimer(lambda t: None, interval=1.0)
        assert timer.stop()
