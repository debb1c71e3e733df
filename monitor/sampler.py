"""Per-adapter counter sampling.

Turns cumulative, resettable byte counters into per-interval deltas and
speeds. The sampler owns one ``AdapterSessionState`` per adapter; nothing
else reads or writes that state; consumers only see the immutable
``Sample`` objects it returns.

Counter resets: when a counter reads lower than the previous reading, the
current absolute value is taken as the delta (the counter restarted from
zero and everything it reports now is new traffic). This cannot tell a
real wrap from a legitimately lower reading; it is a known limitation.

Example:
    >>> sampler = SpeedSampler(PsutilCounterSource())
    >>> _ = sampler.sample()      # baseline, zero deltas
    >>> samples = sampler.sample()
    >>> samples[0].download_bps
    1523.0
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from config import AdapterError, get_logger
from monitor.adapters import AdapterCounterSource, AdapterInfo

logger = get_logger(__name__)


@dataclass(frozen=True)
class Sample:
    """One poll result for one adapter.

    Attributes:
        adapter_id: Adapter the sample belongs to.
        timestamp: When the counters were read.
        download_bps: Receive speed in bytes per second.
        upload_bps: Send speed in bytes per second.
        session_bytes_received: Bytes received since the adapter was first seen.
        session_bytes_sent: Bytes sent since the adapter was first seen.
        delta_received: Bytes received since the previous sample.
        delta_sent: Bytes sent since the previous sample.
    """

    adapter_id: str
    timestamp: datetime
    download_bps: float
    upload_bps: float
    session_bytes_received: int
    session_bytes_sent: int
    delta_received: int = 0
    delta_sent: int = 0

    @property
    def is_zero_delta(self) -> bool:
        return self.delta_received == 0 and self.delta_sent == 0


@dataclass
class AdapterSessionState:
    """Previous-reading state for one adapter. Process lifetime only."""

    adapter_id: str
    last_bytes_received: int
    last_bytes_sent: int
    last_sample_time: datetime
    session_bytes_received: int = 0
    session_bytes_sent: int = 0


def compute_delta(current: int, last: int) -> int:
    """Delta between two counter readings with reset handling.

    Examples:
        >>> compute_delta(2000, 1000)
        1000
        >>> compute_delta(1500, 2000)  # reset
        1500
    """
    delta = current - last
    if delta < 0:
        return current
    return delta


class SpeedSampler:
    """Reads counters for every active adapter and emits Samples.

    Loopback adapters are never sampled.
    """

    def __init__(self, source: AdapterCounterSource) -> None:
        self._source = source
        self._states: Dict[str, AdapterSessionState] = {}

    @property
    def tracked_adapters(self) -> List[str]:
        return list(self._states)

    def sample(
        self,
        now: Optional[datetime] = None,
        adapters: Optional[List[AdapterInfo]] = None,
    ) -> List[Sample]:
        """Sample all active adapters once.

        Args:
            now: Timestamp of this tick. Defaults to the current local time.
            adapters: Adapter list to use instead of asking the source again.

        Returns:
            One Sample per adapter that could be read, in enumeration order.
        """
        if now is None:
            now = datetime.now()
        if adapters is None:
            adapters = self._source.list_adapters()

        samples = []
        for adapter in adapters:
            if not adapter.is_active or adapter.is_loopback:
                continue
            sample = self._sample_adapter(adapter.id, now)
            if sample is not None:
                samples.append(sample)
        return samples

    def _sample_adapter(self, adapter_id: str, now: datetime) -> Optional[Sample]:
        try:
            counters = self._source.read_counters(adapter_id)
        except AdapterError as e:
            # Keep the last-known state; the next good read continues from it
            logger.debug(f"Skipping {adapter_id} this tick: {e}")
            return None

        state = self._states.get(adapter_id)
        if state is None:
            self._states[adapter_id] = AdapterSessionState(
                adapter_id=adapter_id,
                last_bytes_received=counters.bytes_received,
                last_bytes_sent=counters.bytes_sent,
                last_sample_time=now,
            )
            logger.debug(f"Baseline for {adapter_id}: rx={counters.bytes_received} tx={counters.bytes_sent}")
            return Sample(
                adapter_id=adapter_id,
                timestamp=now,
                download_bps=0.0,
                upload_bps=0.0,
                session_bytes_received=0,
                session_bytes_sent=0,
            )

        delta_received = compute_delta(counters.bytes_received, state.last_bytes_received)
        delta_sent = compute_delta(counters.bytes_sent, state.last_bytes_sent)
        if counters.bytes_received < state.last_bytes_received or counters.bytes_sent < state.last_bytes_sent:
            logger.info(f"Counter reset detected on {adapter_id}")

        elapsed = (now - state.last_sample_time).total_seconds()
        if elapsed > 0:
            download_bps = max(0.0, delta_received / elapsed)
            upload_bps = max(0.0, delta_sent / elapsed)
        else:
            download_bps = upload_bps = 0.0

        state.last_bytes_received = counters.bytes_received
        state.last_bytes_sent = counters.bytes_sent
        state.last_sample_time = now
        state.session_bytes_received += delta_received
        state.session_bytes_sent += delta_sent

        return Sample(
            adapter_id=adapter_id,
            timestamp=now,
            download_bps=download_bps,
            upload_bps=upload_bps,
            session_bytes_received=state.session_bytes_received,
            session_bytes_sent=state.session_bytes_sent,
            delta_received=delta_received,
            delta_sent=delta_sent,
        )

    def reset(self) -> None:
        """Forget all adapter state. The next sample re-baselines every adapter."""
        self._states.clear()
        logger.debug("Sampler state cleared")


__all__ = ["Sample", "AdapterSessionState", "SpeedSampler", "compute_delta"]
