"""Adapter enumeration and per-adapter byte counters.

The statistics engine never talks to the platform directly. It goes through
an ``AdapterCounterSource``: something that can list the known adapters and
read the cumulative byte counters of one of them. ``PsutilCounterSource`` is
the concrete source backed by psutil.

Counters are expected to be monotonically non-decreasing between resets.
Detecting resets is the sampler's job, not the source's.

Example:
    >>> source = PsutilCounterSource()
    >>> for adapter in source.list_adapters():
    ...     counters = source.read_counters(adapter.id)
    ...     print(adapter.display_name, counters.bytes_received)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional

import psutil

from config import ADAPTERS, AdapterError, get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AdapterInfo:
    """A network adapter as reported by a counter source.

    Attributes:
        id: Stable adapter identifier (interface name on Unix).
        display_name: Friendly name, e.g. "wg0 (WireGuard)".
        is_active: Link is up.
        is_virtual: Virtual machine, container or bridge interface.
        is_vpn: Known VPN tunnel.
        is_loopback: Loopback interface.
    """

    id: str
    display_name: str
    is_active: bool
    is_virtual: bool = False
    is_vpn: bool = False
    is_loopback: bool = False


@dataclass(frozen=True)
class AdapterCounters:
    """Cumulative byte counters of one adapter."""

    bytes_received: int
    bytes_sent: int


class AdapterCounterSource(ABC):
    """Supplies adapter liveness and cumulative byte counters."""

    @abstractmethod
    def list_adapters(self) -> List[AdapterInfo]:
        """Return every known adapter in stable enumeration order."""

    @abstractmethod
    def read_counters(self, adapter_id: str) -> AdapterCounters:
        """Return the current counters of an adapter.

        Raises:
            AdapterError: If the adapter is gone or cannot be read.
        """


def is_loopback_name(name: str) -> bool:
    """Check whether an interface name denotes loopback."""
    lowered = name.lower()
    return "loopback" in lowered or any(
        lowered.startswith(prefix) for prefix in ADAPTERS.LOOPBACK_PREFIXES
    )


def detect_vpn_provider(name: str) -> Optional[str]:
    """Return the VPN provider label for an interface name, if it is a known tunnel.

    Examples:
        >>> detect_vpn_provider("wg0")
        'WireGuard'
        >>> detect_vpn_provider("eth0") is None
        True
    """
    lowered = name.lower()
    for prefix, provider in ADAPTERS.VPN_NAME_HINTS:
        if lowered.startswith(prefix):
            return provider
    return None


def detect_virtual_kind(name: str) -> Optional[str]:
    """Return a label for virtual machine / container interfaces."""
    lowered = name.lower()
    for fragment, kind in ADAPTERS.VIRTUAL_NAME_HINTS:
        if fragment in lowered:
            return kind
    return None


def make_display_name(name: str) -> str:
    """Build the user-facing adapter name.

    Known VPNs are tagged with their provider, virtual interfaces with their kind.

    Examples:
        >>> make_display_name("wg0")
        'wg0 (WireGuard)'
        >>> make_display_name("en0")
        'en0'
    """
    label = detect_vpn_provider(name) or detect_virtual_kind(name)
    return f"{name} ({label})" if label else name


def classify_adapter(name: str, is_active: bool) -> AdapterInfo:
    """Create an AdapterInfo for an interface name using the naming heuristics."""
    vpn = detect_vpn_provider(name) is not None
    return AdapterInfo(
        id=name,
        display_name=make_display_name(name),
        is_active=is_active,
        is_virtual=not vpn and detect_virtual_kind(name) is not None,
        is_vpn=vpn,
        is_loopback=is_loopback_name(name),
    )


class PsutilCounterSource(AdapterCounterSource):
    """Counter source backed by ``psutil.net_io_counters(pernic=True)``.

    Link state comes from ``psutil.net_if_stats()``. An interface without
    stats is reported as inactive.
    """

    def list_adapters(self) -> List[AdapterInfo]:
        try:
            counters = psutil.net_io_counters(pernic=True)
            stats = psutil.net_if_stats()
        except (OSError, RuntimeError) as e:
            logger.warning(f"Could not enumerate adapters: {e}")
            return []

        adapters = []
        for name in counters:
            if_stats = stats.get(name)
            is_up = bool(if_stats and if_stats.isup)
            adapters.append(classify_adapter(name, is_up))
        return adapters

    def read_counters(self, adapter_id: str) -> AdapterCounters:
        try:
            counters: Dict = psutil.net_io_counters(pernic=True)
        except (OSError, RuntimeError) as e:
            raise AdapterError("Failed to read adapter counters", {"adapter_id": adapter_id}) from e

        nic = counters.get(adapter_id)
        if nic is None:
            raise AdapterError("Adapter not found", {"adapter_id": adapter_id})
        return AdapterCounters(bytes_received=nic.bytes_recv, bytes_sent=nic.bytes_sent)


__all__ = [
    "AdapterInfo",
    "AdapterCounters",
    "AdapterCounterSource",
    "PsutilCounterSource",
    "classify_adapter",
    "detect_vpn_provider",
    "detect_virtual_kind",
    "is_loopback_name",
    "make_display_name",
]
