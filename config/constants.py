"""Centralized constants and configuration for Network Monitor.

This module contains all magic numbers, strings, and configuration values
used by the statistics engine. Centralizing them makes the code easier to
maintain and configure.

Usage:
    from config.constants import INTERVALS, THRESHOLDS, STORAGE

    # Access values
    poll_interval = INTERVALS.POLL_SECONDS
    batch_size = THRESHOLDS.SNAPSHOT_BATCH_SIZE
"""
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Intervals:
    """Time intervals for various operations (in seconds).

    All interval values are in seconds unless otherwise specified.
    """
    # Sampling tick
    POLL_SECONDS: float = 1.0
    MIN_POLL_SECONDS: float = 0.1
    MAX_POLL_SECONDS: float = 60.0

    # Speed snapshot batching
    SNAPSHOT_FLUSH_SECONDS: float = 30.0

    # Bounded waits
    PERSIST_TIMEOUT_SECONDS: float = 2.0
    SHUTDOWN_GRACE_SECONDS: float = 5.0

    # Retention sweep
    CLEANUP_CHECK_SECONDS: float = 3600.0


@dataclass(frozen=True)
class Thresholds:
    """Threshold values for sampling and history."""
    # Speed history batching
    SNAPSHOT_BATCH_SIZE: int = 30

    # Chart rendering budget for downsampled history
    CHART_TARGET_POINTS: int = 300

    # Consecutive persistence failures before reporting degraded state
    STALE_AFTER_FAILURES: int = 1


@dataclass(frozen=True)
class StorageConfig:
    """Storage and file-related configuration."""
    # Directory and file names
    DATA_DIR_NAME: str = ".network-monitor"
    SETTINGS_FILE: str = "settings.json"
    LOG_FILE: str = "network_monitor.log"

    # SQLite database
    DATABASE_FILE: str = "network_monitor.db"

    # Data retention
    RETENTION_DAYS: int = 365
    SNAPSHOT_RETENTION_HOURS: int = 6

    # Automatic cleanup
    CLEANUP_ON_STARTUP: bool = True

    # Log rotation
    LOG_MAX_BYTES: int = 5_000_000  # 5MB
    LOG_BACKUP_COUNT: int = 3


@dataclass(frozen=True)
class AdapterConfig:
    """Adapter selection and classification hints."""
    # Sentinel id of the synthetic "Auto" adapter
    AUTO_ADAPTER_ID: str = "auto"

    LOOPBACK_PREFIXES: Tuple[str, ...] = ("lo",)

    # Name prefixes -> VPN provider label
    VPN_NAME_HINTS: Tuple[Tuple[str, str], ...] = (
        ("wg", "WireGuard"),
        ("wt", "WireGuard"),
        ("nordlynx", "NordVPN"),
        ("tailscale", "Tailscale"),
        ("zt", "ZeroTier"),
        ("tun", "OpenVPN"),
        ("tap", "OpenVPN"),
        ("utun", "VPN"),
        ("ppp", "VPN"),
        ("ipsec", "VPN"),
    )

    # Name fragments -> virtual machine / container label
    VIRTUAL_NAME_HINTS: Tuple[Tuple[str, str], ...] = (
        ("vethernet", "Hyper-V"),
        ("docker", "Docker"),
        ("veth", "Container"),
        ("br-", "Container"),
        ("podman", "Podman"),
        ("virbr", "QEMU/KVM"),
        ("vmnet", "VMware"),
        ("vboxnet", "VirtualBox"),
        ("bridge", "Bridge"),
        ("wsl", "WSL"),
    )


# Global instances - import these
INTERVALS = Intervals()
THRESHOLDS = Thresholds()
STORAGE = StorageConfig()
ADAPTERS = AdapterConfig()
