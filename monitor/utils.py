"""Shared formatting helpers.

The speed unit (bytes or bits per second) is always passed explicitly;
nothing in the sampling or aggregation code reads a display preference.
``format_speed_default`` is a convenience wrapper for callers that just
want the default unit.

Example:
    >>> from monitor.utils import SpeedUnit, format_bytes, format_speed
    >>> format_bytes(1500000)
    '1.4 MB'
    >>> format_speed(125000, SpeedUnit.BITS_PER_SECOND)
    '1.0 Mbps'
"""

from __future__ import annotations

from enum import Enum
from typing import Union

# Type alias for numeric values
NumericValue = Union[int, float]


class SpeedUnit(Enum):
    """How speeds are displayed."""
    BYTES_PER_SECOND = "bytes"
    BITS_PER_SECOND = "bits"

    @classmethod
    def parse(cls, value: str) -> "SpeedUnit":
        """Parse a stored unit name, falling back to bytes per second."""
        try:
            return cls(value)
        except ValueError:
            return cls.BYTES_PER_SECOND


DEFAULT_SPEED_UNIT = SpeedUnit.BYTES_PER_SECOND


def format_bytes(bytes_value: NumericValue, speed: bool = False) -> str:
    """Format bytes to human-readable string.

    Uses 1024 as the base for conversion.

    Args:
        bytes_value: The number of bytes to format.
        speed: If True, append '/s' suffix for speed display.

    Examples:
        >>> format_bytes(0)
        '0 B'
        >>> format_bytes(1024)
        '1.0 KB'
        >>> format_bytes(1500000, speed=True)
        '1.4 MB/s'
    """
    suffix = "/s" if speed else ""
    if bytes_value == 0:
        return f"0 B{suffix}"

    value = float(bytes_value)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if abs(value) < 1024.0:
            return f"{value:.1f} {unit}{suffix}"
        value /= 1024.0
    return f"{value:.1f} PB{suffix}"


def format_bits(bits_value: NumericValue) -> str:
    """Format a bit rate with decimal (1000-based) units.

    Examples:
        >>> format_bits(0)
        '0 bps'
        >>> format_bits(1_500_000)
        '1.5 Mbps'
    """
    if bits_value == 0:
        return "0 bps"

    value = float(bits_value)
    for unit in ["bps", "Kbps", "Mbps", "Gbps"]:
        if abs(value) < 1000.0:
            return f"{value:.1f} {unit}"
        value /= 1000.0
    return f"{value:.1f} Tbps"


def format_speed(bytes_per_second: NumericValue, unit: SpeedUnit) -> str:
    """Format a speed given in bytes per second in the requested unit."""
    if unit is SpeedUnit.BITS_PER_SECOND:
        return format_bits(bytes_per_second * 8)
    return format_bytes(bytes_per_second, speed=True)


def format_speed_default(bytes_per_second: NumericValue) -> str:
    """format_speed with DEFAULT_SPEED_UNIT."""
    return format_speed(bytes_per_second, DEFAULT_SPEED_UNIT)


__all__ = [
    "NumericValue",
    "SpeedUnit",
    "DEFAULT_SPEED_UNIT",
    "format_bits",
    "format_bytes",
    "format_speed",
    "format_speed_default",
]
