"""Custom exception hierarchy for Network Monitor.

Provides specific exceptions for different error categories,
enabling better error handling and debugging.
"""

from typing import Optional


class NetworkMonitorError(Exception):
    """Base exception for all Network Monitor errors.

    All custom exceptions in this application should inherit from this class.
    This allows catching all application-specific errors with a single except clause.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class AdapterError(NetworkMonitorError):
    """Adapter counter read errors.

    Raised by counter sources when:
    - An adapter disappears between enumeration and the counter read
    - The platform refuses access to interface statistics

    The sampler treats this as a transient failure and skips the adapter
    for the current tick.

    Examples:
        >>> raise AdapterError("Adapter vanished mid-poll", {"adapter_id": "eth0"})
    """

    pass


class StorageError(NetworkMonitorError):
    """Data persistence errors.

    Raised when there are issues with:
    - Database operations
    - Reading/writing settings files
    - File permissions
    - Backups and exports

    Examples:
        >>> raise StorageError("Failed to upsert hourly usage", {"adapter_id": "eth0"})
    """

    pass


class PersistenceTimeoutError(StorageError):
    """A persistence call did not finish within its bounded timeout.

    Attributes:
        timeout: The timeout that elapsed, in seconds.
    """

    def __init__(self, message: str, timeout: float, details: Optional[dict] = None):
        details = details or {}
        details["timeout"] = timeout
        super().__init__(message, details)
        self.timeout = timeout


class ConfigurationError(NetworkMonitorError):
    """Settings and configuration errors.

    Raised when there are issues with:
    - Invalid configuration values
    - Configuration file parsing

    Examples:
        >>> raise ConfigurationError("Invalid polling interval", {"value": -10})
    """

    pass
