"""Configuration module for Network Monitor.

Provides centralized configuration, logging and exceptions.
"""
from config.constants import (
    ADAPTERS,
    INTERVALS,
    STORAGE,
    THRESHOLDS,
    AdapterConfig,
    Intervals,
    StorageConfig,
    Thresholds,
)
from config.exceptions import (
    AdapterError,
    ConfigurationError,
    NetworkMonitorError,
    PersistenceTimeoutError,
    StorageError,
)
from config.logging_config import LogContext, get_logger, log_exception, setup_logging

__all__ = [
    # Constants
    "INTERVALS",
    "THRESHOLDS",
    "STORAGE",
    "ADAPTERS",
    "Intervals",
    "Thresholds",
    "StorageConfig",
    "AdapterConfig",
    # Exceptions
    "NetworkMonitorError",
    "AdapterError",
    "StorageError",
    "PersistenceTimeoutError",
    "ConfigurationError",
    # Logging
    "setup_logging",
    "get_logger",
    "log_exception",
    "LogContext",
]
