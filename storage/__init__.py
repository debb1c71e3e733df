"""Data persistence components."""

from .history import SpeedHistoryStore
from .settings import AppSettings, SettingsManager, get_settings_manager
from .sqlite_store import DailyUsage, HourlyUsage, SpeedSnapshot, SQLiteStore

__all__ = [
    "AppSettings",
    "DailyUsage",
    "HourlyUsage",
    "SQLiteStore",
    "SettingsManager",
    "SpeedHistoryStore",
    "SpeedSnapshot",
    "get_settings_manager",
]
