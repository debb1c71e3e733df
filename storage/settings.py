"""Settings management for Network Monitor."""
import json
import threading
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, Optional

from config import ADAPTERS, INTERVALS, STORAGE, get_logger
from config.exceptions import ConfigurationError
from monitor.utils import SpeedUnit

logger = get_logger(__name__)

MIN_POLL_INTERVAL_MS = int(INTERVALS.MIN_POLL_SECONDS * 1000)
MAX_POLL_INTERVAL_MS = int(INTERVALS.MAX_POLL_SECONDS * 1000)


def clamp_poll_interval_ms(value: Any) -> int:
    """Clamp a polling interval to 100 ms .. 60 s. Unparseable values get the default."""
    try:
        ms = int(value)
    except (TypeError, ValueError):
        return int(INTERVALS.POLL_SECONDS * 1000)
    return max(MIN_POLL_INTERVAL_MS, min(MAX_POLL_INTERVAL_MS, ms))


@dataclass
class AppSettings:
    """User-tunable settings of the statistics engine."""
    poll_interval_ms: int = int(INTERVALS.POLL_SECONDS * 1000)
    selected_adapter_id: str = ADAPTERS.AUTO_ADAPTER_ID
    data_retention_days: int = STORAGE.RETENTION_DAYS
    snapshot_retention_hours: int = STORAGE.SNAPSHOT_RETENTION_HOURS
    speed_unit: str = SpeedUnit.BYTES_PER_SECOND.value

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000.0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'AppSettings':
        """Build settings from stored data, repairing invalid values."""
        defaults = cls()

        speed_unit = data.get("speed_unit", defaults.speed_unit)
        if speed_unit not in {u.value for u in SpeedUnit}:
            logger.warning(f"Unknown speed unit {speed_unit!r}, using bytes per second")
            speed_unit = SpeedUnit.BYTES_PER_SECOND.value

        try:
            retention = int(data.get("data_retention_days", defaults.data_retention_days))
        except (TypeError, ValueError):
            retention = defaults.data_retention_days

        try:
            snapshot_hours = int(data.get("snapshot_retention_hours", defaults.snapshot_retention_hours))
        except (TypeError, ValueError):
            snapshot_hours = defaults.snapshot_retention_hours

        return cls(
            poll_interval_ms=clamp_poll_interval_ms(
                data.get("poll_interval_ms", defaults.poll_interval_ms)
            ),
            selected_adapter_id=data.get("selected_adapter_id") or ADAPTERS.AUTO_ADAPTER_ID,
            data_retention_days=retention,
            snapshot_retention_hours=max(1, snapshot_hours),
            speed_unit=speed_unit,
        )


class SettingsManager:
    """Loads and saves AppSettings as JSON in the data directory."""

    DEFAULT_SETTINGS_FILE = STORAGE.SETTINGS_FILE

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.settings_file = self.data_dir / self.DEFAULT_SETTINGS_FILE
        self._lock = threading.Lock()
        self._settings: AppSettings = AppSettings()
        self._load()

    def _load(self) -> None:
        """Load settings from file."""
        if not self.settings_file.exists():
            self._settings = AppSettings()
            return
        try:
            with open(self.settings_file, 'r') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("settings root must be an object")
            self._settings = AppSettings.from_dict(data)
        except (json.JSONDecodeError, OSError, ValueError) as e:
            logger.warning(f"Could not load settings, using defaults: {e}")
            self._settings = AppSettings()

    def _save(self) -> None:
        """Save settings to file."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with open(self.settings_file, 'w') as f:
                json.dump(self._settings.to_dict(), f, indent=2)
        except OSError as e:
            logger.error(f"Error saving settings: {e}")

    def get_settings(self) -> AppSettings:
        """Copy of the current settings."""
        with self._lock:
            return replace(self._settings)

    # === Polling ===

    def get_poll_interval_ms(self) -> int:
        return self._settings.poll_interval_ms

    def set_poll_interval_ms(self, value: int) -> int:
        """Set the polling interval, clamped to the allowed range.

        Returns:
            The interval actually stored.
        """
        clamped = clamp_poll_interval_ms(value)
        if clamped != value:
            logger.info(f"Poll interval {value}ms clamped to {clamped}ms")
        with self._lock:
            self._settings.poll_interval_ms = clamped
            self._save()
        return clamped

    # === Adapter selection ===

    def get_selected_adapter_id(self) -> str:
        return self._settings.selected_adapter_id

    def set_selected_adapter_id(self, adapter_id: Optional[str]) -> None:
        """Pin an adapter; empty or None selects Auto."""
        with self._lock:
            self._settings.selected_adapter_id = adapter_id or ADAPTERS.AUTO_ADAPTER_ID
            self._save()

    # === Retention ===

    def get_retention_days(self) -> int:
        return self._settings.data_retention_days

    def set_retention_days(self, days: int) -> None:
        """Set aggregate retention. Zero or negative disables cleanup."""
        with self._lock:
            self._settings.data_retention_days = int(days)
            self._save()

    def get_snapshot_retention_hours(self) -> int:
        return self._settings.snapshot_retention_hours

    # === Display ===

    def get_speed_unit(self) -> SpeedUnit:
        return SpeedUnit.parse(self._settings.speed_unit)

    def set_speed_unit(self, unit) -> None:
        """Set the display unit from a SpeedUnit or its stored name.

        Raises:
            ConfigurationError: If ``unit`` is not a known speed unit.
        """
        if not isinstance(unit, SpeedUnit):
            try:
                unit = SpeedUnit(unit)
            except ValueError:
                raise ConfigurationError("Invalid speed unit", {"value": unit})
        with self._lock:
            self._settings.speed_unit = unit.value
            self._save()


def get_settings_manager(data_dir: Optional[Path] = None) -> SettingsManager:
    """Create a settings manager for the default data directory."""
    if data_dir is None:
        data_dir = Path.home() / STORAGE.DATA_DIR_NAME
    return SettingsManager(data_dir)
