"""Tests for settings management."""
import json

import pytest

from config.exceptions import ConfigurationError
from monitor.utils import SpeedUnit
from storage.settings import AppSettings, SettingsManager, clamp_poll_interval_ms


class TestClampPollInterval:
    """Tests for the polling interval clamp."""

    @pytest.mark.parametrize("value,expected", [
        (50, 100),
        (100, 100),
        (1000, 1000),
        (60000, 60000),
        (120000, 60000),
        (-5, 100),
        ("250", 250),
        ("fast", 1000),
        (None, 1000),
    ])
    def test_clamp(self, value, expected):
        """Intervals are clamped to 100 ms .. 60 s; garbage gets the default."""
        assert clamp_poll_interval_ms(value) == expected


class TestAppSettings:
    """Tests for AppSettings dataclass."""

    def test_default_values(self):
        """Test default settings values."""
        settings = AppSettings()
        assert settings.poll_interval_ms == 1000
        assert settings.selected_adapter_id == "auto"
        assert settings.data_retention_days == 365
        assert settings.snapshot_retention_hours == 6
        assert settings.speed_unit == "bytes"
        assert settings.poll_interval_seconds == 1.0

    def test_to_dict(self):
        """Test converting settings to dict."""
        data = AppSettings(selected_adapter_id="eth0").to_dict()
        assert data["selected_adapter_id"] == "eth0"
        assert "poll_interval_ms" in data

    def test_from_dict_repairs_values(self):
        """Test that invalid stored values are repaired on load."""
        settings = AppSettings.from_dict({
            "poll_interval_ms": 10,
            "selected_adapter_id": "",
            "data_retention_days": "many",
            "snapshot_retention_hours": 0,
            "speed_unit": "furlongs",
        })

        assert settings.poll_interval_ms == 100
        assert settings.selected_adapter_id == "auto"
        assert settings.data_retention_days == 365
        assert settings.snapshot_retention_hours == 1
        assert settings.speed_unit == "bytes"

    def test_from_dict_ignores_unknown_keys(self):
        """Test that keys from other versions are ignored."""
        settings = AppSettings.from_dict({"title_display": "latency", "speed_unit": "bits"})
        assert settings.speed_unit == "bits"


class TestSettingsManager:
    """Tests for SettingsManager class."""

    @pytest.fixture
    def settings_manager(self, temp_data_dir):
        """Create a SettingsManager with temp directory."""
        return SettingsManager(temp_data_dir)

    def test_defaults_without_file(self, settings_manager):
        """Test that a missing file gives the defaults."""
        assert settings_manager.get_poll_interval_ms() == 1000
        assert settings_manager.get_selected_adapter_id() == "auto"

    def test_set_poll_interval_clamps_and_persists(self, settings_manager, temp_data_dir):
        """Test that the stored interval is clamped and survives a reload."""
        assert settings_manager.set_poll_interval_ms(20) == 100

        reloaded = SettingsManager(temp_data_dir)
        assert reloaded.get_poll_interval_ms() == 100

    def test_selected_adapter_persists(self, settings_manager, temp_data_dir):
        """Test that a pinned adapter survives a reload."""
        settings_manager.set_selected_adapter_id("wifi0")
        assert SettingsManager(temp_data_dir).get_selected_adapter_id() == "wifi0"

        settings_manager.set_selected_adapter_id(None)
        assert SettingsManager(temp_data_dir).get_selected_adapter_id() == "auto"

    def test_retention_days(self, settings_manager):
        """Test that retention can be changed, including disabling it."""
        settings_manager.set_retention_days(0)
        assert settings_manager.get_retention_days() == 0

    def test_speed_unit(self, settings_manager):
        """Test setting the speed unit by enum or stored name."""
        settings_manager.set_speed_unit(SpeedUnit.BITS_PER_SECOND)
        assert settings_manager.get_speed_unit() is SpeedUnit.BITS_PER_SECOND

        settings_manager.set_speed_unit("bytes")
        assert settings_manager.get_speed_unit() is SpeedUnit.BYTES_PER_SECOND

    def test_invalid_speed_unit_rejected(self, settings_manager):
        """Test that an unknown unit raises ConfigurationError."""
        with pytest.raises(ConfigurationError):
            settings_manager.set_speed_unit("furlongs")

    def test_corrupt_file_uses_defaults(self, temp_data_dir):
        """Test that an unreadable settings file falls back to defaults."""
        (temp_data_dir / "settings.json").write_text("{not json")

        manager = SettingsManager(temp_data_dir)

        assert manager.get_poll_interval_ms() == 1000

    def test_non_object_file_uses_defaults(self, temp_data_dir):
        """Test that a JSON file without an object root falls back to defaults."""
        (temp_data_dir / "settings.json").write_text(json.dumps([1, 2, 3]))

        assert SettingsManager(temp_data_dir).get_selected_adapter_id() == "auto"

    def test_get_settings_returns_copy(self, settings_manager):
        """Test that callers cannot mutate the live settings."""
        copy = settings_manager.get_settings()
        copy.poll_interval_ms = 5

        assert settings_manager.get_poll_interval_ms() == 1000
