"""Pytest configuration and shared fixtures.

This module provides:
- Common test fixtures for data directories, stores and counter sources
- Pytest markers for test categorization (unit, integration, slow)
"""
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock, patch

import pytest

from tests.mocks import MockCounterSource


# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: mark test as a unit test (fast, isolated)")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# =============================================================================
# Directory and Path Fixtures
# =============================================================================


@pytest.fixture
def temp_data_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test data."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# =============================================================================
# Time Fixtures
# =============================================================================


@pytest.fixture
def base_time() -> datetime:
    """A fixed tick time in the middle of an hour, today."""
    return datetime.now().replace(hour=10, minute=15, second=0, microsecond=0)


# =============================================================================
# Mock Fixtures
# =============================================================================


@pytest.fixture
def counter_source() -> MockCounterSource:
    """Scriptable counter source with eth0 and wifi0 up."""
    source = MockCounterSource()
    source.add_adapter("eth0")
    source.add_adapter("wifi0")
    return source


@pytest.fixture
def mock_psutil() -> Generator[MagicMock, None, None]:
    """Mock psutil per-NIC counters and link state."""
    with patch("psutil.net_io_counters") as mock_io, patch("psutil.net_if_stats") as mock_stats:
        mock_io.return_value = {
            "lo": MagicMock(bytes_recv=100, bytes_sent=100),
            "en0": MagicMock(bytes_recv=5000000, bytes_sent=1000000),
            "wg0": MagicMock(bytes_recv=2000, bytes_sent=1000),
            "docker0": MagicMock(bytes_recv=0, bytes_sent=0),
        }
        mock_stats.return_value = {
            "lo": MagicMock(isup=True),
            "en0": MagicMock(isup=True),
            "wg0": MagicMock(isup=True),
            "docker0": MagicMock(isup=False),
        }
        yield mock_io


# =============================================================================
# Event Bus Fixtures
# =============================================================================


@pytest.fixture
def mock_event_bus() -> MagicMock:
    """Create a mock event bus for testing event-driven components."""
    mock_bus = MagicMock()
    mock_bus.publish = MagicMock()
    mock_bus.subscribe = MagicMock()
    mock_bus.unsubscribe = MagicMock()
    return mock_bus


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def store(temp_data_dir: Path):
    """Create a real SQLite store in a temporary directory."""
    from storage.sqlite_store import SQLiteStore

    return SQLiteStore(data_dir=temp_data_dir)


@pytest.fixture
def integration_data_dir(tmp_path: Path) -> Path:
    """Create a complete data directory structure for integration tests."""
    data_dir = tmp_path / ".network-monitor"
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir
