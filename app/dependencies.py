"""Dependency injection container for Network Monitor.

Provides a centralized way to create and wire the statistics engine's
components, making them easy to test and swap out.

Usage:
    from app.dependencies import create_dependencies

    deps = create_dependencies()
    deps.sampler.sample()
    deps.store.get_today_usage()
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from config import STORAGE, get_logger

logger = get_logger(__name__)


@dataclass
class AppDependencies:
    """Container for all engine dependencies.

    Each field is a component that can be replaced in tests.
    """

    # Sampling
    source: "AdapterCounterSource"
    sampler: "SpeedSampler"
    resolver: "AdapterResolver"

    # Aggregation and history
    aggregation: "AggregationEngine"
    history: "SpeedHistoryStore"

    # Storage
    store: "SQLiteStore"
    settings: "SettingsManager"

    # Event bus (optional, can be shared)
    event_bus: Optional["EventBus"] = None

    def __post_init__(self):
        logger.debug("AppDependencies container created")


def create_dependencies(
    data_dir: Optional[Path] = None,
    event_bus: Optional["EventBus"] = None,
    source: Optional["AdapterCounterSource"] = None,
) -> AppDependencies:
    """Create all engine dependencies.

    Args:
        data_dir: Override the default data directory.
        event_bus: Provide an existing event bus, or the global one is used.
        source: Counter source to sample. Defaults to psutil.

    Returns:
        AppDependencies container with all components.
    """
    # Import here to avoid circular imports
    from app.events import get_event_bus
    from monitor.adapters import PsutilCounterSource
    from monitor.aggregation import AggregationEngine
    from monitor.resolver import AdapterResolver
    from monitor.sampler import SpeedSampler
    from storage.history import SpeedHistoryStore
    from storage.settings import get_settings_manager
    from storage.sqlite_store import SQLiteStore

    logger.info("Creating engine dependencies...")

    if data_dir is None:
        data_dir = Path.home() / STORAGE.DATA_DIR_NAME

    # Storage first, the engine writes through it
    store = SQLiteStore(data_dir=data_dir)
    settings = get_settings_manager(data_dir)

    if source is None:
        source = PsutilCounterSource()

    if event_bus is None:
        event_bus = get_event_bus()

    deps = AppDependencies(
        source=source,
        sampler=SpeedSampler(source),
        resolver=AdapterResolver(settings.get_selected_adapter_id()),
        aggregation=AggregationEngine(store),
        history=SpeedHistoryStore(store),
        store=store,
        settings=settings,
        event_bus=event_bus,
    )

    logger.info("All dependencies created successfully")
    return deps


def create_mock_dependencies(data_dir: Path) -> AppDependencies:
    """Create dependencies for testing.

    Counters come from a scriptable mock source and settings never touch
    disk. The store is a real SQLiteStore in ``data_dir``.

    Args:
        data_dir: Directory for the test database.

    Returns:
        AppDependencies with mock implementations.
    """
    from app.events import EventBus
    from monitor.aggregation import AggregationEngine
    from monitor.resolver import AdapterResolver
    from monitor.sampler import SpeedSampler
    from storage.history import SpeedHistoryStore
    from storage.sqlite_store import SQLiteStore
    from tests.mocks import MockCounterSource, MockSettingsManager

    logger.debug("Creating mock dependencies for testing")

    source = MockCounterSource()
    store = SQLiteStore(data_dir=data_dir)
    settings = MockSettingsManager()

    return AppDependencies(
        source=source,
        sampler=SpeedSampler(source),
        resolver=AdapterResolver(settings.get_selected_adapter_id()),
        aggregation=AggregationEngine(store),
        history=SpeedHistoryStore(store),
        store=store,
        settings=settings,
        event_bus=EventBus(async_mode=False),
    )
