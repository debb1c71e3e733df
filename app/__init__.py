"""Application module for Network Monitor.

Contains the engine orchestration components:
- EventBus: Internal event communication
- AppController: Tick orchestration with DI
- PollingTimer: Periodic tick driver that skips overrun ticks
"""

from app.controller import AppController
from app.dependencies import AppDependencies, create_dependencies
from app.events import Event, EventBus, EventType
from app.timer import PollingTimer

__all__ = [
    "AppController",
    "AppDependencies",
    "Event",
    "EventBus",
    "EventType",
    "PollingTimer",
    "create_dependencies",
]
