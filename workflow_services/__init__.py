"""
Workflow services: the state machine engine and its collaborators.

The engine (``MachineInstance``) executes transitions against a kernel
``MachineDefinition``; the event bus, notifier and binding adapter are the
seams it talks to.
"""

from workflow_services.binding import WorkflowBinding
from workflow_services.event_bus import (
    STATE_CHANGED,
    AppEvent,
    EventBus,
    EventPublisher,
    StateChangedEvent,
    get_event_bus,
    install_event_bus,
    reset_event_bus,
)
from workflow_services.notifications import (
    CompositeNotifier,
    LoggingNotifier,
    NotificationLevel,
    Notifier,
)
from workflow_services.runtime import init_engine
from workflow_services.state_machine import MachineInstance

__all__ = [
    "AppEvent",
    "CompositeNotifier",
    "EventBus",
    "EventPublisher",
    "LoggingNotifier",
    "MachineInstance",
    "NotificationLevel",
    "Notifier",
    "STATE_CHANGED",
    "StateChangedEvent",
    "WorkflowBinding",
    "get_event_bus",
    "init_engine",
    "install_event_bus",
    "reset_event_bus",
]
