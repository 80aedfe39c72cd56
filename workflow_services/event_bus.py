"""
workflow_services.event_bus -- in-process publish/subscribe.

Responsibility:
    Fire-and-forget delivery of application events (``state-changed`` from
    the state machine) to any number of subscribers, plus a bounded history
    for debugging.

Invariants enforced:
    - ``publish`` never raises because of a subscriber: sync handler
      exceptions are logged and swallowed; async handlers are scheduled on
      the running loop and their failures are logged when they settle.
    - History is most-recent-first and never exceeds ``history_size``.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.event_bus")

STATE_CHANGED = "state-changed"
WILDCARD = "*"

Handler = Callable[["AppEvent"], Any]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class StateChangedEvent:
    """Payload of ``state-changed``: which record moved, and where."""

    workflow_id: str
    record_id: Any
    from_state: str
    to_state: str
    event: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflowId": self.workflow_id,
            "recordId": self.record_id,
            "from": self.from_state,
            "to": self.to_state,
            "event": self.event,
        }


@dataclass(frozen=True)
class AppEvent:
    type: str
    payload: Any
    timestamp: datetime
    meta: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class EventPublisher(Protocol):
    """What the state machine needs from a bus."""

    def publish(self, event_type: str, payload: Any) -> None: ...


class EventBus:
    """Type-keyed subscriber registry with wildcard listeners."""

    def __init__(self, history_size: int = 100, clock: Clock | None = None) -> None:
        self._handlers: dict[str, list[Handler]] = {}
        self._history: deque[AppEvent] = deque(maxlen=history_size)
        self._clock = clock or SystemClock()
        self._pending: set[asyncio.Task] = set()
        self.enabled = True

    def subscribe(self, event_type: str, handler: Handler) -> Unsubscribe:
        """Register ``handler`` for ``event_type`` (``"*"`` for every event)."""
        handlers = self._handlers.setdefault(event_type, [])
        handlers.append(handler)

        def unsubscribe() -> None:
            current = self._handlers.get(event_type)
            if current and handler in current:
                current.remove(handler)
                if not current:
                    del self._handlers[event_type]

        return unsubscribe

    def subscribe_any(self, handler: Handler) -> Unsubscribe:
        return self.subscribe(WILDCARD, handler)

    def once(self, event_type: str, handler: Handler) -> Unsubscribe:
        """Register a handler that unsubscribes itself after the first event."""

        def wrapper(event: AppEvent) -> Any:
            unsubscribe()
            return handler(event)

        unsubscribe = self.subscribe(event_type, wrapper)
        return unsubscribe

    def publish(self, event_type: str, payload: Any, meta: dict[str, Any] | None = None) -> None:
        if not self.enabled:
            return
        event = AppEvent(
            type=event_type,
            payload=payload,
            timestamp=self._clock.now(),
            meta={**LogContext.get_all(), **(meta or {})},
        )
        self._history.appendleft(event)

        # Snapshot: handlers may unsubscribe while being called.
        for handler in [*self._handlers.get(event_type, ()), *self._handlers.get(WILDCARD, ())]:
            self._safe_call(handler, event)

    @property
    def history(self) -> tuple[AppEvent, ...]:
        """Published events, most recent first."""
        return tuple(self._history)

    def clear_history(self) -> None:
        self._history.clear()

    def handler_count(self, event_type: str | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, ()))
        return sum(len(h) for h in self._handlers.values())

    def clear(self) -> None:
        """Drop all subscribers and history."""
        self._handlers.clear()
        self._history.clear()

    def _safe_call(self, handler: Handler, event: AppEvent) -> None:
        try:
            result = handler(event)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "event_handler_failed",
                extra={"event_type": event.type, "error": str(exc)},
            )
            return
        if inspect.isawaitable(result):
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                # No running loop to deliver to.
                if inspect.iscoroutine(result):
                    result.close()
                logger.warning(
                    "event_handler_not_scheduled",
                    extra={"event_type": event.type},
                )
                return
            task = asyncio.ensure_future(result, loop=loop)
            self._pending.add(task)
            task.add_done_callback(lambda t, et=event.type: self._settle(t, et))

    def _settle(self, task: asyncio.Task, event_type: str) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(
                "event_handler_failed",
                extra={"event_type": event_type, "error": str(exc)},
            )


_default_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Return the process-wide default bus, creating it on first use."""
    global _default_bus
    if _default_bus is None:
        _default_bus = EventBus()
    return _default_bus


def install_event_bus(bus: EventBus) -> EventBus:
    """Make ``bus`` the process-wide default and return it."""
    global _default_bus
    _default_bus = bus
    return bus


def reset_event_bus() -> None:
    """Discard the default bus. FOR TESTING ONLY."""
    global _default_bus
    _default_bus = None
