"""
workflow_services.binding -- adapter for UI/view code.

Wraps a ``MachineInstance`` with the reads a document view needs
(state, label, description, available events), a ``send()`` that also
remembers the last error for display, and change listeners so views can
re-render after a transition or context update.  No business rules live
here.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from workflow_config.schema import EngineSettings
from workflow_kernel.domain.visualization import MachineVisualization
from workflow_kernel.domain.workflow import (
    MachineDefinition,
    MachineEvent,
    MachineSnapshot,
    TransitionResult,
)
from workflow_kernel.logging_config import get_logger
from workflow_services.event_bus import EventPublisher
from workflow_services.state_machine import MachineInstance

logger = get_logger("services.binding")

Listener = Callable[[MachineSnapshot], None]


class WorkflowBinding:
    """View-facing wrapper around one machine instance."""

    def __init__(self, machine: MachineInstance) -> None:
        self.machine = machine
        self.last_error: str | None = None
        self.last_result: TransitionResult | None = None
        self._listeners: list[Listener] = []

    @classmethod
    def create(
        cls,
        definition: MachineDefinition,
        context_overrides: Mapping[str, Any] | None = None,
        *,
        event_bus: EventPublisher | None = None,
        settings: EngineSettings | None = None,
    ) -> "WorkflowBinding":
        return cls(
            MachineInstance(
                definition,
                context_overrides,
                event_bus=event_bus,
                settings=settings,
            )
        )

    # Reads

    @property
    def current_state(self) -> str:
        return self.machine.value

    @property
    def context(self) -> Any:
        return self.machine.context

    @property
    def is_done(self) -> bool:
        return self.machine.done

    @property
    def is_transitioning(self) -> bool:
        return self.machine.is_transitioning

    @property
    def state_label(self) -> str:
        return self.machine.state_definition.label

    @property
    def state_description(self) -> str | None:
        return self.machine.state_definition.description

    @property
    def available_events(self) -> list[str]:
        return self.machine.available_events()

    @property
    def visualization(self) -> MachineVisualization:
        return self.machine.to_visualization()

    def can(self, event: str, payload: Mapping[str, Any] | None = None) -> bool:
        return self.machine.can_transition(event, payload)

    # Writes

    async def send(
        self,
        event: str | MachineEvent,
        payload: Mapping[str, Any] | None = None,
    ) -> TransitionResult:
        """Run a transition; on failure keep a display-ready message in ``last_error``."""
        self.last_error = None
        result = await self.machine.transition(event, payload)
        self.last_result = result
        if not result.success:
            self.last_error = result.display_message
        self._notify()
        return result

    def set_context(self, updates: Mapping[str, Any]) -> None:
        self.machine.update_context(updates)
        self._notify()

    def reset(self, context_overrides: Mapping[str, Any] | None = None) -> None:
        self.machine.reset(context_overrides)
        self.last_error = None
        self.last_result = None
        self._notify()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with a fresh snapshot after every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.machine.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "binding_listener_failed",
                    extra={
                        "workflow": self.machine.workflow_id,
                        "state": snapshot.value,
                        "error": str(exc),
                    },
                )
