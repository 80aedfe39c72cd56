"""
Document workflow modules.

Each module declares one document type's lifecycle as a
``MachineDefinition``.  ``WORKFLOWS`` maps workflow ids to the default
definitions; ``create_machine`` opens an instance for one record.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from workflow_config import current_settings
from workflow_config.schema import EngineSettings
from workflow_kernel.domain.workflow import MachineDefinition
from workflow_services.event_bus import EventPublisher
from workflow_services.state_machine import MachineInstance
from workflow_modules.invoice import INVOICE_WORKFLOW
from workflow_modules.purchase_order import PURCHASE_ORDER_WORKFLOW
from workflow_modules.quotation import QUOTATION_WORKFLOW

WORKFLOWS: dict[str, MachineDefinition] = {
    QUOTATION_WORKFLOW.id: QUOTATION_WORKFLOW,
    INVOICE_WORKFLOW.id: INVOICE_WORKFLOW,
    PURCHASE_ORDER_WORKFLOW.id: PURCHASE_ORDER_WORKFLOW,
}


def get_workflow(workflow_id: str) -> MachineDefinition:
    """Look up a default definition by id.

    Raises:
        KeyError: unknown workflow id.
    """
    try:
        return WORKFLOWS[workflow_id]
    except KeyError:
        raise KeyError(
            f"Unknown workflow '{workflow_id}'; known: {', '.join(sorted(WORKFLOWS))}"
        ) from None


def create_machine(
    workflow_id: str,
    context: Mapping[str, Any] | None = None,
    *,
    definition: MachineDefinition | None = None,
    event_bus: EventPublisher | None = None,
    settings: EngineSettings | None = None,
) -> MachineInstance:
    """Open a machine for one document record.

    ``context`` holds the record fields to seed the instance with.
    ``definition`` replaces the default one, e.g. a definition built with a
    specific notifier or clock.  Settings come from
    ``current_settings()`` (loaded once per process) unless given.
    """
    return MachineInstance(
        definition or get_workflow(workflow_id),
        context,
        event_bus=event_bus,
        settings=settings or current_settings(),
    )


__all__ = ["WORKFLOWS", "create_machine", "get_workflow"]
