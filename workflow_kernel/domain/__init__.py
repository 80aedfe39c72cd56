"""
Pure domain layer.

Workflow value objects, the visualization exporter and the clock
abstraction.  No dependencies on services, configuration or I/O.
"""

from workflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from workflow_kernel.domain.visualization import (
    MachineVisualization,
    StateNode,
    TransitionEdge,
    to_graph,
    to_visualization,
)
from workflow_kernel.domain.workflow import (
    GENERIC_FAILURE_MESSAGE,
    MachineDefinition,
    MachineEvent,
    MachineSnapshot,
    StateDefinition,
    TransitionDefinition,
    TransitionResult,
    get_field,
    merge_context,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "GENERIC_FAILURE_MESSAGE",
    "MachineDefinition",
    "MachineEvent",
    "MachineSnapshot",
    "MachineVisualization",
    "StateDefinition",
    "StateNode",
    "SystemClock",
    "TransitionDefinition",
    "TransitionEdge",
    "TransitionResult",
    "get_field",
    "merge_context",
    "to_graph",
    "to_visualization",
]
