"""
Visualization export for machine definitions.

Pure transform: a definition (and optionally the live state name) becomes
a plain data structure an external renderer can turn into any diagram
notation.  Output order follows the definition's declared order, so the
same input always yields the same output.  Cycles need no special
handling because edges are listed, never traversed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from workflow_kernel.domain.workflow import MachineDefinition


@dataclass(frozen=True)
class StateNode:
    name: str
    label: str
    final: bool


@dataclass(frozen=True)
class TransitionEdge:
    from_state: str
    to_state: str
    event: str


@dataclass(frozen=True)
class MachineVisualization:
    id: str
    states: tuple[StateNode, ...]
    transitions: tuple[TransitionEdge, ...]
    current_state: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "states": [
                {"name": s.name, "label": s.label, "final": s.final}
                for s in self.states
            ],
            "transitions": [
                {"from": t.from_state, "to": t.to_state, "event": t.event}
                for t in self.transitions
            ],
        }
        if self.current_state is not None:
            data["currentState"] = self.current_state
        return data


def to_visualization(
    definition: MachineDefinition,
    current_state: str | None = None,
) -> MachineVisualization:
    """Export ``definition`` as nodes and edges.

    Multi-candidate events contribute one edge per distinct target; two
    candidates with the same target collapse into one edge.
    """
    states = tuple(
        StateNode(name=name, label=state.label, final=state.final)
        for name, state in definition.states.items()
    )

    edges: list[TransitionEdge] = []
    seen: set[tuple[str, str, str]] = set()
    for from_state, event, target in definition.iter_edges():
        key = (from_state, target, event)
        if key in seen:
            continue
        seen.add(key)
        edges.append(TransitionEdge(from_state=from_state, to_state=target, event=event))

    return MachineVisualization(
        id=definition.id,
        states=states,
        transitions=tuple(edges),
        current_state=current_state,
    )


def to_graph(viz: MachineVisualization) -> dict[str, list[dict[str, Any]]]:
    """Flatten a visualization into generic ``nodes``/``edges`` lists."""
    return {
        "nodes": [
            {
                "id": s.name,
                "label": s.label,
                "final": s.final,
                "current": s.name == viz.current_state,
            }
            for s in viz.states
        ],
        "edges": [
            {"from": t.from_state, "to": t.to_state, "label": t.event}
            for t in viz.transitions
        ],
    }
