"""Visualization export: declared order, deduped edges, optional current state."""

from workflow_kernel.domain.visualization import to_graph, to_visualization
from workflow_kernel.domain.workflow import (
    MachineDefinition,
    StateDefinition,
    TransitionDefinition,
)
from workflow_modules.invoice import INVOICE_WORKFLOW


def _cyclic_definition() -> MachineDefinition:
    return MachineDefinition(
        id="cycle",
        initial="a",
        context={},
        states={
            "a": StateDefinition(label="A", on={"NEXT": "b"}),
            "b": StateDefinition(label="B", on={
                "BACK": "a",
                "SPLIT": [
                    TransitionDefinition(target="c", guard=lambda ctx, event: True),
                    TransitionDefinition(target="c"),
                    "a",
                ],
            }),
            "c": StateDefinition(label="C", final=True),
        },
    )


class TestToVisualization:

    def test_states_in_declared_order(self):
        viz = to_visualization(_cyclic_definition())

        assert [s.name for s in viz.states] == ["a", "b", "c"]
        assert [s.label for s in viz.states] == ["A", "B", "C"]
        assert [s.final for s in viz.states] == [False, False, True]

    def test_cycles_listed_once_and_duplicates_collapsed(self):
        viz = to_visualization(_cyclic_definition())

        edges = [(t.from_state, t.to_state, t.event) for t in viz.transitions]

        assert edges == [
            ("a", "b", "NEXT"),
            ("b", "a", "BACK"),
            ("b", "c", "SPLIT"),
            ("b", "a", "SPLIT"),
        ]

    def test_is_deterministic(self):
        definition = _cyclic_definition()

        assert to_visualization(definition) == to_visualization(definition)

    def test_current_state_only_when_given(self):
        plain = to_visualization(_cyclic_definition()).to_dict()
        live = to_visualization(_cyclic_definition(), current_state="b").to_dict()

        assert "currentState" not in plain
        assert live["currentState"] == "b"
        assert live["transitions"][0] == {"from": "a", "to": "b", "event": "NEXT"}

    def test_invoice_payment_edges(self):
        viz = to_visualization(INVOICE_WORKFLOW)

        payment_targets = {
            t.to_state
            for t in viz.transitions
            if t.from_state == "sent" and t.event == "RECORD_PAYMENT"
        }

        assert payment_targets == {"paid", "partial"}
        assert viz.id == "invoice"


class TestToGraph:

    def test_marks_current_node(self):
        graph = to_graph(to_visualization(_cyclic_definition(), current_state="a"))

        current = [n["id"] for n in graph["nodes"] if n["current"]]
        assert current == ["a"]
        assert graph["edges"][0] == {"from": "a", "to": "b", "label": "NEXT"}
