"""
Structural checks across every shipped workflow, plus the registry helpers.
"""

import pytest

from workflow_config.schema import EngineSettings, WorkflowSettings
from workflow_kernel.domain.visualization import to_visualization
from workflow_modules import WORKFLOWS, create_machine, get_workflow
from workflow_services.runtime import init_engine


@pytest.mark.parametrize("workflow_id", sorted(WORKFLOWS))
class TestEveryWorkflow:

    def test_definition_is_sound(self, workflow_id):
        assert WORKFLOWS[workflow_id].validate() == ()

    def test_final_states_have_no_transitions(self, workflow_id):
        definition = WORKFLOWS[workflow_id]

        for state in definition.states.values():
            if state.final:
                assert state.on == {}

    def test_every_state_has_a_label(self, workflow_id):
        for state in WORKFLOWS[workflow_id].states.values():
            assert state.label
            assert state.description

    def test_every_state_reachable_from_initial(self, workflow_id):
        definition = WORKFLOWS[workflow_id]
        reachable = {definition.initial}
        frontier = [definition.initial]
        while frontier:
            name = frontier.pop()
            for from_state, _, target in definition.iter_edges():
                if from_state == name and target not in reachable:
                    reachable.add(target)
                    frontier.append(target)

        assert reachable == set(definition.states)

    def test_visualization_covers_all_states(self, workflow_id):
        viz = to_visualization(WORKFLOWS[workflow_id])

        assert {s.name for s in viz.states} == set(WORKFLOWS[workflow_id].states)


class TestRegistry:

    def test_known_ids(self):
        assert set(WORKFLOWS) == {"quotation", "invoice", "purchase_order"}

    def test_unknown_id_lists_known(self):
        with pytest.raises(KeyError, match="quotation"):
            get_workflow("credit_note")

    def test_create_machine_seeds_context(self, event_bus):
        machine = create_machine(
            "invoice", {"id": 9, "total_amount": 10}, event_bus=event_bus, settings=EngineSettings()
        )

        assert machine.current_state() == "draft"
        assert machine.record_id == 9
        assert machine.context.total_amount == 10

    @pytest.mark.asyncio
    async def test_create_machine_honours_rollback_setting(self, event_bus):
        settings = EngineSettings(workflows={"quotation": WorkflowSettings(rollback_on_failure=True)})
        machine = create_machine("quotation", {"id": 1, "total_amount": 1}, event_bus=event_bus, settings=settings)

        assert machine._rollback is True
        assert (await machine.transition("SUBMIT")).success

    def test_create_machine_loads_active_settings(self, event_bus, monkeypatch):
        monkeypatch.delenv("WORKFLOW_ENGINE_CONFIG", raising=False)

        machine = create_machine("purchase_order", event_bus=event_bus)

        assert machine.current_state() == "draft"

    def test_create_machine_loads_settings_once(self, event_bus, monkeypatch, captured_logs):
        monkeypatch.delenv("WORKFLOW_ENGINE_CONFIG", raising=False)

        create_machine("invoice", {"id": 1}, event_bus=event_bus)
        create_machine("invoice", {"id": 2}, event_bus=event_bus)
        create_machine("quotation", {"id": 3}, event_bus=event_bus)

        loads = [r for r in captured_logs() if r["message"] == "workflow_config_loaded"]
        assert len(loads) == 1

    def test_create_machine_uses_engine_settings(self, tmp_path, event_bus, captured_logs):
        path = tmp_path / "engine.yaml"
        path.write_text("engine:\n  rollback_on_failure: true\n")
        init_engine(path)

        machine = create_machine("invoice", {"id": 1}, event_bus=event_bus)

        assert machine._rollback is True
        loads = [r for r in captured_logs() if r["message"] == "workflow_config_loaded"]
        assert len(loads) == 1
