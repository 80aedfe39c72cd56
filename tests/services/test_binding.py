"""WorkflowBinding: the view-facing wrapper around a machine instance."""

import pytest

from workflow_kernel.domain.workflow import GENERIC_FAILURE_MESSAGE
from workflow_services.binding import WorkflowBinding


@pytest.fixture
def binding(counter_definition, event_bus):
    return WorkflowBinding.create(counter_definition, {"id": 1}, event_bus=event_bus)


class TestReads:

    def test_initial_view(self, binding):
        assert binding.current_state == "idle"
        assert binding.state_label == "Idle"
        assert binding.state_description is None
        assert binding.available_events == ["INCREMENT"]
        assert binding.is_done is False
        assert binding.is_transitioning is False
        assert binding.last_error is None

    def test_can_has_no_side_effects(self, binding):
        assert binding.can("INCREMENT") is True
        assert binding.can("DECREMENT") is False
        assert binding.current_state == "idle"

    def test_visualization_has_current_state(self, binding):
        assert binding.visualization.current_state == "idle"


class TestSend:

    @pytest.mark.asyncio
    async def test_success_clears_last_error(self, binding):
        await binding.send("FINISH")
        assert binding.last_error == GENERIC_FAILURE_MESSAGE

        result = await binding.send("INCREMENT")

        assert result.success
        assert binding.last_error is None
        assert binding.last_result is result
        assert binding.state_description == "Counting"

    @pytest.mark.asyncio
    async def test_guard_message_surfaces(self, binding):
        await binding.send("INCREMENT")
        await binding.send("DECREMENT")

        result = await binding.send("DECREMENT")

        assert result.success is False
        assert binding.last_error == "Count cannot go below 0"

    @pytest.mark.asyncio
    async def test_listeners_get_snapshots(self, binding):
        seen = []
        unsubscribe = binding.subscribe(seen.append)

        await binding.send("INCREMENT")
        binding.set_context({"count": 10})
        unsubscribe()
        await binding.send("INCREMENT")

        assert [s.value for s in seen] == ["active", "active"]
        assert seen[0].context["count"] == 1
        assert seen[1].context["count"] == 10

    @pytest.mark.asyncio
    async def test_reset(self, binding):
        await binding.send("INCREMENT")
        await binding.send("FINISH")
        assert binding.is_done is True

        binding.reset()

        assert binding.current_state == "idle"
        assert binding.context["count"] == 0
        assert binding.last_result is None

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_send(self, binding, captured_logs):
        seen = []

        def broken(snapshot):
            raise RuntimeError("view broke")

        binding.subscribe(broken)
        binding.subscribe(seen.append)

        result = await binding.send("INCREMENT")

        assert result.success
        assert binding.last_result is result
        assert binding.last_error is None
        assert [s.value for s in seen] == ["active"]
        failures = [r for r in captured_logs() if r["message"] == "binding_listener_failed"]
        assert failures[0]["error"] == "view broke"
