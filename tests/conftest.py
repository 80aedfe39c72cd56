"""
Pytest fixtures for the workflow kernel test suite.

Provides:
- Structured logging configured once per session, LogContext cleared per test
- ``captured_logs`` to assert on emitted JSON log records
- Deterministic clock, recording notifier and a fresh event bus
- Small ad-hoc machine definitions used across engine tests
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from io import StringIO

import pytest

from workflow_config import use_settings
from workflow_kernel.domain.clock import DeterministicClock
from workflow_kernel.domain.workflow import (
    MachineDefinition,
    StateDefinition,
    TransitionDefinition,
)
from workflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from workflow_services.event_bus import EventBus, reset_event_bus
from workflow_services.notifications import NotificationLevel


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext, the default bus and cached settings between tests."""
    LogContext.clear()
    reset_event_bus()
    use_settings(None)
    yield
    LogContext.clear()
    reset_event_bus()
    use_settings(None)


@pytest.fixture
def captured_logs():
    """
    Capture workflow_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "workflow_transition" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("workflow_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Collaborators
# =============================================================================


class RecordingNotifier:
    """Notifier that remembers every call; can be told to fail."""

    def __init__(self, fail_with: Exception | None = None):
        self.sent: list[tuple[NotificationLevel, str, str]] = []
        self.fail_with = fail_with

    async def notify(self, level, title, body):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((level, title, body))

    @property
    def titles(self) -> list[str]:
        return [title for _, title, _ in self.sent]


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def event_bus(deterministic_clock):
    return EventBus(clock=deterministic_clock)


@pytest.fixture
def state_changes(event_bus):
    """Collected ``state-changed`` payloads published on ``event_bus``."""
    received = []
    event_bus.subscribe("state-changed", lambda e: received.append(e.payload))
    return received


# =============================================================================
# Ad-hoc machines
# =============================================================================


def _increment(ctx, event):
    ctx["count"] += 1


def _decrement(ctx, event):
    ctx["count"] -= 1


def make_counter_definition() -> MachineDefinition:
    """idle --INCREMENT--> active, active loops on INCREMENT/DECREMENT."""
    return MachineDefinition(
        id="counter",
        initial="idle",
        context={"id": 7, "count": 0},
        states={
            "idle": StateDefinition(
                label="Idle",
                on={
                    "INCREMENT": TransitionDefinition(target="active", actions=(_increment,)),
                },
            ),
            "active": StateDefinition(
                label="Active",
                description="Counting",
                on={
                    "INCREMENT": TransitionDefinition(target="active", actions=(_increment,)),
                    "DECREMENT": TransitionDefinition(
                        target="active",
                        guard=lambda ctx, event: ctx["count"] > 0,
                        guard_message="Count cannot go below 0",
                        actions=(_decrement,),
                    ),
                    "FINISH": "finished",
                },
            ),
            "finished": StateDefinition(label="Finished", final=True),
        },
    )


@pytest.fixture
def counter_definition():
    return make_counter_definition()


class Gate:
    """An awaitable action that blocks until ``release()`` is called."""

    def __init__(self):
        self.started = asyncio.Event()
        self._release = asyncio.Event()

    async def __call__(self, ctx, event):
        self.started.set()
        await self._release.wait()

    def release(self):
        self._release.set()
