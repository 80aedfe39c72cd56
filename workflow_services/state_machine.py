"""
workflow_services.state_machine -- document state machine engine.

Responsibility:
    Owns one running instance of a ``MachineDefinition``: the current state
    name and the mutable business context.  Executes guarded transitions,
    runs exit hook -> actions -> state swap -> enter hook strictly in
    sequence, and publishes ``state-changed`` on success.

Architecture position:
    Services layer.  May import from workflow_kernel/ (domain, exceptions,
    logging) and workflow_config/ (settings schema).

Invariants enforced:
    - The current state name always exists in the definition.
    - ``transition()`` never raises a workflow error; every path returns a
      ``TransitionResult``.
    - At most one transition runs per instance; a second call while one is
      in flight is rejected, not queued.
    - State changes only after the guard passes and every action completes.
      Without rollback, mutations made before a failing step are kept.
    - ``state-changed`` is published only after the enter hook completes,
      and subscriber failures never reach the result.
    - Snapshots and rollback copies fall back to a shallow copy when the
      context holds values that cannot be deep-copied.
"""

from __future__ import annotations

import copy
import dataclasses
import inspect
import time
from collections.abc import Callable, Mapping
from typing import Any

from workflow_config.schema import EngineSettings
from workflow_kernel.domain.visualization import MachineVisualization, to_visualization
from workflow_kernel.domain.workflow import (
    DEFAULT_GUARD_MESSAGE,
    MachineDefinition,
    MachineEvent,
    MachineSnapshot,
    StateDefinition,
    TransitionDefinition,
    TransitionResult,
    get_field,
    merge_context,
)
from workflow_kernel.exceptions import (
    ActionFailedError,
    GuardRejectedError,
    InvalidDefinitionError,
    NoSuchTransitionError,
    ReentrantTransitionError,
    WorkflowKernelError,
)
from workflow_kernel.logging_config import LogContext, get_logger
from workflow_services.event_bus import (
    STATE_CHANGED,
    EventPublisher,
    StateChangedEvent,
    get_event_bus,
)

logger = get_logger("services.state_machine")

# Trace message and outcome codes for structured logging
TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_REENTRANT = "reentrant"
OUTCOME_NO_TRANSITION = "no_transition"
OUTCOME_GUARD_FAILED = "guard_failed"
OUTCOME_INVALID_DEFINITION = "invalid_definition"
OUTCOME_ACTION_FAILED = "action_failed"


def _emit_transition_trace(
    workflow_id: str,
    event: str,
    from_state: str,
    outcome: str,
    reason: str,
    duration_ms: float,
    to_state: str | None = None,
    record_id: Any = None,
    outcome_sink: Callable[[dict], None] | None = None,
) -> None:
    """Emit a structured transition record; ``outcome_sink`` gets the same record."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "workflow": workflow_id,
        "event": event,
        "from_state": from_state,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
    }
    if to_state is not None:
        record["to_state"] = to_state
    if record_id is not None:
        record["record_id"] = record_id
    if outcome == OUTCOME_SUCCESS:
        logger.info("workflow_transition", extra=record)
    elif outcome in (OUTCOME_INVALID_DEFINITION, OUTCOME_ACTION_FAILED):
        logger.error("workflow_transition", extra=record)
    else:
        logger.warning("workflow_transition", extra=record)
    if outcome_sink is not None:
        record.update(LogContext.get_all())
        record["message"] = "workflow_transition"
        outcome_sink(record)


def _copy_context(context: Any, workflow_id: str) -> Any:
    """Deep-copy ``context``; fall back to a shallow copy for uncopyable values."""
    try:
        return copy.deepcopy(context)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "context_copy_failed",
            extra={"workflow": workflow_id, "error": str(exc)},
        )
    try:
        return copy.copy(context)
    except Exception:  # noqa: BLE001
        return context


async def _run_step(fn: Callable[..., Any], *args: Any) -> None:
    """Call a hook or action and await it if it returned an awaitable."""
    result = fn(*args)
    if inspect.isawaitable(result):
        await result


def _restore_context(target: Any, saved: Any) -> None:
    """Copy ``saved`` back into ``target`` in place, keeping object identity."""
    if saved is target:
        return
    if isinstance(target, dict):
        target.clear()
        target.update(saved)
    elif dataclasses.is_dataclass(target):
        for f in dataclasses.fields(target):
            setattr(target, f.name, getattr(saved, f.name))
    else:
        target.__dict__.clear()
        target.__dict__.update(saved.__dict__)


class MachineInstance:
    """A running document lifecycle: current state + context.

    One instance per open document record.  Instances never share context,
    so transitions on different instances are independent.

    Args:
        definition: shared, immutable workflow definition.
        context_overrides: record fields merged into a copy of the
            definition's initial context.
        event_bus: where ``state-changed`` is published; defaults to the
            process-wide bus.
        settings: engine settings; defaults to ``EngineSettings()``.
        rollback_on_failure: restore context and state when a hook or
            action raises.  Overrides the settings value when given.
        outcome_sink: receives one trace record per transition attempt.

    Raises:
        InvalidDefinitionError: the initial state is not defined, or
            ``settings.strict_definitions`` is set and ``validate()``
            reports any problem.
    """

    def __init__(
        self,
        definition: MachineDefinition,
        context_overrides: Mapping[str, Any] | None = None,
        *,
        event_bus: EventPublisher | None = None,
        settings: EngineSettings | None = None,
        rollback_on_failure: bool | None = None,
        outcome_sink: Callable[[dict], None] | None = None,
    ) -> None:
        settings = settings or EngineSettings()
        if definition.initial not in definition.states:
            raise InvalidDefinitionError(
                definition.id, [f"initial state '{definition.initial}' is not defined"]
            )
        problems = definition.validate()
        if problems:
            if settings.strict_definitions:
                raise InvalidDefinitionError(definition.id, problems)
            logger.warning(
                "machine_definition_problems",
                extra={"workflow": definition.id, "problems": list(problems)},
            )

        self._definition = definition
        self._value = definition.initial
        self._context = definition.new_context(context_overrides)
        self._busy = False
        self._event_bus = event_bus
        self._rollback = (
            rollback_on_failure
            if rollback_on_failure is not None
            else settings.rollback_for(definition.id)
        )
        self._outcome_sink = outcome_sink

        logger.debug(
            "machine_initialized",
            extra={"workflow": definition.id, "initial": definition.initial},
        )

    def __repr__(self) -> str:
        return f"<MachineInstance {self._definition.id}:{self._value}>"

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def definition(self) -> MachineDefinition:
        return self._definition

    @property
    def workflow_id(self) -> str:
        return self._definition.id

    @property
    def value(self) -> str:
        return self._value

    @property
    def context(self) -> Any:
        return self._context

    @property
    def state_definition(self) -> StateDefinition:
        return self._definition.states[self._value]

    @property
    def done(self) -> bool:
        return self.state_definition.final

    @property
    def is_transitioning(self) -> bool:
        return self._busy

    @property
    def record_id(self) -> Any:
        return get_field(self._context, "id")

    def current_state(self) -> str:
        return self._value

    def current_context(self) -> Any:
        return self._context

    def is_done(self) -> bool:
        return self.done

    def snapshot(self) -> MachineSnapshot:
        state = self.state_definition
        return MachineSnapshot(
            value=self._value,
            context=_copy_context(self._context, self.workflow_id),
            label=state.label,
            description=state.description,
            done=state.final,
        )

    def available_events(self) -> list[str]:
        """Events with an outgoing mapping from the current state."""
        return list(self.state_definition.events)

    def can_transition(self, event: str, payload: Mapping[str, Any] | None = None) -> bool:
        """True iff ``event`` is mapped and some candidate's guard passes.

        Runs guards only; never hooks or actions.
        """
        candidates = self.state_definition.candidates(event)
        if not candidates:
            return False
        selected, _ = self._select_candidate(candidates, MachineEvent(event, dict(payload or {})))
        return selected is not None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def transition(
        self,
        event: str | MachineEvent,
        payload: Mapping[str, Any] | None = None,
    ) -> TransitionResult:
        """Attempt to move to the next state for ``event``.

        Never raises a workflow error; see the module docstring for the
        ordering and failure rules.
        """
        evt = event if isinstance(event, MachineEvent) else MachineEvent(event, dict(payload or {}))
        record_id = self.record_id
        with LogContext.bind(workflow_id=self.workflow_id, record_id=record_id):
            return await self._transition(evt, record_id)

    async def _transition(self, evt: MachineEvent, record_id: Any) -> TransitionResult:
        t0 = time.monotonic()
        from_state = self._value

        logger.info(
            "transition_requested",
            extra={"workflow": self.workflow_id, "from_state": from_state, "event": evt.type},
        )

        # 1. Reentrancy
        if self._busy:
            return self._failure(
                ReentrantTransitionError(self.workflow_id, from_state, evt.type),
                OUTCOME_REENTRANT, evt, from_state, t0, record_id,
            )

        # 2. Mapping
        source = self.state_definition
        candidates = source.candidates(evt.type)
        if not candidates:
            return self._failure(
                NoSuchTransitionError(self.workflow_id, from_state, evt.type),
                OUTCOME_NO_TRANSITION, evt, from_state, t0, record_id,
            )

        # 3. Guards, in declared order
        selected, message = self._select_candidate(candidates, evt)
        if selected is None:
            return self._failure(
                GuardRejectedError(self.workflow_id, from_state, evt.type, message),
                OUTCOME_GUARD_FAILED, evt, from_state, t0, record_id,
            )

        # 4. Target must exist
        target = self._definition.state(selected.target)
        if target is None:
            return self._failure(
                InvalidDefinitionError(
                    self.workflow_id,
                    [f"'{from_state}' --{evt.type}--> '{selected.target}' targets an undefined state"],
                ),
                OUTCOME_INVALID_DEFINITION, evt, from_state, t0, record_id,
            )

        # 5. exit hook -> actions -> swap -> enter hook
        saved = _copy_context(self._context, self.workflow_id) if self._rollback else None
        self._busy = True
        step = "exit"
        failure: Exception | None = None
        try:
            if source.on_exit is not None:
                await _run_step(source.on_exit, self._context)
            for index, action in enumerate(selected.actions):
                step = f"action[{index}]"
                await _run_step(action, self._context, evt)
            self._value = selected.target
            step = "enter"
            if target.on_enter is not None:
                await _run_step(target.on_enter, self._context)
        except Exception as exc:  # noqa: BLE001
            failure = exc
        finally:
            self._busy = False

        # 6. Failure: stop, keep earlier effects unless rolling back
        if failure is not None:
            if saved is not None:
                _restore_context(self._context, saved)
                self._value = from_state
            logger.error(
                "transition_step_failed",
                exc_info=failure,
                extra={
                    "workflow": self.workflow_id,
                    "from_state": from_state,
                    "event": evt.type,
                    "step": step,
                    "rolled_back": saved is not None,
                },
            )
            return self._failure(
                ActionFailedError(self.workflow_id, from_state, evt.type, step, failure),
                OUTCOME_ACTION_FAILED, evt, from_state, t0, record_id,
            )

        # 7. Success
        _emit_transition_trace(
            workflow_id=self.workflow_id,
            event=evt.type,
            from_state=from_state,
            to_state=self._value,
            outcome=OUTCOME_SUCCESS,
            reason="transition completed",
            duration_ms=(time.monotonic() - t0) * 1000,
            record_id=record_id,
            outcome_sink=self._outcome_sink,
        )
        self._publish_state_changed(from_state, evt.type)
        return TransitionResult(success=True, snapshot=self.snapshot())

    def _select_candidate(
        self,
        candidates: tuple[TransitionDefinition, ...],
        evt: MachineEvent,
    ) -> tuple[TransitionDefinition | None, str]:
        """Pick the first candidate with no guard or a passing guard.

        On rejection returns the guard message of the last rejecting
        candidate that declares one.
        """
        message: str | None = None
        for candidate in candidates:
            if candidate.guard is None:
                return candidate, ""
            try:
                passed = bool(candidate.guard(self._context, evt))
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "guard_evaluation_error",
                    extra={
                        "workflow": self.workflow_id,
                        "event": evt.type,
                        "target": candidate.target,
                        "error": str(exc),
                    },
                )
                passed = False
            if passed:
                return candidate, ""
            if candidate.guard_message:
                message = candidate.guard_message
        return None, message or DEFAULT_GUARD_MESSAGE.format(event=evt.type)

    def _failure(
        self,
        error: WorkflowKernelError,
        outcome: str,
        evt: MachineEvent,
        from_state: str,
        t0: float,
        record_id: Any,
    ) -> TransitionResult:
        _emit_transition_trace(
            workflow_id=self.workflow_id,
            event=evt.type,
            from_state=from_state,
            outcome=outcome,
            reason=str(error),
            duration_ms=(time.monotonic() - t0) * 1000,
            record_id=record_id,
            outcome_sink=self._outcome_sink,
        )
        return TransitionResult(
            success=False,
            snapshot=self.snapshot(),
            error=str(error),
            code=error.code,
            exception=error,
        )

    def _publish_state_changed(self, from_state: str, event: str) -> None:
        bus = self._event_bus if self._event_bus is not None else get_event_bus()
        payload = StateChangedEvent(
            workflow_id=self.workflow_id,
            record_id=self.record_id,
            from_state=from_state,
            to_state=self._value,
            event=event,
        )
        try:
            bus.publish(STATE_CHANGED, payload)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "state_changed_publish_failed",
                extra={"workflow": self.workflow_id, "error": str(exc)},
            )

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def update_context(self, updates: Mapping[str, Any]) -> None:
        """Merge fields into the context without changing state.

        Raises:
            UnknownContextFieldError: a dataclass context lacks a named field.
        """
        merge_context(self._context, updates, workflow_id=self.workflow_id)

    def reset(self, context_overrides: Mapping[str, Any] | None = None) -> None:
        """Return to the initial state with a fresh copy of the initial context.

        Raises:
            ReentrantTransitionError: a transition is in flight.
        """
        if self._busy:
            raise ReentrantTransitionError(self.workflow_id, self._value, "reset")
        self._context = self._definition.new_context(context_overrides)
        self._value = self._definition.initial

    def to_visualization(self) -> MachineVisualization:
        return to_visualization(self._definition, current_state=self._value)
