"""
Canonical workflow types (``workflow_kernel.domain.workflow``).

Responsibility
--------------
Value objects for document state machines: states, guarded transitions,
the machine definition that ties them together, and the result/snapshot
types returned by the engine.  Used by every document module (quotation,
invoice, purchase order) so the schema is defined once.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  No imports from
``workflow_services``, ``workflow_modules`` or ``workflow_config``.

Invariants enforced
-------------------
* ``StateDefinition.on`` always maps an event to a non-empty tuple of
  ``TransitionDefinition`` candidates; the single-transition case is the
  length-1 tuple.
* ``MachineDefinition.validate()`` reports unknown initial/target states,
  empty candidate lists and final states with outgoing transitions.
* Definitions are frozen and shared by many instances; the initial context
  is copied, never mutated, when an instance is created.
"""

from __future__ import annotations

import copy
import dataclasses
from collections.abc import Awaitable, Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from workflow_kernel.exceptions import (
    UnknownContextFieldError,
    WorkflowKernelError,
)

# Hooks and actions may be plain callables or coroutine functions.
Hook = Callable[[Any], Awaitable[None] | None]
Action = Callable[[Any, Any], Awaitable[None] | None]
Guard = Callable[[Any, Any], bool]

DEFAULT_GUARD_MESSAGE = "Guard blocked transition '{event}'"
GENERIC_FAILURE_MESSAGE = "Action failed, please retry"


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MachineEvent:
    """An event sent to a machine: a type name plus optional payload fields."""

    type: str
    data: Mapping[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransitionDefinition:
    """One candidate edge for an event.

    Contract: frozen.  ``guard`` must be a pure predicate; actions run in
    order and may mutate the context in place.
    """

    target: str
    guard: Guard | None = None
    guard_message: str | None = None
    actions: tuple[Action, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.actions, tuple):
            object.__setattr__(self, "actions", tuple(self.actions))


TransitionSpec = str | TransitionDefinition | Sequence[TransitionDefinition | str]


def _as_candidates(spec: TransitionSpec) -> tuple[TransitionDefinition, ...]:
    """Normalise shorthand (target name, single transition) to a candidate tuple."""
    if isinstance(spec, (str, TransitionDefinition)):
        spec = (spec,)
    return tuple(
        TransitionDefinition(target=c) if isinstance(c, str) else c for c in spec
    )


@dataclass(frozen=True)
class StateDefinition:
    """A named lifecycle stage and its outgoing transitions.

    ``on`` accepts shorthand on construction and is normalised to
    ``dict[event, tuple[TransitionDefinition, ...]]``.
    """

    label: str
    description: str | None = None
    final: bool = False
    on_enter: Hook | None = None
    on_exit: Hook | None = None
    on: Mapping[str, TransitionSpec] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "on",
            {event: _as_candidates(spec) for event, spec in self.on.items()},
        )

    def candidates(self, event: str) -> tuple[TransitionDefinition, ...]:
        """Return the ordered candidates for ``event`` (empty if unmapped)."""
        return self.on.get(event, ())  # type: ignore[return-value]

    @property
    def events(self) -> tuple[str, ...]:
        return tuple(self.on)


@dataclass(frozen=True)
class MachineDefinition:
    """A state machine definition for a document lifecycle.

    Contract: frozen and shared across instances.  ``context`` is the
    template from which each instance's context is deep-copied.
    """

    id: str
    initial: str
    context: Any
    states: Mapping[str, StateDefinition]
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "states", dict(self.states))

    def state(self, name: str) -> StateDefinition | None:
        return self.states.get(name)

    def iter_edges(self) -> Iterator[tuple[str, str, str]]:
        """Yield ``(from_state, event, target)`` for every candidate, in declared order."""
        for name, state in self.states.items():
            for event, candidates in state.on.items():
                for candidate in candidates:
                    yield name, event, candidate.target

    def validate(self) -> tuple[str, ...]:
        """Return structural problems; an empty tuple means the definition is sound."""
        problems: list[str] = []
        if self.initial not in self.states:
            problems.append(f"initial state '{self.initial}' is not defined")
        for name, state in self.states.items():
            for event, candidates in state.on.items():
                if not candidates:
                    problems.append(f"event '{event}' on '{name}' has no candidates")
                for candidate in candidates:
                    if candidate.target not in self.states:
                        problems.append(
                            f"'{name}' --{event}--> '{candidate.target}' "
                            "targets an undefined state"
                        )
            if state.final and state.on:
                problems.append(f"final state '{name}' has outgoing transitions")
        return tuple(problems)

    def new_context(self, overrides: Mapping[str, Any] | None = None) -> Any:
        """Deep-copy the template context and apply ``overrides``."""
        ctx = copy.deepcopy(self.context)
        if overrides:
            merge_context(ctx, overrides, workflow_id=self.id)
        return ctx


# ---------------------------------------------------------------------------
# Context helpers (dict or dataclass contexts)
# ---------------------------------------------------------------------------


def get_field(context: Any, key: str, default: Any = None) -> Any:
    """Get a field from a context (mapping or object)."""
    if context is None:
        return default
    if isinstance(context, Mapping):
        return context.get(key, default)
    return getattr(context, key, default)


def merge_context(context: Any, updates: Mapping[str, Any], *, workflow_id: str) -> None:
    """Merge ``updates`` into ``context`` in place.

    Dict contexts accept any key.  Dataclass contexts reject names that are
    not declared fields.
    """
    if isinstance(context, dict):
        context.update(updates)
        return
    if dataclasses.is_dataclass(context):
        names = {f.name for f in dataclasses.fields(context)}
        unknown = sorted(k for k in updates if k not in names)
        if unknown:
            raise UnknownContextFieldError(workflow_id, unknown)
    for key, value in updates.items():
        setattr(context, key, value)


# ---------------------------------------------------------------------------
# Runtime results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MachineSnapshot:
    """Point-in-time view of an instance; ``context`` is a deep copy."""

    value: str
    context: Any
    label: str
    description: str | None
    done: bool


@dataclass(frozen=True)
class TransitionResult:
    """Result of a transition attempt.

    ``transition()`` always returns one of these; failures carry the typed
    exception in ``exception`` and its ``code``.
    """

    success: bool
    snapshot: MachineSnapshot
    error: str | None = None
    code: str | None = None
    exception: WorkflowKernelError | None = field(default=None, repr=False, compare=False)

    @property
    def state(self) -> str:
        return self.snapshot.value

    @property
    def user_facing(self) -> bool:
        return getattr(self.exception, "user_facing", False)

    @property
    def display_message(self) -> str | None:
        """Message suitable for end users, or None on success."""
        if self.success:
            return None
        if self.user_facing:
            return self.error
        return GENERIC_FAILURE_MESSAGE

    def raise_for_error(self) -> None:
        """Raise the typed exception if the transition failed."""
        if self.exception is not None:
            raise self.exception
