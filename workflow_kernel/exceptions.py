"""
Typed Exception Hierarchy for the Workflow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Document workflows reject transitions for very different reasons: a business
rule said no, the event does not apply to the current state, a second click
arrived while the first was still in flight, or a workflow definition is
broken. Callers render these differently (a guard message goes to the user
verbatim; an internal failure gets a generic "please retry"), so each reason
is a TYPED exception with a machine-readable CODE and structured attributes.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WorkflowKernelError (base)
    |
    +-- TransitionError
    |   +-- ReentrantTransitionError
    |   +-- NoSuchTransitionError
    |   +-- GuardRejectedError
    |   +-- ActionFailedError
    |
    +-- DefinitionError
    |   +-- InvalidDefinitionError
    |
    +-- ContextError
    |   +-- UnknownContextFieldError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                   | When Raised
------------|------------------------|---------------------------------------------
Transition  | REENTRANT_TRANSITION   | transition() while another is in flight
            | NO_SUCH_TRANSITION     | Event has no mapping from the current state
            | GUARD_REJECTED         | Every candidate's guard evaluated false
            | ACTION_FAILED          | Exit hook, action or enter hook raised
------------|------------------------|---------------------------------------------
Definition  | INVALID_DEFINITION     | Unknown initial/target state, empty candidates
------------|------------------------|---------------------------------------------
Context     | UNKNOWN_CONTEXT_FIELD  | update_context() names a field the context lacks
------------|------------------------|---------------------------------------------
Config      | CONFIGURATION_ERROR    | Engine settings file missing keys or malformed

===============================================================================
HANDLING PATTERNS
===============================================================================

``MachineInstance.transition()`` never raises these: it returns a
``TransitionResult`` whose ``code`` is the code of the class below and whose
``exception`` holds the instance. Callers that prefer exceptions call
``result.raise_for_error()``:

    result = await machine.transition("SUBMIT")
    try:
        result.raise_for_error()
    except GuardRejectedError as e:
        show_to_user(e.message)          # written for end users
    except TransitionError:
        show_to_user("Action failed, please retry")

Construction, ``reset()``, ``update_context()`` and configuration loading raise
directly.
"""


class WorkflowKernelError(Exception):
    """
    Base exception for all workflow kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "WORKFLOW_KERNEL_ERROR"


# Transition-related exceptions


class TransitionError(WorkflowKernelError):
    """Base exception for failed transition attempts."""

    code: str = "TRANSITION_ERROR"

    #: Whether the message is written for end-user display.
    user_facing: bool = False


class ReentrantTransitionError(TransitionError):
    """A transition was requested while another is still in flight."""

    code: str = "REENTRANT_TRANSITION"

    def __init__(self, workflow_id: str, state: str, event: str):
        self.workflow_id = workflow_id
        self.state = state
        self.event = event
        super().__init__(
            f"Transition '{event}' rejected: machine '{workflow_id}' "
            f"is already transitioning from '{state}'"
        )


class NoSuchTransitionError(TransitionError):
    """The current state has no mapping for the event."""

    code: str = "NO_SUCH_TRANSITION"

    def __init__(self, workflow_id: str, state: str, event: str):
        self.workflow_id = workflow_id
        self.state = state
        self.event = event
        super().__init__(f"No transition '{event}' from state '{state}'")


class GuardRejectedError(TransitionError):
    """
    The transition exists but no candidate's guard passed.

    The message comes from the workflow author and is intended for the
    end user.
    """

    code: str = "GUARD_REJECTED"
    user_facing: bool = True

    def __init__(self, workflow_id: str, state: str, event: str, message: str):
        self.workflow_id = workflow_id
        self.state = state
        self.event = event
        self.message = message
        super().__init__(message)


class ActionFailedError(TransitionError):
    """An exit hook, transition action or enter hook raised."""

    code: str = "ACTION_FAILED"

    def __init__(
        self,
        workflow_id: str,
        state: str,
        event: str,
        step: str,
        cause: BaseException,
    ):
        self.workflow_id = workflow_id
        self.state = state
        self.event = event
        self.step = step
        self.cause_type = type(cause).__name__
        super().__init__(str(cause) or type(cause).__name__)


# Definition-related exceptions


class DefinitionError(WorkflowKernelError):
    """Base exception for malformed machine definitions."""

    code: str = "DEFINITION_ERROR"


class InvalidDefinitionError(DefinitionError):
    """
    A machine definition references a state it does not declare.

    This is a programmer error, not a business rejection.
    """

    code: str = "INVALID_DEFINITION"

    def __init__(self, workflow_id: str, problems: list[str] | tuple[str, ...]):
        self.workflow_id = workflow_id
        self.problems = tuple(problems)
        super().__init__(
            f"Invalid machine definition '{workflow_id}': " + "; ".join(self.problems)
        )


# Context-related exceptions


class ContextError(WorkflowKernelError):
    """Base exception for context manipulation errors."""

    code: str = "CONTEXT_ERROR"


class UnknownContextFieldError(ContextError):
    """update_context() named a field the context does not have."""

    code: str = "UNKNOWN_CONTEXT_FIELD"

    def __init__(self, workflow_id: str, fields: list[str]):
        self.workflow_id = workflow_id
        self.fields = tuple(fields)
        super().__init__(
            f"Unknown context field(s) for '{workflow_id}': {', '.join(self.fields)}"
        )


# Configuration exceptions


class ConfigurationError(WorkflowKernelError):
    """Engine settings could not be loaded or parsed."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid engine configuration in {source}: {reason}")
