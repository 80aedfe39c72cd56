"""
Engine settings schema (``workflow_config.schema``).

Frozen dataclasses produced by ``workflow_config.loader``.  Nothing here
reads files.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class WorkflowSettings:
    """Per-workflow overrides, keyed by workflow id in ``EngineSettings``."""

    rollback_on_failure: bool | None = None


@dataclass(frozen=True)
class EngineSettings:
    """Runtime knobs for machine instances, the event bus and logging.

    ``rollback_on_failure`` restores context and state when a hook or action
    raises mid-transition; off by default, so partial mutations are kept.
    """

    rollback_on_failure: bool = False
    strict_definitions: bool = False
    log_level: str = "INFO"
    event_history_size: int = 100
    workflows: dict[str, WorkflowSettings] = field(default_factory=dict)

    def rollback_for(self, workflow_id: str) -> bool:
        """Resolve the rollback flag for a workflow (override first, then global)."""
        override = self.workflows.get(workflow_id)
        if override is not None and override.rollback_on_failure is not None:
            return override.rollback_on_failure
        return self.rollback_on_failure
