"""
workflow_config -- single public entrypoint for engine settings.

Responsibility:
    ``get_active_settings()`` is the only way runtime code obtains engine
    settings.  Resolution order: explicit path, then the
    ``WORKFLOW_ENGINE_CONFIG`` environment variable, then the packaged
    ``sets/default.yaml``.

Failure modes:
    - ``ConfigurationError`` -- missing or malformed settings file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from workflow_config.loader import load_settings, parse_settings
from workflow_config.schema import EngineSettings, WorkflowSettings

_logger = logging.getLogger("workflow_kernel.config")

CONFIG_ENV_VAR = "WORKFLOW_ENGINE_CONFIG"
_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def resolve_config_path(path: Path | str | None = None) -> Path:
    """Return the settings file that ``get_active_settings`` would load."""
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return _DEFAULT_CONFIG_PATH


def get_active_settings(path: Path | str | None = None) -> EngineSettings:
    """Load the active engine settings."""
    resolved = resolve_config_path(path)
    settings = load_settings(resolved)
    _logger.info(
        "workflow_config_loaded",
        extra={
            "config_path": str(resolved),
            "rollback_on_failure": settings.rollback_on_failure,
            "strict_definitions": settings.strict_definitions,
            "workflow_overrides": sorted(settings.workflows),
        },
    )
    return settings


_current: EngineSettings | None = None


def current_settings() -> EngineSettings:
    """Settings for new machines: loaded on first use, then reused.

    ``init_engine`` installs the settings it loaded via ``use_settings``.
    """
    global _current
    if _current is None:
        _current = get_active_settings()
    return _current


def use_settings(settings: EngineSettings | None) -> None:
    """Replace the cached settings; ``None`` forces a reload on next use."""
    global _current
    _current = settings


__all__ = [
    "CONFIG_ENV_VAR",
    "EngineSettings",
    "WorkflowSettings",
    "current_settings",
    "get_active_settings",
    "load_settings",
    "parse_settings",
    "resolve_config_path",
    "use_settings",
]
