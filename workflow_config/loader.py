"""
Settings loader (``workflow_config.loader``).

Loads a YAML settings file and parses it into the frozen dataclasses of
``workflow_config.schema``.  Callers go through
``workflow_config.get_active_settings()``.

Failure modes
-------------
* Missing file  -> ``ConfigurationError``.
* Malformed YAML  -> ``ConfigurationError`` wrapping ``yaml.YAMLError``.
* Unknown keys or wrongly typed values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from workflow_config.schema import EngineSettings, WorkflowSettings
from workflow_kernel.exceptions import ConfigurationError

_ENGINE_KEYS = {
    "rollback_on_failure": bool,
    "strict_definitions": bool,
    "log_level": str,
    "event_history_size": int,
}
_WORKFLOW_KEYS = {"rollback_on_failure": bool}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        ConfigurationError: if the file is missing, unreadable, not valid
            YAML, or its top level is not a mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(str(path), "file not found") from None
    except yaml.YAMLError as exc:
        raise ConfigurationError(str(path), f"malformed YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def _check_keys(
    data: dict[str, Any],
    allowed: dict[str, type],
    source: str,
    where: str,
) -> None:
    for key, value in data.items():
        expected = allowed.get(key)
        if expected is None:
            raise ConfigurationError(source, f"unknown key '{where}{key}'")
        # bool is an int subclass; reject it where an int is expected
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            raise ConfigurationError(
                source,
                f"'{where}{key}' must be {expected.__name__}, got {type(value).__name__}",
            )


def parse_settings(data: dict[str, Any], source: str = "<dict>") -> EngineSettings:
    """Parse an ``EngineSettings`` from the ``engine`` section of a dict."""
    engine_raw = data.get("engine") or {}
    if not isinstance(engine_raw, dict):
        raise ConfigurationError(source, "'engine' must be a mapping")
    engine = dict(engine_raw)
    workflows_raw = engine.pop("workflows", None) or {}

    _check_keys(engine, _ENGINE_KEYS, source, "engine.")

    level = engine.get("log_level", "INFO").upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError(source, f"unknown log level '{level}'")
    if engine.get("event_history_size", 100) < 0:
        raise ConfigurationError(source, "'engine.event_history_size' must be >= 0")

    if not isinstance(workflows_raw, dict):
        raise ConfigurationError(source, "'engine.workflows' must be a mapping")
    workflows: dict[str, WorkflowSettings] = {}
    for workflow_id, overrides in workflows_raw.items():
        overrides = overrides or {}
        if not isinstance(overrides, dict):
            raise ConfigurationError(
                source, f"'engine.workflows.{workflow_id}' must be a mapping"
            )
        _check_keys(overrides, _WORKFLOW_KEYS, source, f"engine.workflows.{workflow_id}.")
        workflows[str(workflow_id)] = WorkflowSettings(**overrides)

    return EngineSettings(
        rollback_on_failure=engine.get("rollback_on_failure", False),
        strict_definitions=engine.get("strict_definitions", False),
        log_level=level,
        event_history_size=engine.get("event_history_size", 100),
        workflows=workflows,
    )


def load_settings(path: Path) -> EngineSettings:
    """Load and parse a settings file."""
    return parse_settings(load_yaml_file(path), source=str(path))
