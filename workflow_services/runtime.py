"""
workflow_services.runtime -- process start-up for the workflow engine.

Loads the active engine settings once, applies the ones that are process
wide (log level, default event bus history) and returns them so callers
can hand them to ``create_machine``.
"""

from __future__ import annotations

from pathlib import Path

from workflow_config import get_active_settings, use_settings
from workflow_config.schema import EngineSettings
from workflow_kernel.logging_config import configure_logging, get_logger
from workflow_services.event_bus import EventBus, install_event_bus

logger = get_logger("services.runtime")


def init_engine(config_path: Path | str | None = None) -> EngineSettings:
    """
    Initialize logging and the default event bus from engine settings.

    Postconditions: ``create_machine`` uses the loaded settings.
        ``get_event_bus()`` returns a fresh bus sized by
        ``event_history_size``.  Logging is configured at ``log_level``
        unless it was already configured.

    Raises:
        ConfigurationError: the settings file is missing or malformed.
    """
    settings = get_active_settings(config_path)
    use_settings(settings)
    configure_logging(level=settings.log_level)
    install_event_bus(EventBus(history_size=settings.event_history_size))
    logger.info(
        "engine_initialized",
        extra={
            "log_level": settings.log_level,
            "event_history_size": settings.event_history_size,
            "rollback_on_failure": settings.rollback_on_failure,
            "strict_definitions": settings.strict_definitions,
        },
    )
    return settings
