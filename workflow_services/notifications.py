"""
workflow_services.notifications -- notification dispatch for workflow actions.

Workflow actions and hooks call ``notifier.notify(level, title, body)``
(e.g. "Quotation Approved").  The call is treated like any other action:
if it raises, the transition fails.  Delivery channels are strategies
behind the ``Notifier`` protocol; ``CompositeNotifier`` fans out to the
available ones.
"""

from __future__ import annotations

import inspect
from enum import Enum
from typing import Any, Awaitable, Protocol, runtime_checkable

from workflow_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


class NotificationLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@runtime_checkable
class Notifier(Protocol):
    def notify(
        self, level: NotificationLevel, title: str, body: str
    ) -> Awaitable[None] | None: ...


class LoggingNotifier:
    """Writes notifications to the structured log."""

    name = "log"

    def notify(self, level: NotificationLevel, title: str, body: str) -> None:
        log_level = "warning" if level in (NotificationLevel.WARNING, NotificationLevel.ERROR) else "info"
        getattr(logger, log_level)(
            "notification",
            extra={"notification_level": level.value, "title": title, "body": body},
        )


class CompositeNotifier:
    """Sends each notification through every channel, in order.

    A failing channel fails the whole call, so the calling action fails.
    """

    def __init__(self, *channels: Any) -> None:
        self._channels = list(channels)

    def add(self, channel: Any) -> None:
        self._channels.append(channel)

    async def notify(self, level: NotificationLevel, title: str, body: str) -> None:
        for channel in self._channels:
            result = channel.notify(level, title, body)
            if inspect.isawaitable(result):
                await result


async def dispatch(notifier: Notifier, level: NotificationLevel, title: str, body: str) -> None:
    """Call ``notifier`` and await it if it returned an awaitable."""
    result = notifier.notify(level, title, body)
    if inspect.isawaitable(result):
        await result
