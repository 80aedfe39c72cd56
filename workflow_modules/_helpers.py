"""Shared guard/action helpers for document workflows."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from workflow_kernel.domain.clock import Clock


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, floats and strings to Decimal via ``str`` (no binary float noise)."""
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


def payload_amount(event: Any) -> Decimal:
    """The ``amount`` field of an event payload, or zero when absent."""
    return to_decimal(event.get("amount"))


def is_past(day: date | None, clock: Clock) -> bool:
    """True when ``day`` is set and strictly before today."""
    return day is not None and clock.today() > day
