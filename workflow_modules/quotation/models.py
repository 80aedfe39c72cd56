"""Quotation workflow context."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal


@dataclass
class QuotationContext:
    """Fields of a quotation record that the lifecycle rules read or write."""

    id: int = 0
    contact_id: int = 0
    total_amount: Decimal = Decimal("0")
    valid_until: date | None = None
    rejection_reason: str | None = None
    converted_invoice_id: int | None = None
