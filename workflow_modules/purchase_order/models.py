"""Purchase order workflow context."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal


@dataclass
class PurchaseOrderContext:
    id: int = 0
    vendor_id: int = 0
    total_amount: Decimal = Decimal("0")
    received_amount: Decimal = Decimal("0")
    expected_date: date | None = None
    rejection_reason: str | None = None
