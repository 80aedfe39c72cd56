"""Invoice workflow context."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal


@dataclass
class InvoiceContext:
    id: int = 0
    contact_id: int = 0
    total_amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")
    due_date: date | None = None

    @property
    def balance_due(self) -> Decimal:
        return Decimal(str(self.total_amount)) - Decimal(str(self.paid_amount))
