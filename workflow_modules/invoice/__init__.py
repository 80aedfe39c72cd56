"""Invoice lifecycle: sending, payments, overdue handling."""

from workflow_modules.invoice.models import InvoiceContext
from workflow_modules.invoice.workflows import (
    INVOICE_WORKFLOW,
    build_invoice_workflow,
    create_invoice_context,
    payment_target_state,
)

__all__ = [
    "INVOICE_WORKFLOW",
    "InvoiceContext",
    "build_invoice_workflow",
    "create_invoice_context",
    "payment_target_state",
]
