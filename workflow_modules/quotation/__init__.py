"""Quotation lifecycle: draft, approval, conversion to invoice."""

from workflow_modules.quotation.models import QuotationContext
from workflow_modules.quotation.workflows import (
    QUOTATION_WORKFLOW,
    build_quotation_workflow,
    create_quotation_context,
)

__all__ = [
    "QUOTATION_WORKFLOW",
    "QuotationContext",
    "build_quotation_workflow",
    "create_quotation_context",
]
