"""Purchase order lifecycle: approval, ordering, goods receipt."""

from workflow_modules.purchase_order.models import PurchaseOrderContext
from workflow_modules.purchase_order.workflows import (
    PURCHASE_ORDER_WORKFLOW,
    build_purchase_order_workflow,
    create_purchase_order_context,
)

__all__ = [
    "PURCHASE_ORDER_WORKFLOW",
    "PurchaseOrderContext",
    "build_purchase_order_workflow",
    "create_purchase_order_context",
]
