"""
Purchase Order Workflow.

    draft -> submitted -> approved -> ordered -> partial_received -> received
      |        |    ^         |          |
  cancelled    v    |     cancelled   received
            rejected

A rejected PO can be re-submitted, so submitted/rejected form a cycle.
RECEIVE_PARTIAL completes the order when the cumulative received amount
reaches the total.
"""

from __future__ import annotations

from dataclasses import fields
from typing import Any

from workflow_kernel.domain.workflow import (
    MachineDefinition,
    MachineEvent,
    StateDefinition,
    TransitionDefinition,
)
from workflow_kernel.logging_config import get_logger
from workflow_modules._helpers import payload_amount, to_decimal
from workflow_modules.purchase_order.models import PurchaseOrderContext
from workflow_services.notifications import (
    LoggingNotifier,
    NotificationLevel,
    Notifier,
    dispatch,
)

logger = get_logger("modules.purchase_order.workflows")

WORKFLOW_ID = "purchase_order"


def create_purchase_order_context(**overrides: Any) -> dict[str, Any]:
    names = {f.name for f in fields(PurchaseOrderContext)}
    return {k: v for k, v in overrides.items() if k in names}


def build_purchase_order_workflow(notifier: Notifier | None = None) -> MachineDefinition:
    notifier = notifier or LoggingNotifier()

    # Guards

    def vendor_and_amount(ctx: PurchaseOrderContext, event: MachineEvent) -> bool:
        return to_decimal(ctx.total_amount) > 0 and (ctx.vendor_id or 0) > 0

    def completes_receipt(ctx: PurchaseOrderContext, event: MachineEvent) -> bool:
        amount = payload_amount(event)
        return amount > 0 and to_decimal(ctx.received_amount) + amount >= to_decimal(ctx.total_amount)

    def positive_receipt(ctx: PurchaseOrderContext, event: MachineEvent) -> bool:
        return payload_amount(event) > 0

    # Actions

    def log_submitted(ctx: PurchaseOrderContext, event: MachineEvent) -> None:
        logger.info("purchase_order_submitted", extra={"purchase_order_id": ctx.id})

    async def notify_approved(ctx: PurchaseOrderContext, event: MachineEvent) -> None:
        await dispatch(
            notifier,
            NotificationLevel.SUCCESS,
            "Purchase Order Approved",
            f"Purchase order {ctx.id} was approved",
        )

    def record_rejection(ctx: PurchaseOrderContext, event: MachineEvent) -> None:
        ctx.rejection_reason = event.get("reason")

    def clear_rejection(ctx: PurchaseOrderContext, event: MachineEvent) -> None:
        ctx.rejection_reason = None

    def log_sent(ctx: PurchaseOrderContext, event: MachineEvent) -> None:
        logger.info("purchase_order_sent_to_vendor", extra={"purchase_order_id": ctx.id})

    def add_received(ctx: PurchaseOrderContext, event: MachineEvent) -> None:
        amount = payload_amount(event)
        ctx.received_amount = to_decimal(ctx.received_amount) + amount
        logger.info(
            "purchase_order_goods_received",
            extra={
                "purchase_order_id": ctx.id,
                "amount": amount,
                "received_amount": ctx.received_amount,
            },
        )

    def receive_all(ctx: PurchaseOrderContext, event: MachineEvent) -> None:
        ctx.received_amount = to_decimal(ctx.total_amount)
        logger.info("purchase_order_fully_received", extra={"purchase_order_id": ctx.id})

    submit = TransitionDefinition(
        target="submitted",
        guard=vendor_and_amount,
        guard_message="PO must have a vendor and amount",
        actions=(log_submitted,),
    )
    receive_partial = [
        TransitionDefinition(
            target="received",
            guard=completes_receipt,
            actions=(add_received,),
        ),
        TransitionDefinition(
            target="partial_received",
            guard=positive_receipt,
            guard_message="Received amount must be positive",
            actions=(add_received,),
        ),
    ]
    receive_full = TransitionDefinition(target="received", actions=(receive_all,))

    return MachineDefinition(
        id=WORKFLOW_ID,
        description="Purchase order lifecycle",
        initial="draft",
        context=PurchaseOrderContext(),
        states={
            "draft": StateDefinition(
                label="Draft",
                description="Purchase order is being prepared",
                on={"SUBMIT": submit, "CANCEL": "cancelled"},
            ),
            "submitted": StateDefinition(
                label="Submitted",
                description="Awaiting approval",
                on={
                    "APPROVE": TransitionDefinition(
                        target="approved",
                        actions=(notify_approved,),
                    ),
                    "REJECT": TransitionDefinition(
                        target="rejected",
                        actions=(record_rejection,),
                    ),
                    "CANCEL": "cancelled",
                },
            ),
            "approved": StateDefinition(
                label="Approved",
                description="Ready to send to vendor",
                on={
                    "SEND_TO_VENDOR": TransitionDefinition(
                        target="ordered",
                        actions=(log_sent,),
                    ),
                    "CANCEL": "cancelled",
                },
            ),
            "rejected": StateDefinition(
                label="Rejected",
                description="PO was rejected",
                on={
                    "SUBMIT": TransitionDefinition(
                        target="submitted",
                        guard=vendor_and_amount,
                        guard_message="PO must have a vendor and amount",
                        actions=(clear_rejection,),
                    ),
                    "CANCEL": "cancelled",
                },
            ),
            "ordered": StateDefinition(
                label="Ordered",
                description="Order placed with vendor",
                on={
                    "RECEIVE_PARTIAL": receive_partial,
                    "RECEIVE_FULL": receive_full,
                    "CANCEL": "cancelled",
                },
            ),
            "partial_received": StateDefinition(
                label="Partial",
                description="Partially received",
                on={
                    "RECEIVE_PARTIAL": receive_partial,
                    "RECEIVE_FULL": receive_full,
                },
            ),
            "received": StateDefinition(
                label="Received",
                description="All goods received",
                final=True,
            ),
            "cancelled": StateDefinition(
                label="Cancelled",
                description="PO was cancelled",
                final=True,
            ),
        },
    )


PURCHASE_ORDER_WORKFLOW = build_purchase_order_workflow()

logger.info(
    "purchase_order_workflow_registered",
    extra={
        "workflow_name": PURCHASE_ORDER_WORKFLOW.id,
        "state_count": len(PURCHASE_ORDER_WORKFLOW.states),
        "initial_state": PURCHASE_ORDER_WORKFLOW.initial,
    },
)
