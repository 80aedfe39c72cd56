"""
Invoice Workflow.

    draft -> sent -> partial -> paid
      |       |   \\    |
  cancelled  void  overdue -> paid

RECORD_PAYMENT resolves to one of two candidates, tried in order: full
settlement (``paid``) first, then the partial-payment fallback.  A partial
payment on an overdue invoice keeps it overdue.
"""

from __future__ import annotations

from dataclasses import fields
from typing import Any

from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.workflow import (
    MachineDefinition,
    MachineEvent,
    StateDefinition,
    TransitionDefinition,
)
from workflow_kernel.logging_config import get_logger
from workflow_modules._helpers import is_past, payload_amount, to_decimal
from workflow_modules.invoice.models import InvoiceContext
from workflow_services.notifications import (
    LoggingNotifier,
    NotificationLevel,
    Notifier,
    dispatch,
)

logger = get_logger("modules.invoice.workflows")

WORKFLOW_ID = "invoice"


def create_invoice_context(**overrides: Any) -> dict[str, Any]:
    """Pick the invoice fields out of ``overrides`` (extra record fields are ignored)."""
    names = {f.name for f in fields(InvoiceContext)}
    return {k: v for k, v in overrides.items() if k in names}


def payment_target_state(paid_amount: Any, total_amount: Any) -> str:
    """Which state a payment total leads to."""
    return "paid" if to_decimal(paid_amount) >= to_decimal(total_amount) else "partial"


def build_invoice_workflow(
    notifier: Notifier | None = None,
    clock: Clock | None = None,
) -> MachineDefinition:
    notifier = notifier or LoggingNotifier()
    clock = clock or SystemClock()

    # Guards

    def has_amount(ctx: InvoiceContext, event: MachineEvent) -> bool:
        return to_decimal(ctx.total_amount) > 0

    def positive_payment(ctx: InvoiceContext, event: MachineEvent) -> bool:
        return payload_amount(event) > 0

    def settles_balance(ctx: InvoiceContext, event: MachineEvent) -> bool:
        amount = payload_amount(event)
        return amount > 0 and payment_target_state(
            to_decimal(ctx.paid_amount) + amount, ctx.total_amount
        ) == "paid"

    def past_due(ctx: InvoiceContext, event: MachineEvent) -> bool:
        return is_past(ctx.due_date, clock)

    # Actions

    def log_sent(ctx: InvoiceContext, event: MachineEvent) -> None:
        logger.info("invoice_sent", extra={"invoice_id": ctx.id})

    def apply_payment(ctx: InvoiceContext, event: MachineEvent) -> None:
        amount = payload_amount(event)
        ctx.paid_amount = to_decimal(ctx.paid_amount) + amount
        logger.info(
            "invoice_payment_recorded",
            extra={
                "invoice_id": ctx.id,
                "amount": amount,
                "paid_amount": ctx.paid_amount,
            },
        )

    async def notify_paid(ctx: InvoiceContext) -> None:
        await dispatch(
            notifier,
            NotificationLevel.SUCCESS,
            "Invoice Paid",
            f"Invoice {ctx.id} is fully paid ({ctx.total_amount})",
        )

    def record_payment(partial_target: str) -> list[TransitionDefinition]:
        return [
            TransitionDefinition(
                target="paid",
                guard=settles_balance,
                guard_message="Payment does not settle the invoice",
                actions=(apply_payment,),
            ),
            TransitionDefinition(
                target=partial_target,
                guard=positive_payment,
                guard_message="Payment amount must be positive",
                actions=(apply_payment,),
            ),
        ]

    mark_overdue = TransitionDefinition(
        target="overdue",
        guard=past_due,
        guard_message="Invoice is not yet overdue",
    )

    return MachineDefinition(
        id=WORKFLOW_ID,
        description="Customer invoice lifecycle",
        initial="draft",
        context=InvoiceContext(),
        states={
            "draft": StateDefinition(
                label="Draft",
                description="Invoice is being prepared",
                on={
                    "SEND": TransitionDefinition(
                        target="sent",
                        guard=has_amount,
                        guard_message="Cannot send invoice with zero amount",
                        actions=(log_sent,),
                    ),
                    "CANCEL": "cancelled",
                },
            ),
            "sent": StateDefinition(
                label="Sent",
                description="Invoice sent to customer",
                on={
                    "RECORD_PAYMENT": record_payment("partial"),
                    "MARK_OVERDUE": mark_overdue,
                    "VOID": "void",
                },
            ),
            "partial": StateDefinition(
                label="Partial",
                description="Partially paid",
                on={
                    "RECORD_PAYMENT": record_payment("partial"),
                    "MARK_OVERDUE": mark_overdue,
                    "VOID": "void",
                },
            ),
            "overdue": StateDefinition(
                label="Overdue",
                description="Payment is past due",
                on={
                    "RECORD_PAYMENT": record_payment("overdue"),
                    "VOID": "void",
                },
            ),
            "paid": StateDefinition(
                label="Paid",
                description="Fully paid",
                final=True,
                on_enter=notify_paid,
            ),
            "void": StateDefinition(
                label="Void",
                description="Invoice voided",
                final=True,
            ),
            "cancelled": StateDefinition(
                label="Cancelled",
                description="Invoice cancelled",
                final=True,
            ),
        },
    )


INVOICE_WORKFLOW = build_invoice_workflow()

logger.info(
    "invoice_workflow_registered",
    extra={
        "workflow_name": INVOICE_WORKFLOW.id,
        "state_count": len(INVOICE_WORKFLOW.states),
        "initial_state": INVOICE_WORKFLOW.initial,
    },
)

__all__ = [
    "INVOICE_WORKFLOW",
    "WORKFLOW_ID",
    "build_invoice_workflow",
    "create_invoice_context",
    "payment_target_state",
]
