"""
Quotation Workflow.

    draft -> submitted -> approved -> converted
      |         |            |  \\
      |      rejected      expired cancelled
      |         |
      +<-- REVISE

Every non-final state can be cancelled.
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
from workflow_modules._helpers import is_past, to_decimal
from workflow_modules.quotation.models import QuotationContext
from workflow_services.notifications import (
    LoggingNotifier,
    NotificationLevel,
    Notifier,
    dispatch,
)

logger = get_logger("modules.quotation.workflows")

WORKFLOW_ID = "quotation"


def create_quotation_context(**overrides: Any) -> dict[str, Any]:
    """Pick the quotation fields out of ``overrides`` (extra record fields are ignored)."""
    names = {f.name for f in fields(QuotationContext)}
    return {k: v for k, v in overrides.items() if k in names}


def build_quotation_workflow(
    notifier: Notifier | None = None,
    clock: Clock | None = None,
) -> MachineDefinition:
    notifier = notifier or LoggingNotifier()
    clock = clock or SystemClock()

    # Guards

    def has_amount(ctx: QuotationContext, event: MachineEvent) -> bool:
        return to_decimal(ctx.total_amount) > 0

    def still_valid(ctx: QuotationContext, event: MachineEvent) -> bool:
        return not is_past(ctx.valid_until, clock)

    def has_expired(ctx: QuotationContext, event: MachineEvent) -> bool:
        return is_past(ctx.valid_until, clock)

    # Actions

    def log_submitted(ctx: QuotationContext, event: MachineEvent) -> None:
        logger.info("quotation_submitted", extra={"quotation_id": ctx.id})

    async def notify_approved(ctx: QuotationContext, event: MachineEvent) -> None:
        await dispatch(
            notifier,
            NotificationLevel.SUCCESS,
            "Quotation Approved",
            f"Quotation {ctx.id} was approved",
        )

    def record_rejection(ctx: QuotationContext, event: MachineEvent) -> None:
        ctx.rejection_reason = event.get("reason")
        logger.info(
            "quotation_rejected",
            extra={"quotation_id": ctx.id, "reason": ctx.rejection_reason},
        )

    def record_conversion(ctx: QuotationContext, event: MachineEvent) -> None:
        if event.get("invoice_id") is not None:
            ctx.converted_invoice_id = event["invoice_id"]
        logger.info(
            "quotation_converted",
            extra={"quotation_id": ctx.id, "invoice_id": ctx.converted_invoice_id},
        )

    def clear_rejection(ctx: QuotationContext, event: MachineEvent) -> None:
        ctx.rejection_reason = None
        logger.info("quotation_revised", extra={"quotation_id": ctx.id})

    def entered_submitted(ctx: QuotationContext) -> None:
        logger.debug("quotation_awaiting_approval", extra={"quotation_id": ctx.id})

    return MachineDefinition(
        id=WORKFLOW_ID,
        description="Sales quotation lifecycle",
        initial="draft",
        context=QuotationContext(),
        states={
            "draft": StateDefinition(
                label="Draft",
                description="Quotation is being prepared",
                on={
                    "SUBMIT": TransitionDefinition(
                        target="submitted",
                        guard=has_amount,
                        guard_message="Cannot submit quotation with zero amount",
                        actions=(log_submitted,),
                    ),
                    "CANCEL": "cancelled",
                },
            ),
            "submitted": StateDefinition(
                label="Submitted",
                description="Awaiting approval",
                on_enter=entered_submitted,
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
                description="Ready for conversion to invoice",
                on={
                    "CONVERT": TransitionDefinition(
                        target="converted",
                        guard=still_valid,
                        guard_message="Cannot convert expired quotation",
                        actions=(record_conversion,),
                    ),
                    "EXPIRE": TransitionDefinition(
                        target="expired",
                        guard=has_expired,
                        guard_message="Quotation has not expired yet",
                    ),
                    "CANCEL": "cancelled",
                },
            ),
            "rejected": StateDefinition(
                label="Rejected",
                description="Quotation was rejected",
                on={
                    "REVISE": TransitionDefinition(
                        target="draft",
                        actions=(clear_rejection,),
                    ),
                    "CANCEL": "cancelled",
                },
            ),
            "converted": StateDefinition(
                label="Converted",
                description="Converted to invoice",
                final=True,
            ),
            "expired": StateDefinition(
                label="Expired",
                description="Past validity date",
                final=True,
            ),
            "cancelled": StateDefinition(
                label="Cancelled",
                description="Quotation was cancelled",
                final=True,
            ),
        },
    )


QUOTATION_WORKFLOW = build_quotation_workflow()

logger.info(
    "quotation_workflow_registered",
    extra={
        "workflow_name": QUOTATION_WORKFLOW.id,
        "state_count": len(QUOTATION_WORKFLOW.states),
        "initial_state": QUOTATION_WORKFLOW.initial,
    },
)
