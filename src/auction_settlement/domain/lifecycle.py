"""Command routing for the invoice aggregate.

execute() is the in-memory half of the orchestrator: authorize, delegate to
the owning sub-protocol, check the ledger still reconciles. It never does
I/O; uploads must already have been turned into references.

    events = execute(invoice, ApproveFees(), actor_id="b-1", actor_role=ActorRole.BUYER)
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from auction_settlement.domain import delivery, fees, fulfillment, pricing
from auction_settlement.domain.commands import (
    ApproveFees,
    AttachShippingDocuments,
    ConfirmDelivery,
    MarkDelivered,
    MarkShipped,
    RejectFees,
    SaveFeeDraft,
    SubmitFeesForApproval,
    UpdateFreightDetails,
    authorize,
    commands_for,
)
from auction_settlement.domain.enums import CommandType, FeesStatus, FulfillmentStatus
from auction_settlement.domain.state_machine import (
    FeeNegotiationMachine,
    FulfillmentMachine,
    allowed_events,
)

if TYPE_CHECKING:
    from auction_settlement.domain.commands import Command
    from auction_settlement.domain.enums import ActorRole
    from auction_settlement.domain.events import DomainEvent
    from auction_settlement.domain.invoice import Invoice


def execute(
    invoice: Invoice,
    command: Command,
    actor_id: str,
    actor_role: ActorRole,
    now: datetime | None = None,
) -> list[DomainEvent]:
    """Apply one command to the invoice in place and return the emitted events.

    Raises a SettlementError subclass, before any field is touched, when the
    actor may not issue the command or the command is invalid in the
    current state.
    """
    authorize(invoice, command, actor_id, actor_role)
    now = now or datetime.now(UTC)

    match command:
        case SaveFeeDraft():
            events = fees.save_fee_draft(invoice, command, now)
        case SubmitFeesForApproval():
            events = fees.submit_fees_for_approval(invoice, now)
        case ApproveFees():
            events = fees.approve_fees(invoice, now)
        case RejectFees():
            events = fees.reject_fees(invoice, command, now)
        case MarkShipped():
            events = fulfillment.mark_shipped(invoice, command, now)
        case UpdateFreightDetails():
            events = fulfillment.update_freight_details(invoice, command, now)
        case MarkDelivered():
            events = fulfillment.mark_delivered(invoice, now)
        case ConfirmDelivery():
            events = delivery.confirm_delivery(invoice, command, actor_id, now)
        case AttachShippingDocuments():
            events = delivery.attach_shipping_documents(invoice, command, now)
        case _:
            raise TypeError(f"Unsupported command: {type(command).__name__}")

    pricing.recompute(invoice)
    return events


def _is_available(invoice: Invoice, command_type: CommandType) -> bool:
    fee_events = allowed_events(FeeNegotiationMachine, invoice.fees_status.value)
    shipping_events = allowed_events(FulfillmentMachine, invoice.fulfillment_status.value)

    match command_type:
        case CommandType.SAVE_FEE_DRAFT:
            return not invoice.is_paid and invoice.fees_status is not FeesStatus.APPROVED
        case CommandType.SUBMIT_FEES_FOR_APPROVAL:
            return not invoice.is_paid and "submit" in fee_events and invoice.fee_amount > 0
        case CommandType.APPROVE_FEES:
            return "approve" in fee_events
        case CommandType.REJECT_FEES:
            return "reject" in fee_events
        case CommandType.MARK_SHIPPED:
            return invoice.is_paid and "ship" in shipping_events
        case CommandType.UPDATE_FREIGHT_DETAILS:
            return "update_freight" in shipping_events
        case CommandType.MARK_DELIVERED:
            return "seller_marks_delivered" in shipping_events
        case CommandType.CONFIRM_DELIVERY:
            return invoice.delivery_confirmed_at is None and invoice.fulfillment_status in (
                FulfillmentStatus.SHIPPED,
                FulfillmentStatus.DELIVERED,
            )
        case CommandType.ATTACH_SHIPPING_DOCUMENTS:
            return invoice.fulfillment_status in (
                FulfillmentStatus.SHIPPED,
                FulfillmentStatus.DELIVERED,
            )
    return False


def available_commands(invoice: Invoice, role: ActorRole) -> list[CommandType]:
    """Commands the given party could issue right now."""
    return [cmd for cmd in commands_for(role) if _is_available(invoice, cmd)]
