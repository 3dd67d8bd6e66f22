"""Fulfillment tracker — seller-side shipment and delivery.

    awaiting_payment -> processing -> shipped -> delivered

Shipping requires a confirmed payment. Freight metadata arrives
incrementally: the first batch with mark_shipped, the rest through
update_freight_details, which only ever fills in or overwrites the
fields it is given.

mark_delivered is the seller's own assertion. It does not populate the
buyer's delivery confirmation (see delivery.py).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from auction_settlement.domain.enums import EventType, FulfillmentStatus
from auction_settlement.domain.events import DomainEvent
from auction_settlement.domain.exceptions import (
    InvalidStateTransitionError,
    ValidationFailedError,
)
from auction_settlement.domain.state_machine import FulfillmentMachine, fire_transition

if TYPE_CHECKING:
    from datetime import datetime

    from auction_settlement.domain.commands import MarkShipped, UpdateFreightDetails
    from auction_settlement.domain.invoice import Invoice


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def _tracking_reference(pro_number: str | None, tracking_number: str | None) -> str | None:
    # A PRO number is the carrier's canonical freight tracking id
    return _clean(pro_number) or _clean(tracking_number)


def mark_shipped(invoice: Invoice, command: MarkShipped, now: datetime) -> list[DomainEvent]:
    if not invoice.is_paid:
        raise InvalidStateTransitionError(
            invoice.payment_status.value,
            "mark_shipped",
            "payment must be confirmed before shipping",
        )
    carrier = _clean(command.carrier)
    if not carrier:
        raise ValidationFailedError("carrier", "A carrier is required to mark the item shipped")

    new_status = fire_transition(FulfillmentMachine, invoice.fulfillment_status.value, "ship")

    invoice.fulfillment_status = FulfillmentStatus(new_status)
    invoice.carrier = carrier
    invoice.shipped_at = now
    invoice.freight = command.freight.apply_to(invoice.freight)
    tracking = _tracking_reference(command.freight.pro_number, command.tracking_number)
    if tracking:
        invoice.tracking_reference = tracking
    invoice.touch(now)

    summary = f"Your item has shipped via {carrier}"
    if invoice.tracking_reference:
        summary = f"{summary} (tracking {invoice.tracking_reference})"
    return [
        DomainEvent(
            event_type=EventType.ITEM_SHIPPED,
            invoice_id=str(invoice.id),
            target_actor_id=invoice.buyer_id,
            summary=summary,
            payload={
                "carrier": carrier,
                "tracking_reference": invoice.tracking_reference,
                "freight": invoice.freight.to_dict(),
            },
            occurred_at=now,
        )
    ]


def update_freight_details(
    invoice: Invoice, command: UpdateFreightDetails, now: datetime
) -> list[DomainEvent]:
    """Merge non-empty freight fields over the stored metadata."""
    fire_transition(
        FulfillmentMachine,
        invoice.fulfillment_status.value,
        "update_freight",
        "freight details can only be updated after shipping",
    )
    changes = command.freight.changes()
    carrier = _clean(command.carrier)
    tracking = _tracking_reference(command.freight.pro_number, command.tracking_number)
    if not changes and not carrier and not tracking:
        raise ValidationFailedError("freight", "No freight details supplied")

    invoice.freight = command.freight.apply_to(invoice.freight)
    if carrier:
        invoice.carrier = carrier
    if tracking:
        invoice.tracking_reference = tracking
    invoice.touch(now)

    updated = sorted(changes)
    if carrier:
        updated.append("carrier")
    if tracking:
        updated.append("tracking_reference")
    return [
        DomainEvent(
            event_type=EventType.FREIGHT_DETAILS_UPDATED,
            invoice_id=str(invoice.id),
            target_actor_id=invoice.buyer_id,
            summary=f"Freight details updated: {', '.join(updated)}",
            payload={"updated_fields": updated, "freight": invoice.freight.to_dict()},
            occurred_at=now,
        )
    ]


def mark_delivered(invoice: Invoice, now: datetime) -> list[DomainEvent]:
    new_status = fire_transition(
        FulfillmentMachine, invoice.fulfillment_status.value, "seller_marks_delivered"
    )
    invoice.fulfillment_status = FulfillmentStatus(new_status)
    invoice.delivered_at = now
    invoice.touch(now)

    return [
        DomainEvent(
            event_type=EventType.ITEM_DELIVERED,
            invoice_id=str(invoice.id),
            target_actor_id=invoice.buyer_id,
            summary="The seller marked your item as delivered",
            payload={
                "carrier": invoice.carrier,
                "tracking_reference": invoice.tracking_reference,
                "delivered_at": now.isoformat(),
            },
            occurred_at=now,
        )
    ]
