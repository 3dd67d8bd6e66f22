"""Delivery confirmation — the buyer's attestation of receipt and condition.

Independent of the seller's mark_delivered: the buyer may confirm once the
item has shipped, whether or not the seller already marked it delivered,
and a confirmation completes fulfillment on its own if needed.

File payloads are uploaded by the orchestrator before these functions run;
here only stable references are recorded.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from auction_settlement.domain.enums import DeliveryCondition, EventType, FulfillmentStatus
from auction_settlement.domain.events import DomainEvent
from auction_settlement.domain.exceptions import (
    AlreadyConfirmedError,
    InvalidStateTransitionError,
    ValidationFailedError,
)
from auction_settlement.domain.state_machine import FulfillmentMachine, fire_transition

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from auction_settlement.domain.commands import AttachShippingDocuments, ConfirmDelivery
    from auction_settlement.domain.invoice import Invoice

_DOCUMENTABLE = frozenset({FulfillmentStatus.SHIPPED, FulfillmentStatus.DELIVERED})


def parse_condition(value: DeliveryCondition | str) -> DeliveryCondition:
    try:
        return DeliveryCondition(value)
    except ValueError as err:
        allowed = ", ".join(c.value for c in DeliveryCondition)
        raise ValidationFailedError(
            "condition", f"Unknown delivery condition '{value}'. Expected one of: {allowed}"
        ) from err


def _merge_references(existing: list[str], new: Iterable[str]) -> list[str]:
    merged = list(existing)
    for ref in new:
        if ref and ref not in merged:
            merged.append(ref)
    return merged


def _notes_summary(notes: str, limit: int = 140) -> str:
    return notes if len(notes) <= limit else notes[: limit - 1] + "…"


def confirm_delivery(
    invoice: Invoice, command: ConfirmDelivery, actor_id: str, now: datetime
) -> list[DomainEvent]:
    """Record the buyer's confirmation. Allowed exactly once.

    Accepted while shipped, or after the seller's mark_delivered, in which
    case fulfillment is already complete and stays delivered.
    """
    if invoice.delivery_confirmed_at is not None:
        raise AlreadyConfirmedError(str(invoice.id))

    condition = parse_condition(command.condition)
    notes = (command.notes or "").strip()
    if condition is not DeliveryCondition.GOOD and not notes:
        raise ValidationFailedError(
            "notes", f"Describe the problem when reporting a {condition.value} delivery"
        )

    if invoice.fulfillment_status is FulfillmentStatus.SHIPPED:
        invoice.fulfillment_status = FulfillmentStatus(
            fire_transition(
                FulfillmentMachine, invoice.fulfillment_status.value, "buyer_confirms_delivery"
            )
        )
        invoice.delivered_at = now
    elif invoice.fulfillment_status is not FulfillmentStatus.DELIVERED:
        raise InvalidStateTransitionError(
            invoice.fulfillment_status.value,
            "confirm_delivery",
            "the item has not shipped yet",
        )

    invoice.delivery_confirmed_at = now
    invoice.delivery_confirmed_by = actor_id
    invoice.delivery_condition = condition
    invoice.delivery_notes = notes or None
    if command.signed_document_reference:
        invoice.signed_document_reference = command.signed_document_reference
    invoice.damage_evidence_references = _merge_references(
        invoice.damage_evidence_references, command.damage_evidence_references
    )
    invoice.touch(now)

    summary = f"The buyer confirmed delivery in {condition.value} condition"
    if notes:
        summary = f"{summary}: {_notes_summary(notes)}"
    return [
        DomainEvent(
            event_type=EventType.DELIVERY_CONFIRMED,
            invoice_id=str(invoice.id),
            target_actor_id=invoice.seller_id,
            summary=summary,
            payload={
                "condition": condition.value,
                "notes": notes,
                "signed_document_reference": invoice.signed_document_reference,
                "damage_evidence_references": list(invoice.damage_evidence_references),
            },
            occurred_at=now,
        )
    ]


def attach_shipping_documents(
    invoice: Invoice, command: AttachShippingDocuments, now: datetime
) -> list[DomainEvent]:
    """Append evidence ahead of (or after) confirmation. Never moves fulfillment."""
    if invoice.fulfillment_status not in _DOCUMENTABLE:
        raise InvalidStateTransitionError(
            invoice.fulfillment_status.value,
            "attach_shipping_documents",
            "documents can be attached once the item has shipped",
        )
    photos = [ref for ref in command.additional_photo_references if ref]
    if not command.signed_document_reference and not photos:
        raise ValidationFailedError("documents", "No documents supplied")

    if command.signed_document_reference:
        invoice.signed_document_reference = command.signed_document_reference
    invoice.additional_photo_references = _merge_references(
        invoice.additional_photo_references, photos
    )
    invoice.touch(now)

    return [
        DomainEvent(
            event_type=EventType.SHIPPING_DOCUMENTS_ATTACHED,
            invoice_id=str(invoice.id),
            target_actor_id=invoice.seller_id,
            summary=f"The buyer attached {len(photos) + bool(command.signed_document_reference)} document(s)",
            payload={
                "signed_document_reference": invoice.signed_document_reference,
                "additional_photo_references": list(invoice.additional_photo_references),
            },
            occurred_at=now,
        )
    ]
