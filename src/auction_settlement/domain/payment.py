"""Payment confirmation — the one event this system accepts from the gateway.

The gateway only reports that money moved; whether the invoice may accept
it is decided here. Payment is refused while a fee proposal is awaiting
the buyer, because the amount the buyer would be paying is still open.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from auction_settlement.domain.enums import (
    EventType,
    FeesStatus,
    FulfillmentStatus,
    PaymentStatus,
)
from auction_settlement.domain.events import DomainEvent
from auction_settlement.domain.exceptions import (
    PaymentPreconditionFailedError,
    ValidationFailedError,
)
from auction_settlement.domain.state_machine import (
    FulfillmentMachine,
    PaymentMachine,
    fire_transition,
)

if TYPE_CHECKING:
    from datetime import datetime

    from auction_settlement.domain.invoice import Invoice


def confirm_payment(
    invoice: Invoice,
    method: str,
    paid_at: datetime,
    now: datetime,
    payment_reference: str | None = None,
) -> list[DomainEvent]:
    """Mark the invoice paid and move fulfillment to processing."""
    if not method or not method.strip():
        raise ValidationFailedError("method", "Payment method is required")

    new_payment_status = fire_transition(
        PaymentMachine, invoice.payment_status.value, "confirm", "invoice is already paid"
    )
    if invoice.fees_status is FeesStatus.PENDING_APPROVAL:
        raise PaymentPreconditionFailedError(
            str(invoice.id), "fees are awaiting buyer approval"
        )

    invoice.payment_status = PaymentStatus(new_payment_status)
    invoice.paid_at = paid_at
    invoice.payment_method = method.strip()
    if payment_reference:
        invoice.payment_reference = payment_reference
    if invoice.fulfillment_status is FulfillmentStatus.AWAITING_PAYMENT:
        invoice.fulfillment_status = FulfillmentStatus(
            fire_transition(FulfillmentMachine, invoice.fulfillment_status.value, "start_processing")
        )
    invoice.touch(now)

    amount = f"${invoice.total_amount:,.2f}"
    payload = {
        "amount": str(invoice.total_amount),
        "method": invoice.payment_method,
        "payment_reference": invoice.payment_reference,
        "paid_at": paid_at.isoformat(),
    }
    return [
        DomainEvent(
            event_type=EventType.PAYMENT_CONFIRMED,
            invoice_id=str(invoice.id),
            target_actor_id=invoice.buyer_id,
            summary=(
                f"Your payment of {amount} for invoice {invoice.invoice_number} was processed; "
                "the seller will prepare your item for shipping"
            ),
            payload=payload,
            occurred_at=now,
        ),
        DomainEvent(
            event_type=EventType.PAYMENT_RECEIVED,
            invoice_id=str(invoice.id),
            target_actor_id=invoice.seller_id,
            summary=(
                f"{amount} payment received for invoice {invoice.invoice_number}; "
                "the item is ready to be shipped"
            ),
            payload=payload,
            occurred_at=now,
        ),
    ]
