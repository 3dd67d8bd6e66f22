"""Fee negotiation protocol — seller-proposed packaging and shipping fees.

    none -> pending_approval -> {approved | rejected}
    rejected -> pending_approval   (resubmission)
    approved is terminal

Saving a draft updates the amounts (and therefore total_amount) without
touching fees_status. A nonzero draft is part of the payable total even
while fees_status is none; the unapproved share is exposed on the read
projection as unapproved_fees_amount.

Nothing here may run once the invoice is paid.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from auction_settlement.domain import pricing
from auction_settlement.domain.enums import EventType, FeesStatus
from auction_settlement.domain.events import DomainEvent
from auction_settlement.domain.exceptions import (
    InvalidStateTransitionError,
    ValidationFailedError,
)
from auction_settlement.domain.state_machine import FeeNegotiationMachine, fire_transition

if TYPE_CHECKING:
    from datetime import datetime
    from decimal import Decimal

    from auction_settlement.domain.commands import RejectFees, SaveFeeDraft
    from auction_settlement.domain.invoice import Invoice


def _money(amount: Decimal) -> str:
    return f"${amount:,.2f}"


def _ensure_unpaid(invoice: Invoice, attempted: str) -> None:
    if invoice.is_paid:
        raise InvalidStateTransitionError(
            invoice.payment_status.value,
            attempted,
            "fees cannot change once the invoice is paid",
        )


def _validated_amount(value: Decimal | None, current: Decimal, field: str) -> Decimal:
    if value is None:
        return current
    amount = pricing.to_money(value)
    if amount < 0:
        raise ValidationFailedError(field, f"{field} cannot be negative")
    return pricing.ensure_within_limit(amount, field)


def _fee_payload(invoice: Invoice) -> dict:
    return {
        "packaging_amount": str(invoice.packaging_amount),
        "shipping_amount": str(invoice.shipping_amount),
        "packaging_note": invoice.packaging_note,
        "shipping_note": invoice.shipping_note,
        "shipping_quote_reference": invoice.shipping_quote_reference,
        "total_amount": str(invoice.total_amount),
    }


def save_fee_draft(invoice: Invoice, draft: SaveFeeDraft, now: datetime) -> list[DomainEvent]:
    """Store amounts and notes, recompute the total, leave fees_status alone."""
    _ensure_unpaid(invoice, "save_fee_draft")
    if invoice.fees_status is FeesStatus.APPROVED:
        raise InvalidStateTransitionError(
            invoice.fees_status.value, "save_fee_draft", "approved fees are final"
        )

    packaging = _validated_amount(draft.packaging_amount, invoice.packaging_amount, "packaging_amount")
    shipping = _validated_amount(draft.shipping_amount, invoice.shipping_amount, "shipping_amount")
    if invoice.fees_status is FeesStatus.PENDING_APPROVAL and packaging + shipping <= 0:
        raise ValidationFailedError(
            "fees", "Fees awaiting approval cannot be cleared to zero"
        )
    pricing.ensure_within_limit(
        pricing.to_money(
            invoice.sale_amount + invoice.buyer_premium_amount + packaging + shipping + invoice.tax_amount
        ),
        "total_amount",
    )

    invoice.packaging_amount = packaging
    invoice.shipping_amount = shipping
    if draft.packaging_note is not None:
        invoice.packaging_note = draft.packaging_note.strip() or None
    if draft.shipping_note is not None:
        invoice.shipping_note = draft.shipping_note.strip() or None
    if draft.shipping_quote_reference is not None:
        invoice.shipping_quote_reference = draft.shipping_quote_reference
    pricing.recompute(invoice)
    invoice.touch(now)

    return [
        DomainEvent(
            event_type=EventType.FEES_DRAFT_SAVED,
            invoice_id=str(invoice.id),
            target_actor_id=invoice.seller_id,
            summary=f"Fee draft saved: total now {_money(invoice.total_amount)}",
            payload=_fee_payload(invoice),
            occurred_at=now,
        )
    ]


def submit_fees_for_approval(invoice: Invoice, now: datetime) -> list[DomainEvent]:
    """Send the current fee amounts to the buyer for approval."""
    _ensure_unpaid(invoice, "submit_fees_for_approval")
    if invoice.fee_amount <= 0:
        raise ValidationFailedError(
            "fees", "Add a packaging or shipping amount before submitting for approval"
        )

    new_status = fire_transition(FeeNegotiationMachine, invoice.fees_status.value, "submit")
    invoice.fees_status = FeesStatus(new_status)
    invoice.fees_submitted_at = now
    invoice.fees_responded_at = None
    invoice.fees_rejection_reason = None
    invoice.touch(now)

    return [
        DomainEvent(
            event_type=EventType.FEES_SUBMITTED,
            invoice_id=str(invoice.id),
            target_actor_id=invoice.buyer_id,
            summary=(
                f"The seller added {_money(invoice.packaging_amount)} packaging and "
                f"{_money(invoice.shipping_amount)} shipping; your approval is needed"
            ),
            payload=_fee_payload(invoice),
            occurred_at=now,
        )
    ]


def approve_fees(invoice: Invoice, now: datetime) -> list[DomainEvent]:
    new_status = fire_transition(FeeNegotiationMachine, invoice.fees_status.value, "approve")
    invoice.fees_status = FeesStatus(new_status)
    invoice.fees_responded_at = now
    invoice.touch(now)

    return [
        DomainEvent(
            event_type=EventType.FEES_APPROVED,
            invoice_id=str(invoice.id),
            target_actor_id=invoice.seller_id,
            summary=(
                f"The buyer approved your fees; invoice total is {_money(invoice.total_amount)}"
            ),
            payload=_fee_payload(invoice),
            occurred_at=now,
        )
    ]


def reject_fees(invoice: Invoice, command: RejectFees, now: datetime) -> list[DomainEvent]:
    reason = (command.reason or "").strip()
    if not reason:
        raise ValidationFailedError("reason", "Rejecting fees requires a reason")

    new_status = fire_transition(FeeNegotiationMachine, invoice.fees_status.value, "reject")
    invoice.fees_status = FeesStatus(new_status)
    invoice.fees_rejection_reason = reason
    invoice.fees_responded_at = now
    invoice.touch(now)

    return [
        DomainEvent(
            event_type=EventType.FEES_REJECTED,
            invoice_id=str(invoice.id),
            target_actor_id=invoice.seller_id,
            summary=f"The buyer rejected your fees: {reason}",
            payload={**_fee_payload(invoice), "reason": reason},
            occurred_at=now,
        )
    ]
