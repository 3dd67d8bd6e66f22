"""Tests for payment confirmation."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from auction_settlement.domain import fees, payment
from auction_settlement.domain.enums import (
    EventType,
    FeesStatus,
    FulfillmentStatus,
    PaymentStatus,
)
from auction_settlement.domain.exceptions import (
    InvalidStateTransitionError,
    PaymentPreconditionFailedError,
    ValidationFailedError,
)
from auction_settlement.domain.invoice import Invoice


class TestConfirmPayment:
    def test_paid_and_processing(self, invoice: Invoice, now: datetime) -> None:
        paid_at = now - timedelta(minutes=5)
        events = payment.confirm_payment(invoice, "card", paid_at, now, "pi_123")
        assert invoice.payment_status is PaymentStatus.PAID
        assert invoice.fulfillment_status is FulfillmentStatus.PROCESSING
        assert invoice.paid_at == paid_at
        assert invoice.payment_method == "card"
        assert invoice.payment_reference == "pi_123"
        assert [e.event_type for e in events] == [
            EventType.PAYMENT_CONFIRMED,
            EventType.PAYMENT_RECEIVED,
        ]
        assert events[0].target_actor_id == invoice.buyer_id
        assert events[1].target_actor_id == invoice.seller_id
        assert events[0].payload["amount"] == "10500.00"

    def test_refused_while_fees_pending(self, pending_fees_invoice: Invoice, now: datetime) -> None:
        with pytest.raises(PaymentPreconditionFailedError) as exc_info:
            payment.confirm_payment(pending_fees_invoice, "card", now, now)
        assert exc_info.value.code == "PAYMENT_PRECONDITION_FAILED"
        assert pending_fees_invoice.payment_status is PaymentStatus.PENDING
        assert pending_fees_invoice.fulfillment_status is FulfillmentStatus.AWAITING_PAYMENT

    def test_accepted_after_approval(self, pending_fees_invoice: Invoice, now: datetime) -> None:
        fees.approve_fees(pending_fees_invoice, now)
        payment.confirm_payment(pending_fees_invoice, "ach", now, now)
        assert pending_fees_invoice.is_paid
        assert pending_fees_invoice.fees_status is FeesStatus.APPROVED

    def test_unsubmitted_draft_is_paid_as_is(self, invoice: Invoice, now: datetime) -> None:
        invoice.shipping_amount = invoice.shipping_amount + 100
        payment.confirm_payment(invoice, "card", now, now)
        assert invoice.fees_status is FeesStatus.NONE
        assert invoice.is_paid

    def test_only_once(self, paid_invoice: Invoice, now: datetime) -> None:
        with pytest.raises(InvalidStateTransitionError):
            payment.confirm_payment(paid_invoice, "card", now, now)

    def test_method_required(self, invoice: Invoice, now: datetime) -> None:
        with pytest.raises(ValidationFailedError):
            payment.confirm_payment(invoice, " ", now, now)
        assert not invoice.is_paid
