"""Tests for the fee negotiation protocol."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from auction_settlement.domain import fees, pricing
from auction_settlement.domain.commands import RejectFees, SaveFeeDraft
from auction_settlement.domain.enums import EventType, FeesStatus
from auction_settlement.domain.exceptions import (
    InvalidStateTransitionError,
    ValidationFailedError,
)
from auction_settlement.domain.invoice import Invoice


class TestSaveDraft:
    def test_draft_changes_total_but_not_status(self, invoice: Invoice, now: datetime) -> None:
        events = fees.save_fee_draft(
            invoice,
            SaveFeeDraft(packaging_amount=Decimal("200"), shipping_amount=Decimal("800")),
            now,
        )
        assert invoice.fees_status is FeesStatus.NONE
        assert invoice.total_amount == Decimal("11500.00")
        assert [e.event_type for e in events] == [EventType.FEES_DRAFT_SAVED]
        assert events[0].target_actor_id == invoice.seller_id

    def test_none_leaves_field_unchanged(self, invoice: Invoice, now: datetime) -> None:
        fees.save_fee_draft(invoice, SaveFeeDraft(packaging_amount=Decimal("150")), now)
        fees.save_fee_draft(
            invoice, SaveFeeDraft(shipping_amount=Decimal("50"), shipping_note=" LTL "), now
        )
        assert invoice.packaging_amount == Decimal("150.00")
        assert invoice.shipping_amount == Decimal("50.00")
        assert invoice.shipping_note == "LTL"

    def test_negative_amount_rejected(self, invoice: Invoice, now: datetime) -> None:
        with pytest.raises(ValidationFailedError) as exc_info:
            fees.save_fee_draft(invoice, SaveFeeDraft(shipping_amount=Decimal("-1")), now)
        assert exc_info.value.field == "shipping_amount"
        assert invoice.shipping_amount == Decimal("0")

    def test_amount_too_large_to_store(self, invoice: Invoice, now: datetime) -> None:
        with pytest.raises(ValidationFailedError) as exc_info:
            fees.save_fee_draft(
                invoice, SaveFeeDraft(packaging_amount=Decimal("99999999999999")), now
            )
        assert exc_info.value.field == "packaging_amount"
        assert invoice.packaging_amount == Decimal("0")
        assert invoice.total_amount == Decimal("10500.00")

    def test_total_too_large_to_store(self, invoice: Invoice, now: datetime) -> None:
        with pytest.raises(ValidationFailedError) as exc_info:
            fees.save_fee_draft(
                invoice,
                SaveFeeDraft(
                    packaging_amount=pricing.MAX_AMOUNT, shipping_amount=Decimal("1")
                ),
                now,
            )
        assert exc_info.value.field == "total_amount"
        assert invoice.shipping_amount == Decimal("0")

    def test_cannot_clear_pending_fees(self, pending_fees_invoice: Invoice, now: datetime) -> None:
        with pytest.raises(ValidationFailedError):
            fees.save_fee_draft(
                pending_fees_invoice,
                SaveFeeDraft(packaging_amount=Decimal("0"), shipping_amount=Decimal("0")),
                now,
            )

    def test_approved_fees_are_final(self, pending_fees_invoice: Invoice, now: datetime) -> None:
        fees.approve_fees(pending_fees_invoice, now)
        with pytest.raises(InvalidStateTransitionError):
            fees.save_fee_draft(pending_fees_invoice, SaveFeeDraft(shipping_amount=Decimal("1")), now)

    def test_not_after_payment(self, paid_invoice: Invoice, now: datetime) -> None:
        with pytest.raises(InvalidStateTransitionError):
            fees.save_fee_draft(paid_invoice, SaveFeeDraft(shipping_amount=Decimal("1")), now)


class TestSubmit:
    def test_submit(self, invoice: Invoice, now: datetime) -> None:
        fees.save_fee_draft(invoice, SaveFeeDraft(shipping_amount=Decimal("800")), now)
        events = fees.submit_fees_for_approval(invoice, now)
        assert invoice.fees_status is FeesStatus.PENDING_APPROVAL
        assert invoice.fees_submitted_at == now
        assert events[0].event_type is EventType.FEES_SUBMITTED
        assert events[0].target_actor_id == invoice.buyer_id

    def test_zero_fees_cannot_be_submitted(self, invoice: Invoice, now: datetime) -> None:
        with pytest.raises(ValidationFailedError):
            fees.submit_fees_for_approval(invoice, now)
        assert invoice.fees_status is FeesStatus.NONE

    def test_cannot_submit_twice(self, pending_fees_invoice: Invoice, now: datetime) -> None:
        with pytest.raises(InvalidStateTransitionError):
            fees.submit_fees_for_approval(pending_fees_invoice, now)


class TestRespond:
    def test_approve(self, pending_fees_invoice: Invoice, now: datetime) -> None:
        events = fees.approve_fees(pending_fees_invoice, now)
        assert pending_fees_invoice.fees_status is FeesStatus.APPROVED
        assert pending_fees_invoice.fees_responded_at == now
        assert events[0].target_actor_id == pending_fees_invoice.seller_id

    def test_approve_without_submission(self, invoice: Invoice, now: datetime) -> None:
        with pytest.raises(InvalidStateTransitionError):
            fees.approve_fees(invoice, now)

    def test_reject_stores_reason(self, pending_fees_invoice: Invoice, now: datetime) -> None:
        events = fees.reject_fees(pending_fees_invoice, RejectFees(reason="too expensive"), now)
        assert pending_fees_invoice.fees_status is FeesStatus.REJECTED
        assert pending_fees_invoice.fees_rejection_reason == "too expensive"
        assert events[0].payload["reason"] == "too expensive"

    def test_reject_requires_reason(self, pending_fees_invoice: Invoice, now: datetime) -> None:
        with pytest.raises(ValidationFailedError):
            fees.reject_fees(pending_fees_invoice, RejectFees(reason="   "), now)
        assert pending_fees_invoice.fees_status is FeesStatus.PENDING_APPROVAL

    def test_resubmit_after_rejection(self, pending_fees_invoice: Invoice, now: datetime) -> None:
        invoice = pending_fees_invoice
        fees.reject_fees(invoice, RejectFees(reason="too expensive"), now)
        fees.save_fee_draft(invoice, SaveFeeDraft(shipping_amount=Decimal("600")), now)
        fees.submit_fees_for_approval(invoice, now)
        assert invoice.fees_status is FeesStatus.PENDING_APPROVAL
        assert invoice.fees_rejection_reason is None
        assert invoice.total_amount == Decimal("11300.00")
