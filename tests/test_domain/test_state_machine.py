"""Tests for the invoice status machines.

These tests verify that:
    1. All valid transitions are allowed.
    2. All invalid transitions are blocked.
    3. The convenience functions validate_transition / fire_transition work.
    4. Final states accept nothing.
"""

from __future__ import annotations

import pytest
from statemachine.exceptions import TransitionNotAllowed

from auction_settlement.domain.exceptions import InvalidStateTransitionError
from auction_settlement.domain.state_machine import (
    FeeNegotiationMachine,
    FulfillmentMachine,
    PaymentMachine,
    allowed_events,
    fire_transition,
    validate_transition,
)


class TestFeeNegotiation:
    def test_submit_approve(self) -> None:
        sm = FeeNegotiationMachine("none")
        sm.submit()
        assert sm.status == "pending_approval"
        sm.approve()
        assert sm.status == "approved"

    def test_reject_and_resubmit(self) -> None:
        sm = FeeNegotiationMachine("pending_approval")
        sm.reject()
        assert sm.status == "rejected"
        sm.submit()
        assert sm.status == "pending_approval"

    def test_cannot_approve_from_none(self) -> None:
        sm = FeeNegotiationMachine("none")
        with pytest.raises(TransitionNotAllowed):
            sm.approve()

    def test_approved_is_final(self) -> None:
        assert allowed_events(FeeNegotiationMachine, "approved") == []

    def test_cannot_reject_twice(self) -> None:
        with pytest.raises(TransitionNotAllowed):
            validate_transition(FeeNegotiationMachine, "rejected", "reject")


class TestPayment:
    def test_confirm(self) -> None:
        assert validate_transition(PaymentMachine, "pending", "confirm") == "paid"

    def test_paid_never_reverts(self) -> None:
        with pytest.raises(TransitionNotAllowed):
            validate_transition(PaymentMachine, "paid", "confirm")


class TestFulfillment:
    def test_full_lifecycle(self) -> None:
        sm = FulfillmentMachine("awaiting_payment")
        sm.start_processing()
        sm.ship()
        assert sm.status == "shipped"
        sm.update_freight()
        assert sm.status == "shipped"
        sm.seller_marks_delivered()
        assert sm.status == "delivered"

    def test_buyer_confirmation_also_delivers(self) -> None:
        assert (
            validate_transition(FulfillmentMachine, "shipped", "buyer_confirms_delivery")
            == "delivered"
        )

    @pytest.mark.parametrize(
        ("current", "event"),
        [
            ("awaiting_payment", "ship"),
            ("processing", "seller_marks_delivered"),
            ("processing", "update_freight"),
            ("delivered", "ship"),
            ("delivered", "update_freight"),
        ],
    )
    def test_invalid_transitions(self, current: str, event: str) -> None:
        with pytest.raises(TransitionNotAllowed):
            validate_transition(FulfillmentMachine, current, event)

    def test_shipped_allowed_events(self) -> None:
        assert set(allowed_events(FulfillmentMachine, "shipped")) == {
            "update_freight",
            "seller_marks_delivered",
            "buyer_confirms_delivery",
        }


class TestHelpers:
    def test_unknown_status_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown status"):
            FulfillmentMachine("lost_at_sea")

    def test_unknown_event_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown event"):
            validate_transition(PaymentMachine, "pending", "refund")

    def test_fire_transition_raises_domain_error(self) -> None:
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            fire_transition(FeeNegotiationMachine, "none", "approve", "nothing submitted")
        err = exc_info.value
        assert err.code == "INVALID_STATE_TRANSITION"
        assert err.current_state == "none"
        assert err.attempted_state == "approve"
        assert "nothing submitted" in err.message
