"""Invoice sub-state guards.

Uses python-statemachine to enforce legal transitions for the three status
fields of an invoice. No matter what the API or the orchestrator does, an
illegal transition (e.g., fees none -> approved, shipped -> processing) is
rejected before any field of the invoice is touched.

A machine is instantiated per check at the invoice's current status, the
named event is fired, and the resulting status is written back to the
invoice by the calling sub-protocol.

Transition tables:

    Fee negotiation
        none             -> pending_approval  (submit)
        rejected         -> pending_approval  (submit)
        pending_approval -> approved          (approve)
        pending_approval -> rejected          (reject)

    Payment
        pending          -> paid              (confirm)

    Fulfillment
        awaiting_payment -> processing        (start_processing)
        processing       -> shipped           (ship)
        shipped          -> shipped           (update_freight)
        shipped          -> delivered         (seller_marks_delivered)
        shipped          -> delivered         (buyer_confirms_delivery)
"""

from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from auction_settlement.domain.exceptions import InvalidStateTransitionError


class _StatusGuard:
    """Shared constructor and helpers for the invoice status machines."""

    def __init__(self, current_status: str) -> None:
        """Initialize the machine at a given status.

        Args:
            current_status: The stored status value (e.g., "pending_approval").
        """
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )
        super().__init__(start_value=current_status)

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches the status enum)."""
        return str(self.current_state_value)

    def get_allowed_events(self) -> list[str]:
        """Return a list of event names that can fire from the current state."""
        return [event.id for event in self.allowed_events]


class FeeNegotiationMachine(_StatusGuard, StateMachine):
    """Propose/approve/reject/resubmit cycle for seller-added fees."""

    none = State("None", value="none", initial=True)
    pending_approval = State("Pending approval", value="pending_approval")
    approved = State("Approved", value="approved", final=True)
    rejected = State("Rejected", value="rejected")

    submit = none.to(pending_approval) | rejected.to(pending_approval)
    approve = pending_approval.to(approved)
    reject = pending_approval.to(rejected)


class PaymentMachine(_StatusGuard, StateMachine):
    """Payment is confirmed exactly once and never reverts."""

    pending = State("Pending", value="pending", initial=True)
    paid = State("Paid", value="paid", final=True)

    confirm = pending.to(paid)


class FulfillmentMachine(_StatusGuard, StateMachine):
    """Monotonic shipment lifecycle with two converging delivery paths."""

    awaiting_payment = State("Awaiting payment", value="awaiting_payment", initial=True)
    processing = State("Processing", value="processing")
    shipped = State("Shipped", value="shipped")
    delivered = State("Delivered", value="delivered", final=True)

    start_processing = awaiting_payment.to(processing)
    ship = processing.to(shipped)
    update_freight = shipped.to.itself()
    seller_marks_delivered = shipped.to(delivered)
    buyer_confirms_delivery = shipped.to(delivered)


def validate_transition(
    machine_cls: type[_StatusGuard], current_status: str, event_name: str
) -> str:
    """Validate a transition and return the new status.

    Creates a temporary machine, fires the named event, and returns the
    resulting status string.

    Raises:
        TransitionNotAllowed: If the transition is illegal.
        ValueError: If the status or event name is invalid.
    """
    sm = machine_cls(current_status=current_status)

    event_method = getattr(sm, event_name, None)
    if event_method is None or not callable(event_method):
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    event_method()
    return sm.status


def fire_transition(
    machine_cls: type[_StatusGuard],
    current_status: str,
    event_name: str,
    detail: str | None = None,
) -> str:
    """Like validate_transition, but raises the domain error on an illegal move."""
    try:
        return validate_transition(machine_cls, current_status, event_name)
    except TransitionNotAllowed as err:
        raise InvalidStateTransitionError(current_status, event_name, detail) from err


def allowed_events(machine_cls: type[_StatusGuard], current_status: str) -> list[str]:
    """Return the events that may fire from current_status."""
    return machine_cls(current_status=current_status).get_allowed_events()
