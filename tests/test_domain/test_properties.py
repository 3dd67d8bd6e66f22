"""Randomized command sequences against the invoice aggregate.

Each run replays a few hundred commands from a fixed seed, issued by the
right party, the wrong party, or a stranger, and checks after every step:

    - total_amount always equals the sum of the line items
    - payment and fulfillment never move backwards
    - fee status only moves along the negotiation graph; approved stays approved
    - a refused command leaves the invoice exactly as it was
    - delivery is confirmed at most once, and the first confirmation sticks

Separate runs check the fee loop on its own, including resubmitting the
same amounts after each rejection.
"""

from __future__ import annotations

import copy
import random
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from auction_settlement.domain import lifecycle, payment, pricing
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
)
from auction_settlement.domain.enums import (
    ActorRole,
    FeesStatus,
    FulfillmentStatus,
    PaymentStatus,
)
from auction_settlement.domain.exceptions import SettlementError
from auction_settlement.domain.invoice import FreightPatch, Invoice

SEEDS = [7, 42, 1234, 2026, 99991]
STEPS = 300

_FULFILLMENT_ORDER = list(FulfillmentStatus)
_PAYMENT_ORDER = list(PaymentStatus)
_FEE_MOVES = {
    (FeesStatus.NONE, FeesStatus.PENDING_APPROVAL),
    (FeesStatus.REJECTED, FeesStatus.PENDING_APPROVAL),
    (FeesStatus.PENDING_APPROVAL, FeesStatus.APPROVED),
    (FeesStatus.PENDING_APPROVAL, FeesStatus.REJECTED),
}

_GATEWAY = "gateway"


def _amount(rng: random.Random) -> Decimal | None:
    roll = rng.random()
    if roll < 0.2:
        return None
    if roll < 0.3:
        return Decimal("0")
    if roll < 0.35:
        return Decimal("-10")
    return Decimal(rng.randint(1, 250_000)) / 100


def _random_command(rng: random.Random):
    choice = rng.randrange(11)
    if choice == 0:
        return SaveFeeDraft(packaging_amount=_amount(rng), shipping_amount=_amount(rng))
    if choice == 1:
        return SubmitFeesForApproval()
    if choice == 2:
        return ApproveFees()
    if choice == 3:
        return RejectFees(reason=rng.choice(["", "too expensive", "use my carrier"]))
    if choice == 4:
        return MarkShipped(carrier=rng.choice(["", "XPO", "Estes"]))
    if choice == 5:
        return UpdateFreightDetails(
            freight=FreightPatch(bol_number=rng.choice([None, "", "BOL-7"]))
        )
    if choice == 6:
        return MarkDelivered()
    if choice == 7:
        return ConfirmDelivery(
            condition=rng.choice(["good", "damaged", "partial", "wet"]),
            notes=rng.choice(["", "dented panel"]),
        )
    if choice == 8:
        return AttachShippingDocuments(
            additional_photo_references=rng.choice([(), ("https://cdn/p.jpg",)])
        )
    return _GATEWAY


def _random_actor(rng: random.Random, invoice: Invoice) -> tuple[str, ActorRole]:
    role = rng.choice(list(ActorRole))
    actor_id = rng.choice([invoice.party_id(role), invoice.party_id(role), "stranger"])
    return actor_id, role


def _step(invoice: Invoice, rng: random.Random, now: datetime) -> None:
    command = _random_command(rng)
    if command == _GATEWAY:
        payment.confirm_payment(invoice, rng.choice(["card", "ach", ""]), now, now)
        return
    actor_id, role = _random_actor(rng, invoice)
    lifecycle.execute(invoice, command, actor_id, role, now)


@pytest.mark.parametrize("seed", SEEDS)
def test_random_sequences_preserve_invariants(seed: int) -> None:
    rng = random.Random(seed)
    start = datetime(2026, 3, 2, tzinfo=UTC)
    invoice = Invoice.create(
        listing_id="lot-prop",
        seller_id="seller-1",
        buyer_id="buyer-1",
        sale_amount=Decimal(rng.randint(100, 5_000_000)) / 100,
        buyer_premium_percent=Decimal(rng.choice(["0", "2.5", "5", "10"])),
        now=start,
    )
    first_confirmation: tuple | None = None

    for i in range(STEPS):
        now = start + timedelta(minutes=i)
        before = copy.deepcopy(invoice)
        try:
            _step(invoice, rng, now)
        except SettlementError:
            assert invoice == before, f"refused command mutated the invoice (step {i})"
            continue

        assert pricing.reconciles(invoice)
        assert _PAYMENT_ORDER.index(invoice.payment_status) >= _PAYMENT_ORDER.index(
            before.payment_status
        )
        assert _FULFILLMENT_ORDER.index(invoice.fulfillment_status) >= _FULFILLMENT_ORDER.index(
            before.fulfillment_status
        )
        if invoice.fees_status is not before.fees_status:
            assert (before.fees_status, invoice.fees_status) in _FEE_MOVES
        if before.fees_status is FeesStatus.APPROVED:
            assert invoice.fees_status is FeesStatus.APPROVED
        if before.is_paid:
            assert invoice.packaging_amount == before.packaging_amount
            assert invoice.shipping_amount == before.shipping_amount
        if invoice.fulfillment_status is not FulfillmentStatus.AWAITING_PAYMENT:
            assert invoice.is_paid

        if invoice.delivery_confirmed_at is not None:
            confirmation = (
                invoice.delivery_confirmed_at,
                invoice.delivery_condition,
                invoice.delivery_confirmed_by,
            )
            if first_confirmation is None:
                first_confirmation = confirmation
                assert invoice.delivery_confirmed_by == invoice.buyer_id
            assert confirmation == first_confirmation


@pytest.mark.parametrize("seed", SEEDS)
def test_fee_cycles_keep_total_consistent(seed: int) -> None:
    """Draft/submit/reject loops until approval; total always reflects the last draft."""
    rng = random.Random(seed)
    now = datetime(2026, 3, 2, tzinfo=UTC)
    invoice = Invoice.create("lot-fees", "s", "b", Decimal("10000"), Decimal("5"), now=now)

    for _ in range(rng.randint(1, 6)):
        packaging = Decimal(rng.randint(1, 50_000)) / 100
        shipping = Decimal(rng.randint(0, 200_000)) / 100
        lifecycle.execute(
            invoice,
            SaveFeeDraft(packaging_amount=packaging, shipping_amount=shipping),
            "s",
            ActorRole.SELLER,
            now,
        )
        assert invoice.total_amount == Decimal("10500.00") + packaging + shipping
        lifecycle.execute(invoice, SubmitFeesForApproval(), "s", ActorRole.SELLER, now)
        lifecycle.execute(invoice, RejectFees(reason="no"), "b", ActorRole.BUYER, now)
        assert invoice.fees_status is FeesStatus.REJECTED

    lifecycle.execute(invoice, SubmitFeesForApproval(), "s", ActorRole.SELLER, now)
    lifecycle.execute(invoice, ApproveFees(), "b", ActorRole.BUYER, now)
    assert invoice.fees_status is FeesStatus.APPROVED
    assert invoice.unapproved_fees_amount == Decimal("0.00")
    assert pricing.reconciles(invoice)


@pytest.mark.parametrize("seed", SEEDS)
def test_resubmitting_identical_fees(seed: int) -> None:
    """Reject and resubmit the same amounts N times; never approved, fresh timestamp each round."""
    rng = random.Random(seed)
    now = datetime(2026, 3, 2, tzinfo=UTC)
    invoice = Invoice.create("lot-fees", "s", "b", Decimal("10000"), Decimal("5"), now=now)
    lifecycle.execute(
        invoice,
        SaveFeeDraft(packaging_amount=Decimal("250"), shipping_amount=Decimal("750")),
        "s",
        ActorRole.SELLER,
        now,
    )
    lifecycle.execute(invoice, SubmitFeesForApproval(), "s", ActorRole.SELLER, now)
    previous_submission = invoice.fees_submitted_at

    for _ in range(rng.randint(2, 8)):
        now += timedelta(minutes=rng.randint(1, 600))
        lifecycle.execute(invoice, RejectFees(reason="too high"), "b", ActorRole.BUYER, now)
        lifecycle.execute(
            invoice,
            SaveFeeDraft(packaging_amount=Decimal("250"), shipping_amount=Decimal("750")),
            "s",
            ActorRole.SELLER,
            now,
        )
        lifecycle.execute(invoice, SubmitFeesForApproval(), "s", ActorRole.SELLER, now)

        assert invoice.fees_status is FeesStatus.PENDING_APPROVAL
        assert invoice.fees_submitted_at == now
        assert invoice.fees_submitted_at > previous_submission
        assert invoice.total_amount == Decimal("11500.00")
        previous_submission = invoice.fees_submitted_at

    assert invoice.fees_status is not FeesStatus.APPROVED
