#!/usr/bin/env python3
"""Auction Settlement — End-to-End Simulation.

Walks one equipment sale from invoice to confirmed delivery with a
SellerBot and a BuyerBot, then shows the commands the orchestrator refuses.

    Scenario 1: Settlement Happy Path
        A. Invoice created: 10,000 sale + 5% premium -> total 10,500
        B. Seller saves a fee draft (200 packaging, 800 shipping) -> total 11,500
        C. Seller submits, buyer rejects "too expensive", seller lowers
           shipping to 600 and resubmits -> total 11,300
        D. Buyer approves, gateway confirms payment -> paid / processing
        E. Seller ships via XPO, buyer confirms a damaged delivery with photos

    Scenario 2: Refused Commands
        - Seller tries to approve their own fees       -> PERMISSION_DENIED
        - Gateway pays while fees await approval       -> PAYMENT_PRECONDITION_FAILED
        - Seller ships before payment                  -> INVALID_STATE_TRANSITION
        - Buyer confirms delivery twice                -> ALREADY_CONFIRMED
        - Same gateway event delivered twice           -> DUPLICATE_OPERATION

Usage:
    # Option A: With Docker (PostgreSQL):
    docker compose up -d
    uv run python simulation.py

    # Option B: Without Docker (SQLite in-memory):
    uv run python simulation.py --sqlite

    # Run a specific scenario:
    uv run python simulation.py --sqlite --scenario 1
"""

from __future__ import annotations

import argparse
import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

# ---------------------------------------------------------------------------
# Configure structured logging BEFORE importing app modules
# ---------------------------------------------------------------------------
from auction_settlement.logging_config import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

from auction_settlement.config import Settings, get_settings  # noqa: E402
from auction_settlement.domain.commands import (  # noqa: E402
    ApproveFees,
    ConfirmDelivery,
    DocumentUpload,
    MarkShipped,
    RejectFees,
    SaveFeeDraft,
    SubmitFeesForApproval,
)
from auction_settlement.domain.enums import ActorRole  # noqa: E402
from auction_settlement.domain.invoice import FreightPatch  # noqa: E402
from auction_settlement.infrastructure.notifications import (  # noqa: E402
    InMemoryNotificationDispatcher,
)
from auction_settlement.infrastructure.storage import InMemoryObjectStorage  # noqa: E402
from auction_settlement.services.invoice_service import (  # noqa: E402
    CommandOutcome,
    InvoiceService,
)

# Module-level state
_engine = None
_session_factory = None
_storage = InMemoryObjectStorage()
_dispatcher = InMemoryNotificationDispatcher()


# ---------------------------------------------------------------------------
# Database lifecycle helpers
# ---------------------------------------------------------------------------
async def init_database(use_sqlite: bool = False) -> None:
    """Initialize database engine and create tables."""
    global _engine, _session_factory

    from auction_settlement.infrastructure.database.engine import (
        build_engine,
        build_session_factory,
    )
    from auction_settlement.infrastructure.database.orm_models import Base

    settings = get_settings()
    if use_sqlite:
        settings = Settings(database_url="sqlite+aiosqlite:///:memory:")

    _engine = build_engine(settings)
    _session_factory = build_session_factory(_engine)
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database.initialized", dialect=_engine.dialect.name)


def get_service(session: Any) -> InvoiceService:
    return InvoiceService(session, _storage, _dispatcher, get_settings())


async def shutdown_database() -> None:
    """Close database connections."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


# ---------------------------------------------------------------------------
# Bot Agents
# ---------------------------------------------------------------------------
@dataclass
class SellerBot:
    """Simulated seller: proposes fees, ships, marks delivered."""

    actor_id: str = "seller-acme-equipment"
    outcomes: list[CommandOutcome] = field(default_factory=list)

    async def run(self, svc: InvoiceService, invoice_id: uuid.UUID, command: Any) -> CommandOutcome:
        outcome = await svc.apply_command(invoice_id, self.actor_id, ActorRole.SELLER, command)
        self.outcomes.append(outcome)
        _log_outcome("🟢 SELLER", command, outcome)
        return outcome


@dataclass
class BuyerBot:
    """Simulated buyer: responds to fees, confirms delivery."""

    actor_id: str = "buyer-midwest-farms"
    outcomes: list[CommandOutcome] = field(default_factory=list)

    async def run(self, svc: InvoiceService, invoice_id: uuid.UUID, command: Any) -> CommandOutcome:
        outcome = await svc.apply_command(invoice_id, self.actor_id, ActorRole.BUYER, command)
        self.outcomes.append(outcome)
        _log_outcome("🔵 BUYER", command, outcome)
        return outcome


async def gateway_pays(
    svc: InvoiceService, invoice_id: uuid.UUID, event_id: str | None = None
) -> CommandOutcome:
    outcome = await svc.confirm_payment(
        invoice_id,
        method="ach",
        paid_at=datetime.now(UTC),
        payment_reference=f"pi_{uuid.uuid4().hex[:12]}",
        gateway_event_id=event_id,
    )
    if outcome.ok:
        logger.info("💳 GATEWAY: Payment confirmed", total=str(outcome.invoice.total_amount))
    else:
        logger.info("💳 GATEWAY: Payment refused", code=outcome.error.code)
    return outcome


def _log_outcome(who: str, command: Any, outcome: CommandOutcome) -> None:
    name = command.command_type.value
    if outcome.ok:
        inv = outcome.invoice
        logger.info(
            f"{who}: {name} accepted",
            fees=inv.fees_status.value,
            payment=inv.payment_status.value,
            fulfillment=inv.fulfillment_status.value,
            total=str(inv.total_amount),
        )
    else:
        logger.info(f"{who}: {name} refused", code=outcome.error.code)
    for warning in outcome.warnings:
        logger.warning(f"{who}: {warning}")


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------
def banner(text: str) -> None:
    """Print a prominent banner."""
    width = 70
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width + "\n")


def section(text: str) -> None:
    """Print a section header."""
    print(f"\n--- {text} ---\n")


def print_totals(invoice: Any) -> None:
    print(f"  Invoice {invoice.invoice_number}")
    print(f"    sale       {invoice.sale_amount:>12,.2f}")
    print(f"    premium    {invoice.buyer_premium_amount:>12,.2f}")
    print(f"    packaging  {invoice.packaging_amount:>12,.2f}")
    print(f"    shipping   {invoice.shipping_amount:>12,.2f}")
    print(f"    tax        {invoice.tax_amount:>12,.2f}")
    print(f"    TOTAL      {invoice.total_amount:>12,.2f}")
    print(
        f"  fees={invoice.fees_status.value} payment={invoice.payment_status.value} "
        f"fulfillment={invoice.fulfillment_status.value}"
    )


def expect(condition: bool, message: str) -> None:
    assert condition, message
    print(f"  ✅ {message}")


async def print_audit_trail(svc: InvoiceService, invoice_id: uuid.UUID) -> None:
    """Print the full audit trail for an invoice."""
    events = await svc.get_events(invoice_id)
    print("\n  📜 Audit Trail:")
    for i, evt in enumerate(events, 1):
        role = f"{evt.actor_role} " if evt.actor_role else ""
        print(f"    {i}. [{evt.event_type}] by {role}{evt.actor_id}: {evt.summary}")
    print()


def print_notifications(actor_id: str) -> None:
    print(f"\n  🔔 Notifications for {actor_id}:")
    for event in _dispatcher.for_actor(actor_id):
        print(f"    - [{event.event_type.value}] {event.summary}")


# ===========================================================================
# Scenario 1: Settlement Happy Path
# ===========================================================================
async def scenario_1_happy_path() -> None:
    """One sale from invoice creation to a damaged-delivery confirmation."""
    banner("SCENARIO 1: Settlement — Fees Negotiated, Paid, Shipped, Delivered")

    seller = SellerBot()
    buyer = BuyerBot()

    async with _session_factory() as session:
        svc = get_service(session)

        section("A. Invoice created for the closed auction")
        invoice = await svc.create_invoice(
            listing_id="lot-4471-skid-steer",
            seller_id=seller.actor_id,
            buyer_id=buyer.actor_id,
            sale_amount=Decimal("10000"),
            buyer_premium_percent=Decimal("5"),
        )
        print_totals(invoice)
        expect(invoice.total_amount == Decimal("10500.00"), "total is 10,500")
        invoice_id = invoice.id

        section("B. Seller saves a fee draft without submitting")
        outcome = await seller.run(
            svc,
            invoice_id,
            SaveFeeDraft(
                packaging_amount=Decimal("200"),
                packaging_note="Crating and shrink wrap",
                shipping_amount=Decimal("800"),
                shipping_note="Flatbed, liftgate at delivery",
            ),
        )
        print_totals(outcome.invoice)
        expect(outcome.invoice.fees_status.value == "none", "fees_status stays none")
        expect(outcome.invoice.total_amount == Decimal("11500.00"), "total is 11,500")

        section("C. Submit, reject, revise, resubmit")
        await seller.run(svc, invoice_id, SubmitFeesForApproval())
        outcome = await buyer.run(svc, invoice_id, RejectFees(reason="too expensive"))
        expect(outcome.invoice.fees_status.value == "rejected", "fees rejected")
        expect(
            outcome.invoice.fees_rejection_reason == "too expensive", "rejection reason stored"
        )
        await seller.run(svc, invoice_id, SaveFeeDraft(shipping_amount=Decimal("600")))
        outcome = await seller.run(svc, invoice_id, SubmitFeesForApproval())
        print_totals(outcome.invoice)
        expect(outcome.invoice.fees_status.value == "pending_approval", "pending approval again")
        expect(outcome.invoice.total_amount == Decimal("11300.00"), "total is 11,300")

        section("D. Buyer approves, gateway confirms payment")
        await buyer.run(svc, invoice_id, ApproveFees())
        outcome = await gateway_pays(svc, invoice_id, event_id=f"evt_{uuid.uuid4().hex[:10]}")
        print_totals(outcome.invoice)
        expect(outcome.invoice.payment_status.value == "paid", "payment_status is paid")
        expect(
            outcome.invoice.fulfillment_status.value == "processing",
            "fulfillment_status is processing",
        )

        section("E. Seller ships, buyer confirms a damaged delivery")
        await seller.run(
            svc,
            invoice_id,
            MarkShipped(
                carrier="XPO",
                freight=FreightPatch(bol_number="BOL-88213", pro_number="PRO-550021"),
            ),
        )
        outcome = await buyer.run(
            svc,
            invoice_id,
            ConfirmDelivery(
                condition="damaged",
                notes="dented panel",
                damage_evidence_uploads=(
                    DocumentUpload(b"\xff\xd8fake-jpeg", "image/jpeg", "panel.jpg"),
                ),
            ),
        )
        inv = outcome.invoice
        print_totals(inv)
        expect(inv.fulfillment_status.value == "delivered", "fulfillment_status is delivered")
        expect(inv.delivery_condition.value == "damaged", "delivery_condition is damaged")
        expect(inv.delivery_confirmed_at is not None, "delivery_confirmed_at is set")
        print(f"  Damage evidence: {inv.damage_evidence_references}")

        await print_audit_trail(svc, invoice_id)
        print_notifications(seller.actor_id)
        print_notifications(buyer.actor_id)


# ===========================================================================
# Scenario 2: Refused Commands
# ===========================================================================
async def scenario_2_refusals() -> None:
    """Commands that the orchestrator must refuse without changing anything."""
    banner("SCENARIO 2: Refused Commands — Nothing Changes")

    seller = SellerBot(actor_id="seller-ridge-tractor")
    buyer = BuyerBot(actor_id="buyer-lakeside-build")

    async with _session_factory() as session:
        svc = get_service(session)
        invoice = await svc.create_invoice(
            listing_id="lot-5120-excavator",
            seller_id=seller.actor_id,
            buyer_id=buyer.actor_id,
            sale_amount=Decimal("42000"),
        )
        invoice_id = invoice.id

        section("Seller tries to approve their own fees")
        await seller.run(svc, invoice_id, SaveFeeDraft(shipping_amount=Decimal("1500")))
        await seller.run(svc, invoice_id, SubmitFeesForApproval())
        outcome = await seller.run(svc, invoice_id, ApproveFees())
        expect(outcome.error.code == "PERMISSION_DENIED", "PERMISSION_DENIED")

        section("Gateway pays while fees await approval")
        outcome = await gateway_pays(svc, invoice_id)
        expect(outcome.error.code == "PAYMENT_PRECONDITION_FAILED", "PAYMENT_PRECONDITION_FAILED")

        section("Seller ships before payment")
        await buyer.run(svc, invoice_id, ApproveFees())
        outcome = await seller.run(svc, invoice_id, MarkShipped(carrier="R+L"))
        expect(outcome.error.code == "INVALID_STATE_TRANSITION", "INVALID_STATE_TRANSITION")

        section("Same gateway event delivered twice")
        event_id = f"evt_{uuid.uuid4().hex[:10]}"
        await gateway_pays(svc, invoice_id, event_id=event_id)
        outcome = await gateway_pays(svc, invoice_id, event_id=event_id)
        expect(outcome.error.code == "DUPLICATE_OPERATION", "DUPLICATE_OPERATION")

        section("Buyer confirms delivery twice")
        await seller.run(svc, invoice_id, MarkShipped(carrier="R+L", tracking_number="RL-7781"))
        await buyer.run(svc, invoice_id, ConfirmDelivery(condition="good"))
        outcome = await buyer.run(svc, invoice_id, ConfirmDelivery(condition="good"))
        expect(outcome.error.code == "ALREADY_CONFIRMED", "ALREADY_CONFIRMED")

        await print_audit_trail(svc, invoice_id)


# ===========================================================================
# Main
# ===========================================================================
async def run_all(use_sqlite: bool = False) -> None:
    """Run all scenarios sequentially."""
    await init_database(use_sqlite=use_sqlite)

    try:
        print("\n" + "🚜" * 35)
        print("  AUCTION SETTLEMENT — SIMULATION")
        db_type = "SQLite (in-memory)" if use_sqlite else "PostgreSQL"
        print(f"  Database: {db_type}")
        print("🚜" * 35 + "\n")

        await scenario_1_happy_path()
        await scenario_2_refusals()

        print("\n" + "=" * 70)
        print("  ✅ ALL SCENARIOS COMPLETED SUCCESSFULLY")
        print("=" * 70 + "\n")

    finally:
        await shutdown_database()


async def run_scenario(num: int, use_sqlite: bool = False) -> None:
    """Run a specific scenario."""
    await init_database(use_sqlite=use_sqlite)

    scenarios = {
        1: scenario_1_happy_path,
        2: scenario_2_refusals,
    }

    try:
        if num not in scenarios:
            print(f"Unknown scenario {num}. Available: 1, 2")
            return
        await scenarios[num]()
    finally:
        await shutdown_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Auction Settlement Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        default=0,
        help="Run a specific scenario (1 or 2). Default: run all.",
    )
    parser.add_argument(
        "--sqlite",
        action="store_true",
        help="Use SQLite in-memory instead of PostgreSQL (no Docker needed).",
    )
    args = parser.parse_args()

    if args.scenario == 0:
        asyncio.run(run_all(use_sqlite=args.sqlite))
    else:
        asyncio.run(run_scenario(args.scenario, use_sqlite=args.sqlite))
