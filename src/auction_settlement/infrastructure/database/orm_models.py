"""SQLAlchemy 2.0 ORM models for auction settlement.

Three tables:
    1. invoices        — One settlement record per completed sale.
    2. invoice_events  — Append-only audit log, one row per accepted command.
    3. payments        — One row per accepted payment confirmation.

Design decisions:
    - UUIDs as primary keys for invoices and payments (opaque, no sequential leakage).
    - Numeric(12, 2) for money; the domain works in cent-quantized Decimal.
    - JSON columns (JSONB on PostgreSQL) for freight metadata and reference lists.
    - CHECK constraints on every status column and on the amounts.
    - `version` is the mapper's version counter: every UPDATE is conditioned on
      the version read, so a lost update surfaces as StaleDataError.
    - invoice_events uses an integer key so the audit log orders by insertion.
"""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal  # noqa: TC003 - needed at runtime by SQLAlchemy Mapped[]

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

JSONType = JSON().with_variant(JSONB(), "postgresql")
# SQLite only autoincrements INTEGER PRIMARY KEY
EventIdType = BigInteger().with_variant(Integer(), "sqlite")

MONEY = Numeric(12, 2)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# 1. invoices
# ---------------------------------------------------------------------------
class InvoiceRecord(Base):
    """Persisted state of the Invoice aggregate (domain/invoice.py)."""

    __tablename__ = "invoices"

    # --- Identity ---
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_number: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    listing_id: Mapped[str] = mapped_column(String(64), nullable=False)
    seller_id: Mapped[str] = mapped_column(String(64), nullable=False)
    buyer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # --- Pricing ---
    sale_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    buyer_premium_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    buyer_premium_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    packaging_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    shipping_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    tax_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    total_amount: Mapped[Decimal] = mapped_column(
        MONEY,
        nullable=False,
        comment="sale + buyer premium + packaging + shipping + tax",
    )
    seller_commission_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    seller_commission_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    seller_payout_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    # --- Payment ---
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    payment_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # --- Fee negotiation ---
    fees_status: Mapped[str] = mapped_column(String(20), nullable=False, default="none")
    packaging_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    shipping_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    shipping_quote_reference: Mapped[str | None] = mapped_column(String(500), nullable=True)
    fees_submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    fees_responded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    fees_rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # --- Fulfillment ---
    fulfillment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="awaiting_payment"
    )
    shipped_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    carrier: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tracking_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    freight: Mapped[dict] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
        comment="BOL, PRO, freight class, weight, dates, contacts, instructions",
    )

    # --- Buyer delivery confirmation ---
    delivery_confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    delivery_confirmed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    delivery_condition: Mapped[str | None] = mapped_column(String(20), nullable=True)
    delivery_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    signed_document_reference: Mapped[str | None] = mapped_column(String(500), nullable=True)
    damage_evidence_references: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=list
    )
    additional_photo_references: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=list
    )

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    # --- Relationships ---
    events: Mapped[list[InvoiceEventRecord]] = relationship(
        "InvoiceEventRecord",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceEventRecord.id",
        lazy="raise",
    )

    __mapper_args__ = {"version_id_col": version}

    # --- Table Constraints & Indexes ---
    __table_args__ = (
        CheckConstraint(
            "payment_status IN ('pending', 'paid')",
            name="ck_invoice_payment_status",
        ),
        CheckConstraint(
            "fees_status IN ('none', 'pending_approval', 'approved', 'rejected')",
            name="ck_invoice_fees_status",
        ),
        CheckConstraint(
            "fulfillment_status IN ('awaiting_payment', 'processing', 'shipped', 'delivered')",
            name="ck_invoice_fulfillment_status",
        ),
        CheckConstraint(
            "delivery_condition IS NULL OR delivery_condition IN ('good', 'damaged', 'partial')",
            name="ck_invoice_delivery_condition",
        ),
        CheckConstraint("sale_amount > 0", name="ck_invoice_positive_sale"),
        CheckConstraint(
            "packaging_amount >= 0 AND shipping_amount >= 0 AND tax_amount >= 0",
            name="ck_invoice_nonnegative_line_items",
        ),
        CheckConstraint(
            "fees_status <> 'pending_approval' OR packaging_amount + shipping_amount > 0",
            name="ck_invoice_pending_fees_nonzero",
        ),
        CheckConstraint("seller_id <> buyer_id", name="ck_invoice_distinct_parties"),
        Index("idx_invoice_seller", "seller_id"),
        Index("idx_invoice_buyer", "buyer_id"),
        Index("idx_invoice_payment_status", "payment_status"),
        Index("idx_invoice_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<InvoiceRecord id={self.id} number={self.invoice_number} "
            f"payment={self.payment_status} fees={self.fees_status} "
            f"fulfillment={self.fulfillment_status} v{self.version}>"
        )


# ---------------------------------------------------------------------------
# 2. invoice_events (Append-Only Audit Log)
# ---------------------------------------------------------------------------
class InvoiceEventRecord(Base):
    """Immutable audit record of an accepted command or gateway event.

    This table is APPEND-ONLY. No UPDATE or DELETE operations are permitted
    at the application level.
    """

    __tablename__ = "invoice_events"

    id: Mapped[int] = mapped_column(EventIdType, primary_key=True, autoincrement=True)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
    )

    event_type: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        comment="EventType enum value (e.g., FEES_SUBMITTED, ITEM_SHIPPED)",
    )
    actor_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="SYSTEM",
        comment="Who issued the command (party id, or SYSTEM for gateway events)",
    )
    actor_role: Mapped[str | None] = mapped_column(String(10), nullable=True)
    target_actor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    metadata_json: Mapped[dict | None] = mapped_column(
        "metadata",
        JSONType,
        nullable=True,
        default=None,
        comment="Event payload plus the invoice's statuses after the command",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    invoice: Mapped[InvoiceRecord] = relationship("InvoiceRecord", back_populates="events")

    __table_args__ = (
        Index("idx_invoice_event_invoice", "invoice_id"),
        Index("idx_invoice_event_type", "event_type"),
    )

    def __repr__(self) -> str:
        return f"<InvoiceEventRecord id={self.id} type={self.event_type} actor={self.actor_id}>"


# ---------------------------------------------------------------------------
# 3. payments
# ---------------------------------------------------------------------------
class PaymentRecord(Base):
    """A payment accepted from the gateway for an invoice."""

    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    method: Mapped[str] = mapped_column(String(50), nullable=False)
    payment_reference: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Gateway-side payment or session id",
    )
    gateway_event_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        unique=True,
        comment="Webhook event id used for idempotency",
    )
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_positive_amount"),
        Index("idx_payment_invoice", "invoice_id"),
    )

    def __repr__(self) -> str:
        return f"<PaymentRecord id={self.id} invoice={self.invoice_id} amount={self.amount}>"
