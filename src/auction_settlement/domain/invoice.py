"""Invoice aggregate — the settlement record of one completed sale.

The aggregate is a plain dataclass so the sub-protocols (fees.py,
fulfillment.py, delivery.py, payment.py) can be exercised without a
database. The repository maps it to and from the `invoices` table.

Status fields are explicit enums; nothing is inferred from whether an
optional timestamp happens to be set.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from typing import Any

from auction_settlement.domain import pricing
from auction_settlement.domain.enums import (
    ActorRole,
    DeliveryCondition,
    FeesStatus,
    FulfillmentStatus,
    PaymentStatus,
)
from auction_settlement.domain.exceptions import ValidationFailedError

_DATE_FIELDS = frozenset({"pickup_date", "estimated_delivery"})


@dataclass(frozen=True)
class FreightDetails:
    """Freight shipment metadata, supplied incrementally by the seller."""

    bol_number: str | None = None
    pro_number: str | None = None
    freight_class: str | None = None
    weight_lbs: Decimal | None = None
    pickup_date: date | None = None
    estimated_delivery: date | None = None
    pickup_contact: str | None = None
    delivery_contact: str | None = None
    special_instructions: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the JSON column."""
        data: dict[str, Any] = {}
        for key, value in asdict(self).items():
            if value is None:
                continue
            if isinstance(value, date):
                data[key] = value.isoformat()
            elif isinstance(value, Decimal):
                data[key] = str(value)
            else:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> FreightDetails:
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known or value is None:
                continue
            if key in _DATE_FIELDS:
                values[key] = date.fromisoformat(value)
            elif key == "weight_lbs":
                values[key] = Decimal(str(value))
            else:
                values[key] = value
        return cls(**values)


@dataclass(frozen=True)
class FreightPatch:
    """Partial update of FreightDetails.

    Only fields that carry a value are applied; None and blank strings leave
    the stored value untouched, so a patch can never erase data the caller
    did not mention.
    """

    bol_number: str | None = None
    pro_number: str | None = None
    freight_class: str | None = None
    weight_lbs: Decimal | None = None
    pickup_date: date | None = None
    estimated_delivery: date | None = None
    pickup_contact: str | None = None
    delivery_contact: str | None = None
    special_instructions: str | None = None

    def changes(self) -> dict[str, Any]:
        """Return only the fields this patch actually sets."""
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, str):
                value = value.strip()
                if not value:
                    continue
            result[f.name] = value
        return result

    def is_empty(self) -> bool:
        return not self.changes()

    def apply_to(self, details: FreightDetails) -> FreightDetails:
        return replace(details, **self.changes())


@dataclass
class Invoice:
    """The aggregate root of a single sale between one buyer and one seller."""

    # --- Identity ---
    listing_id: str
    seller_id: str
    buyer_id: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    invoice_number: str = field(default_factory=pricing.generate_invoice_number)

    # --- Pricing ---
    sale_amount: Decimal = pricing.ZERO
    buyer_premium_percent: Decimal = pricing.ZERO
    buyer_premium_amount: Decimal = pricing.ZERO
    packaging_amount: Decimal = pricing.ZERO
    shipping_amount: Decimal = pricing.ZERO
    tax_amount: Decimal = pricing.ZERO
    total_amount: Decimal = pricing.ZERO
    seller_commission_percent: Decimal = pricing.ZERO
    seller_commission_amount: Decimal = pricing.ZERO
    seller_payout_amount: Decimal = pricing.ZERO

    # --- Payment ---
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_due_date: date | None = None
    paid_at: datetime | None = None
    payment_method: str | None = None
    payment_reference: str | None = None

    # --- Fee negotiation ---
    fees_status: FeesStatus = FeesStatus.NONE
    packaging_note: str | None = None
    shipping_note: str | None = None
    shipping_quote_reference: str | None = None
    fees_submitted_at: datetime | None = None
    fees_responded_at: datetime | None = None
    fees_rejection_reason: str | None = None

    # --- Fulfillment ---
    fulfillment_status: FulfillmentStatus = FulfillmentStatus.AWAITING_PAYMENT
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    carrier: str | None = None
    tracking_reference: str | None = None
    freight: FreightDetails = field(default_factory=FreightDetails)

    # --- Buyer delivery confirmation ---
    delivery_confirmed_at: datetime | None = None
    delivery_confirmed_by: str | None = None
    delivery_condition: DeliveryCondition | None = None
    delivery_notes: str | None = None
    signed_document_reference: str | None = None
    damage_evidence_references: list[str] = field(default_factory=list)
    additional_photo_references: list[str] = field(default_factory=list)

    # --- Timestamps ---
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        listing_id: str,
        seller_id: str,
        buyer_id: str,
        sale_amount: Decimal,
        buyer_premium_percent: Decimal,
        seller_commission_percent: Decimal = pricing.ZERO,
        payment_due_days: int = 7,
        tax_amount: Decimal = pricing.ZERO,
        now: datetime | None = None,
    ) -> Invoice:
        """Build the initial invoice for a closed sale.

        Starts at payment pending, fees none, fulfillment awaiting_payment.
        """
        if not listing_id or not seller_id or not buyer_id:
            raise ValidationFailedError(
                "parties", "listing_id, seller_id and buyer_id are required"
            )
        if seller_id == buyer_id:
            raise ValidationFailedError("buyer_id", "Buyer and seller must be different parties")
        sale = pricing.to_money(sale_amount)
        if sale <= 0:
            raise ValidationFailedError("sale_amount", "Sale amount must be positive")
        pricing.ensure_within_limit(sale, "sale_amount")
        premium_percent = Decimal(str(buyer_premium_percent))
        commission_percent = Decimal(str(seller_commission_percent))
        if premium_percent < 0 or commission_percent < 0:
            raise ValidationFailedError("percent", "Fee percentages cannot be negative")
        tax = pricing.to_money(tax_amount)
        if tax < 0:
            raise ValidationFailedError("tax_amount", "Tax amount cannot be negative")

        now = now or datetime.now(UTC)
        fees = pricing.calculate_sale_fees(sale, premium_percent, commission_percent)
        pricing.ensure_within_limit(pricing.to_money(fees.total_buyer_pays + tax), "total_amount")
        invoice = cls(
            listing_id=listing_id,
            seller_id=seller_id,
            buyer_id=buyer_id,
            invoice_number=pricing.generate_invoice_number(now),
            sale_amount=sale,
            buyer_premium_percent=premium_percent,
            buyer_premium_amount=fees.buyer_premium_amount,
            tax_amount=tax,
            seller_commission_percent=commission_percent,
            seller_commission_amount=fees.seller_commission_amount,
            seller_payout_amount=fees.seller_payout_amount,
            payment_due_date=now.date() + timedelta(days=payment_due_days),
            created_at=now,
            updated_at=now,
        )
        pricing.recompute(invoice)
        return invoice

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def party_id(self, role: ActorRole) -> str:
        return self.buyer_id if role is ActorRole.BUYER else self.seller_id

    @property
    def fee_amount(self) -> Decimal:
        return pricing.to_money(self.packaging_amount + self.shipping_amount)

    @property
    def unapproved_fees_amount(self) -> Decimal:
        """Part of total_amount the buyer has not agreed to yet."""
        if self.fees_status is FeesStatus.APPROVED:
            return pricing.ZERO
        return self.fee_amount

    @property
    def is_paid(self) -> bool:
        return self.payment_status is PaymentStatus.PAID

    @property
    def is_terminal(self) -> bool:
        return self.is_paid and self.fulfillment_status is FulfillmentStatus.DELIVERED

    def is_overdue(self, now: datetime | None = None) -> bool:
        """Payment is past due: still pending and today is after the due date."""
        if self.payment_status is not PaymentStatus.PENDING or self.payment_due_date is None:
            return False
        now = now or datetime.now(UTC)
        return now.date() > self.payment_due_date

    def touch(self, now: datetime) -> None:
        self.updated_at = now
