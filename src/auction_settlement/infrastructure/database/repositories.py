"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the caller's responsibility).

InvoiceRepository also owns the mapping between the Invoice aggregate and
its InvoiceRecord row, so nothing above this layer sees ORM objects.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from auction_settlement.domain.enums import (
    ActorRole,
    DeliveryCondition,
    FeesStatus,
    FulfillmentStatus,
    PaymentStatus,
)
from auction_settlement.domain.exceptions import (
    ConcurrentModificationError,
    DuplicateOperationError,
)
from auction_settlement.domain.invoice import FreightDetails, Invoice
from auction_settlement.infrastructure.database.orm_models import (
    InvoiceEventRecord,
    InvoiceRecord,
    PaymentRecord,
)

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from auction_settlement.domain.events import DomainEvent

# Scalar columns copied one-to-one between Invoice and InvoiceRecord
_PLAIN_FIELDS = (
    "invoice_number",
    "listing_id",
    "seller_id",
    "buyer_id",
    "sale_amount",
    "buyer_premium_percent",
    "buyer_premium_amount",
    "packaging_amount",
    "shipping_amount",
    "tax_amount",
    "total_amount",
    "seller_commission_percent",
    "seller_commission_amount",
    "seller_payout_amount",
    "payment_due_date",
    "paid_at",
    "payment_method",
    "payment_reference",
    "packaging_note",
    "shipping_note",
    "shipping_quote_reference",
    "fees_submitted_at",
    "fees_responded_at",
    "fees_rejection_reason",
    "shipped_at",
    "delivered_at",
    "carrier",
    "tracking_reference",
    "delivery_confirmed_at",
    "delivery_confirmed_by",
    "delivery_notes",
    "signed_document_reference",
    "created_at",
    "updated_at",
)

# SQLSTATEs meaning "someone else holds or changed this row"
_LOCK_CONFLICT_CODES = frozenset({"55P03", "40001", "40P01"})


def _aware(value: Any) -> Any:
    """SQLite drops tzinfo; every timestamp in the domain is UTC."""
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _money(value: Any) -> Any:
    if isinstance(value, Decimal):
        return value.quantize(Decimal("0.01"))
    return value


def is_lock_conflict(exc: DBAPIError) -> bool:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code in _LOCK_CONFLICT_CODES


class InvoiceRepository:
    """Data access for invoices."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    @staticmethod
    def to_domain(record: InvoiceRecord) -> Invoice:
        values: dict[str, Any] = {
            name: _aware(getattr(record, name)) for name in _PLAIN_FIELDS
        }
        for name in (
            "sale_amount",
            "buyer_premium_amount",
            "packaging_amount",
            "shipping_amount",
            "tax_amount",
            "total_amount",
            "seller_commission_amount",
            "seller_payout_amount",
        ):
            values[name] = _money(values[name])
        return Invoice(
            id=record.id,
            payment_status=PaymentStatus(record.payment_status),
            fees_status=FeesStatus(record.fees_status),
            fulfillment_status=FulfillmentStatus(record.fulfillment_status),
            delivery_condition=(
                DeliveryCondition(record.delivery_condition) if record.delivery_condition else None
            ),
            freight=FreightDetails.from_dict(record.freight),
            damage_evidence_references=list(record.damage_evidence_references or []),
            additional_photo_references=list(record.additional_photo_references or []),
            **values,
        )

    @staticmethod
    def apply(record: InvoiceRecord, invoice: Invoice) -> InvoiceRecord:
        """Copy the aggregate's state onto its row."""
        for name in _PLAIN_FIELDS:
            setattr(record, name, getattr(invoice, name))
        record.payment_status = invoice.payment_status.value
        record.fees_status = invoice.fees_status.value
        record.fulfillment_status = invoice.fulfillment_status.value
        record.delivery_condition = (
            invoice.delivery_condition.value if invoice.delivery_condition else None
        )
        record.freight = invoice.freight.to_dict()
        record.damage_evidence_references = list(invoice.damage_evidence_references)
        record.additional_photo_references = list(invoice.additional_photo_references)
        return record

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, invoice: Invoice) -> InvoiceRecord:
        """Insert a new invoice."""
        record = self.apply(InvoiceRecord(id=invoice.id), invoice)
        self._session.add(record)
        await self._session.flush()
        return record

    async def save(self, record: InvoiceRecord, invoice: Invoice) -> InvoiceRecord:
        """Write the mutated aggregate back; the UPDATE is version-checked.

        Raises:
            ConcurrentModificationError: If the row changed since it was read.
        """
        self.apply(record, invoice)
        try:
            await self._session.flush()
        except StaleDataError as exc:
            raise ConcurrentModificationError(str(invoice.id)) from exc
        return record

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_by_id(self, invoice_id: uuid.UUID) -> InvoiceRecord | None:
        """Fetch an invoice by its UUID."""
        result = await self._session.execute(
            select(InvoiceRecord).where(InvoiceRecord.id == invoice_id)
        )
        return result.scalar_one_or_none()

    async def get_for_update(
        self, invoice_id: uuid.UUID, nowait: bool = True
    ) -> InvoiceRecord | None:
        """Fetch an invoice holding an exclusive row lock until the transaction ends.

        Raises:
            ConcurrentModificationError: If nowait is set and another
                transaction holds the lock.
        """
        stmt = (
            select(InvoiceRecord)
            .where(InvoiceRecord.id == invoice_id)
            .with_for_update(nowait=nowait)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self._session.execute(stmt)
        except DBAPIError as exc:
            if is_lock_conflict(exc):
                raise ConcurrentModificationError(str(invoice_id)) from exc
            raise
        return result.scalar_one_or_none()

    async def get_by_number(self, invoice_number: str) -> InvoiceRecord | None:
        result = await self._session.execute(
            select(InvoiceRecord).where(InvoiceRecord.invoice_number == invoice_number)
        )
        return result.scalar_one_or_none()

    def _party_filter(self, actor_id: str, role: ActorRole | None):
        if role is ActorRole.BUYER:
            return InvoiceRecord.buyer_id == actor_id
        if role is ActorRole.SELLER:
            return InvoiceRecord.seller_id == actor_id
        return or_(InvoiceRecord.buyer_id == actor_id, InvoiceRecord.seller_id == actor_id)

    async def list_by_party(
        self,
        actor_id: str,
        role: ActorRole | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[InvoiceRecord]:
        """Invoices where the actor is the buyer, the seller, or either; newest first."""
        result = await self._session.execute(
            select(InvoiceRecord)
            .where(self._party_filter(actor_id, role))
            .order_by(InvoiceRecord.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def count_by_status(
        self, actor_id: str, role: ActorRole | None, column: str
    ) -> dict[str, int]:
        """Count the party's invoices grouped by one of the status columns."""
        status_col = getattr(InvoiceRecord, column)
        result = await self._session.execute(
            select(status_col, func.count())
            .where(self._party_filter(actor_id, role))
            .group_by(status_col)
        )
        return {status: count for status, count in result.all()}

    async def count_overdue(self, actor_id: str, role: ActorRole | None, today: date) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(InvoiceRecord)
            .where(
                self._party_filter(actor_id, role),
                InvoiceRecord.payment_status == PaymentStatus.PENDING.value,
                InvoiceRecord.payment_due_date < today,
            )
        )
        return int(result.scalar_one())


class EventRepository:
    """Data access for the append-only audit event log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        invoice: Invoice,
        event: DomainEvent,
        actor_id: str = "SYSTEM",
        actor_role: ActorRole | None = None,
    ) -> InvoiceEventRecord:
        """Append a new audit event. This is the ONLY write operation allowed."""
        evt = InvoiceEventRecord(
            invoice_id=invoice.id,
            event_type=event.event_type.value,
            actor_id=actor_id,
            actor_role=actor_role.value if actor_role else None,
            target_actor_id=event.target_actor_id,
            summary=event.summary,
            metadata_json={
                **event.payload,
                "payment_status": invoice.payment_status.value,
                "fees_status": invoice.fees_status.value,
                "fulfillment_status": invoice.fulfillment_status.value,
            },
            created_at=event.occurred_at,
        )
        self._session.add(evt)
        await self._session.flush()
        return evt

    async def get_by_invoice(self, invoice_id: uuid.UUID) -> list[InvoiceEventRecord]:
        """Fetch all events for an invoice in insertion order."""
        result = await self._session.execute(
            select(InvoiceEventRecord)
            .where(InvoiceEventRecord.invoice_id == invoice_id)
            .order_by(InvoiceEventRecord.id.asc())
        )
        return list(result.scalars().all())


class PaymentRepository:
    """Data access for accepted payments."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, payment: PaymentRecord) -> PaymentRecord:
        """Insert an accepted payment.

        Raises:
            DuplicateOperationError: If the gateway event id was already recorded.
        """
        self._session.add(payment)
        try:
            await self._session.flush()
        except IntegrityError as exc:
            if payment.gateway_event_id:
                raise DuplicateOperationError(payment.gateway_event_id) from exc
            raise
        return payment

    async def get_by_invoice(self, invoice_id: uuid.UUID) -> list[PaymentRecord]:
        result = await self._session.execute(
            select(PaymentRecord)
            .where(PaymentRecord.invoice_id == invoice_id)
            .order_by(PaymentRecord.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_by_gateway_event(self, gateway_event_id: str) -> PaymentRecord | None:
        result = await self._session.execute(
            select(PaymentRecord).where(PaymentRecord.gateway_event_id == gateway_event_id)
        )
        return result.scalar_one_or_none()
