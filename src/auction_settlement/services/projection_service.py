"""Read-only projections over invoices.

Nothing here mutates state or takes locks. Dashboard counts are computed
by grouped queries at read time instead of being maintained as separate
counters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from auction_settlement.domain.enums import (
    ActorRole,
    CommandType,
    FeesStatus,
    FulfillmentStatus,
    PaymentStatus,
)
from auction_settlement.domain.exceptions import InvoiceNotFoundError
from auction_settlement.domain.lifecycle import available_commands
from auction_settlement.infrastructure.database.repositories import InvoiceRepository

if TYPE_CHECKING:
    import uuid
    from decimal import Decimal

    from sqlalchemy.ext.asyncio import AsyncSession

    from auction_settlement.domain.invoice import Invoice


@dataclass(frozen=True)
class InvoiceView:
    """The full invoice plus values derived at read time."""

    invoice: Invoice
    is_overdue: bool
    unapproved_fees_amount: Decimal
    allowed_commands: dict[ActorRole, list[CommandType]] = field(default_factory=dict)


@dataclass(frozen=True)
class DashboardSummary:
    actor_id: str
    role: ActorRole | None
    total: int
    by_payment_status: dict[str, int]
    by_fees_status: dict[str, int]
    by_fulfillment_status: dict[str, int]
    overdue: int


def build_view(invoice: Invoice, now: datetime | None = None) -> InvoiceView:
    now = now or datetime.now(UTC)
    return InvoiceView(
        invoice=invoice,
        is_overdue=invoice.is_overdue(now),
        unapproved_fees_amount=invoice.unapproved_fees_amount,
        allowed_commands={role: available_commands(invoice, role) for role in ActorRole},
    )


def _zero_filled(counts: dict[str, int], statuses) -> dict[str, int]:
    return {status.value: counts.get(status.value, 0) for status in statuses}


class ProjectionService:
    """Query surface for the presentation layer."""

    def __init__(self, session: AsyncSession) -> None:
        self._invoice_repo = InvoiceRepository(session)

    async def get_invoice_view(
        self, invoice_id: uuid.UUID, now: datetime | None = None
    ) -> InvoiceView:
        record = await self._invoice_repo.get_by_id(invoice_id)
        if record is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return build_view(self._invoice_repo.to_domain(record), now)

    async def list_for_party(
        self,
        actor_id: str,
        role: ActorRole | None = None,
        limit: int = 50,
        offset: int = 0,
        now: datetime | None = None,
    ) -> list[InvoiceView]:
        """Invoices where the actor is the buyer and/or seller, newest first."""
        records = await self._invoice_repo.list_by_party(actor_id, role, limit, offset)
        return [build_view(self._invoice_repo.to_domain(r), now) for r in records]

    async def dashboard(
        self,
        actor_id: str,
        role: ActorRole | None = None,
        now: datetime | None = None,
    ) -> DashboardSummary:
        now = now or datetime.now(UTC)
        by_payment = await self._invoice_repo.count_by_status(actor_id, role, "payment_status")
        by_fees = await self._invoice_repo.count_by_status(actor_id, role, "fees_status")
        by_fulfillment = await self._invoice_repo.count_by_status(
            actor_id, role, "fulfillment_status"
        )
        overdue = await self._invoice_repo.count_overdue(actor_id, role, now.date())
        return DashboardSummary(
            actor_id=actor_id,
            role=role,
            total=sum(by_payment.values()),
            by_payment_status=_zero_filled(by_payment, PaymentStatus),
            by_fees_status=_zero_filled(by_fees, FeesStatus),
            by_fulfillment_status=_zero_filled(by_fulfillment, FulfillmentStatus),
            overdue=overdue,
        )
