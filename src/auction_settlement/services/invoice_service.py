"""Invoice Service — the transaction orchestrator.

This is the application layer that coordinates between:
    - Domain sub-protocols (fees, fulfillment, delivery, payment)
    - Object storage (uploads, resolved before the row lock is taken)
    - Repositories (locked load, version-checked save, audit log)
    - Notification dispatcher (after commit, best-effort)

Every command follows the same path:

    authorize party -> dry run on a copy -> uploads -> SELECT ... FOR UPDATE
    -> re-check + mutate -> save -> audit -> COMMIT -> dispatch notifications

Rejected commands never raise out of apply_command / confirm_payment; the
typed error comes back on the CommandOutcome and the transaction is rolled
back, so no partial mutation is ever persisted.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from auction_settlement.config import get_settings
from auction_settlement.domain import lifecycle, payment
from auction_settlement.domain.commands import (
    AttachShippingDocuments,
    ConfirmDelivery,
    SaveFeeDraft,
    authorize,
)
from auction_settlement.domain.enums import (
    NOTIFIABLE_EVENTS,
    DeliveryCondition,
    EventType,
)
from auction_settlement.domain.events import DomainEvent
from auction_settlement.domain.exceptions import (
    DuplicateOperationError,
    InvoiceNotFoundError,
    SettlementError,
    StorageUnavailableError,
)
from auction_settlement.domain.invoice import Invoice
from auction_settlement.infrastructure.database.orm_models import PaymentRecord
from auction_settlement.infrastructure.database.repositories import (
    EventRepository,
    InvoiceRepository,
    PaymentRepository,
)
from auction_settlement.logging_config import get_logger, invoice_log_context

if TYPE_CHECKING:
    import uuid
    from decimal import Decimal

    from sqlalchemy.ext.asyncio import AsyncSession

    from auction_settlement.config import Settings
    from auction_settlement.domain.collaborators import NotificationDispatcher, ObjectStorage
    from auction_settlement.domain.commands import Command, DocumentUpload
    from auction_settlement.domain.enums import ActorRole
    from auction_settlement.infrastructure.database.orm_models import InvoiceEventRecord

logger = get_logger(__name__)

GATEWAY_ACTOR = "PAYMENT_GATEWAY"
# Stands in for a storage reference while a command is checked ahead of its uploads
_PENDING_UPLOAD = "pending-upload"


@dataclass
class CommandOutcome:
    """Result of a command: the new invoice state or the typed error.

    Attributes:
        invoice: The invoice after the command (None when rejected).
        events: Domain events emitted by the command.
        warnings: Non-blocking problems the caller should see
            (e.g., damage evidence that could not be stored).
        error: Why the command was rejected, if it was.
    """

    invoice: Invoice | None = None
    events: list[DomainEvent] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: SettlementError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Invoice:
        """Return the invoice, or raise the error the command was rejected with."""
        if self.error is not None:
            raise self.error
        if self.invoice is None:
            raise RuntimeError("CommandOutcome carries neither an invoice nor an error")
        return self.invoice


class InvoiceService:
    """Runs commands and gateway events against invoices."""

    def __init__(
        self,
        session: AsyncSession,
        storage: ObjectStorage,
        dispatcher: NotificationDispatcher,
        settings: Settings | None = None,
    ) -> None:
        self._session = session
        self._storage = storage
        self._dispatcher = dispatcher
        self._settings = settings or get_settings()
        self._invoice_repo = InvoiceRepository(session)
        self._event_repo = EventRepository(session)
        self._payment_repo = PaymentRepository(session)

    # ------------------------------------------------------------------
    # Sale origination
    # ------------------------------------------------------------------

    async def create_invoice(
        self,
        listing_id: str,
        seller_id: str,
        buyer_id: str,
        sale_amount: Decimal,
        buyer_premium_percent: Decimal | None = None,
        seller_commission_percent: Decimal | None = None,
        tax_amount: Decimal | None = None,
        now: datetime | None = None,
    ) -> Invoice:
        """Create the invoice for a closed sale.

        Percentages default to the configured marketplace rates.

        Raises:
            ValidationFailedError: On missing parties or non-positive amounts.
        """
        settings = self._settings
        invoice = Invoice.create(
            listing_id=listing_id,
            seller_id=seller_id,
            buyer_id=buyer_id,
            sale_amount=sale_amount,
            buyer_premium_percent=(
                settings.default_buyer_premium_percent
                if buyer_premium_percent is None
                else buyer_premium_percent
            ),
            seller_commission_percent=(
                settings.default_seller_commission_percent
                if seller_commission_percent is None
                else seller_commission_percent
            ),
            payment_due_days=settings.payment_due_days,
            tax_amount=tax_amount or 0,
            now=now,
        )
        await self._invoice_repo.create(invoice)
        await self._event_repo.record(
            invoice,
            DomainEvent(
                event_type=EventType.INVOICE_CREATED,
                invoice_id=str(invoice.id),
                target_actor_id=invoice.buyer_id,
                summary=f"Invoice {invoice.invoice_number} created for listing {listing_id}",
                payload={
                    "sale_amount": str(invoice.sale_amount),
                    "buyer_premium_amount": str(invoice.buyer_premium_amount),
                    "total_amount": str(invoice.total_amount),
                    "payment_due_date": invoice.payment_due_date.isoformat(),
                },
                occurred_at=invoice.created_at,
            ),
            actor_id="SYSTEM",
        )
        await self._session.commit()

        logger.info(
            "invoice.created",
            invoice_id=str(invoice.id),
            invoice_number=invoice.invoice_number,
            total=str(invoice.total_amount),
        )
        return invoice

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def apply_command(
        self,
        invoice_id: uuid.UUID,
        actor_id: str,
        actor_role: ActorRole,
        command: Command,
        now: datetime | None = None,
    ) -> CommandOutcome:
        """Validate, apply and persist one command from a buyer or seller."""
        warnings: list[str] = []
        with invoice_log_context(str(invoice_id), actor_id):
            try:
                snapshot = await self._authorize(invoice_id, command, actor_id, actor_role)
                lifecycle.execute(
                    copy.deepcopy(snapshot), _with_placeholder_uploads(command), actor_id, actor_role, now
                )
                command, warnings = await self._resolve_uploads(command)

                record = await self._lock(invoice_id)
                invoice = self._invoice_repo.to_domain(record)
                events = lifecycle.execute(invoice, command, actor_id, actor_role, now)

                await self._invoice_repo.save(record, invoice)
                for event in events:
                    await self._event_repo.record(invoice, event, actor_id, actor_role)
                await self._session.commit()
            except SettlementError as err:
                await self._session.rollback()
                logger.warning(
                    "invoice.command_rejected",
                    command=command.command_type.value,
                    actor_role=actor_role.value,
                    code=err.code,
                    reason=err.message,
                )
                return CommandOutcome(warnings=warnings, error=err)

            logger.info(
                "invoice.command_applied",
                command=command.command_type.value,
                actor_role=actor_role.value,
                payment_status=invoice.payment_status.value,
                fees_status=invoice.fees_status.value,
                fulfillment_status=invoice.fulfillment_status.value,
                total=str(invoice.total_amount),
            )
            await self._dispatch(events)
        return CommandOutcome(invoice=invoice, events=events, warnings=warnings)

    # ------------------------------------------------------------------
    # Payment gateway
    # ------------------------------------------------------------------

    async def confirm_payment(
        self,
        invoice_id: uuid.UUID,
        method: str,
        paid_at: datetime,
        payment_reference: str | None = None,
        gateway_event_id: str | None = None,
        now: datetime | None = None,
    ) -> CommandOutcome:
        """Accept a PaymentConfirmed event from the gateway.

        Refused while fees await approval or once the invoice is paid.
        """
        now = now or datetime.now(UTC)
        with invoice_log_context(str(invoice_id), GATEWAY_ACTOR):
            try:
                if gateway_event_id and await self._payment_repo.get_by_gateway_event(
                    gateway_event_id
                ):
                    raise DuplicateOperationError(gateway_event_id)

                record = await self._lock(invoice_id)
                invoice = self._invoice_repo.to_domain(record)
                events = payment.confirm_payment(invoice, method, paid_at, now, payment_reference)

                await self._invoice_repo.save(record, invoice)
                await self._payment_repo.create(
                    PaymentRecord(
                        invoice_id=invoice.id,
                        amount=invoice.total_amount,
                        method=invoice.payment_method,
                        payment_reference=payment_reference,
                        gateway_event_id=gateway_event_id,
                        paid_at=paid_at,
                    )
                )
                for event in events:
                    await self._event_repo.record(invoice, event, GATEWAY_ACTOR)
                await self._session.commit()
            except SettlementError as err:
                await self._session.rollback()
                logger.warning("payment.rejected", code=err.code, reason=err.message)
                return CommandOutcome(error=err)

            logger.info(
                "payment.confirmed",
                amount=str(invoice.total_amount),
                method=invoice.payment_method,
                payment_reference=payment_reference,
            )
            await self._dispatch(events)
        return CommandOutcome(invoice=invoice, events=events)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_invoice(self, invoice_id: uuid.UUID) -> Invoice:
        record = await self._invoice_repo.get_by_id(invoice_id)
        if record is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return self._invoice_repo.to_domain(record)

    async def get_events(self, invoice_id: uuid.UUID) -> list[InvoiceEventRecord]:
        """Audit trail for an invoice, oldest first."""
        if await self._invoice_repo.get_by_id(invoice_id) is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return await self._event_repo.get_by_invoice(invoice_id)

    async def get_payments(self, invoice_id: uuid.UUID) -> list[PaymentRecord]:
        return await self._payment_repo.get_by_invoice(invoice_id)

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    async def _authorize(
        self,
        invoice_id: uuid.UUID,
        command: Command,
        actor_id: str,
        actor_role: ActorRole,
    ) -> Invoice:
        """Reject strangers before anything is uploaded or locked."""
        record = await self._invoice_repo.get_by_id(invoice_id)
        if record is None:
            raise InvoiceNotFoundError(str(invoice_id))
        invoice = self._invoice_repo.to_domain(record)
        authorize(invoice, command, actor_id, actor_role)
        return invoice

    async def _lock(self, invoice_id: uuid.UUID):
        record = await self._invoice_repo.get_for_update(
            invoice_id, nowait=self._settings.db_lock_nowait
        )
        if record is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return record

    async def _dispatch(self, events: list[DomainEvent]) -> None:
        """Hand notifiable events to the dispatcher. Failures never propagate."""
        for event in events:
            if event.event_type not in NOTIFIABLE_EVENTS:
                continue
            try:
                await self._dispatcher.dispatch(event)
            except Exception:
                logger.exception(
                    "notification.dispatch_failed",
                    event_type=event.event_type.value,
                    target_actor_id=event.target_actor_id,
                )

    async def _store(self, upload: DocumentUpload) -> str:
        return await self._storage.store(upload.content, upload.content_type)

    async def _store_all(
        self, uploads: tuple[DocumentUpload, ...]
    ) -> tuple[list[str], list[StorageUnavailableError]]:
        stored: list[str] = []
        failures: list[StorageUnavailableError] = []
        for upload in uploads:
            try:
                stored.append(await self._store(upload))
            except StorageUnavailableError as exc:
                logger.warning(
                    "storage.upload_failed",
                    filename=upload.filename,
                    content_type=upload.content_type,
                    reason=exc.message,
                )
                failures.append(exc)
        return stored, failures

    async def _resolve_uploads(self, command: Command) -> tuple[Command, list[str]]:
        """Turn raw uploads into storage references before the lock is taken.

        Storage failures degrade instead of failing the command:
            - shipping quote or signed document: dropped, logged
            - damage evidence under damaged/partial: dropped, surfaced as a warning
            - extra photos: dropped, surfaced as a warning; the command fails
              only if nothing at all could be attached
        """
        warnings: list[str] = []

        if isinstance(command, SaveFeeDraft) and command.shipping_quote_upload is not None:
            reference = command.shipping_quote_reference
            stored, _ = await self._store_all((command.shipping_quote_upload,))
            if stored:
                reference = stored[0]
            else:
                warnings.append("Shipping quote could not be stored; fees saved without it")
            return replace(
                command, shipping_quote_reference=reference, shipping_quote_upload=None
            ), warnings

        if isinstance(command, ConfirmDelivery):
            signed = command.signed_document_reference
            if command.signed_document_upload is not None:
                stored, _ = await self._store_all((command.signed_document_upload,))
                signed = stored[0] if stored else signed
            evidence, failures = await self._store_all(command.damage_evidence_uploads)
            if failures and command.condition != DeliveryCondition.GOOD:
                warnings.append(
                    f"{len(failures)} damage evidence file(s) could not be stored; "
                    "delivery was confirmed without them"
                )
            return replace(
                command,
                signed_document_reference=signed,
                signed_document_upload=None,
                damage_evidence_references=(*command.damage_evidence_references, *evidence),
                damage_evidence_uploads=(),
            ), warnings

        if isinstance(command, AttachShippingDocuments):
            signed = command.signed_document_reference
            failures: list[StorageUnavailableError] = []
            if command.signed_document_upload is not None:
                stored, failed = await self._store_all((command.signed_document_upload,))
                signed = stored[0] if stored else signed
                failures.extend(failed)
            photos, failed = await self._store_all(command.additional_photo_uploads)
            failures.extend(failed)

            resolved = replace(
                command,
                signed_document_reference=signed,
                signed_document_upload=None,
                additional_photo_references=(*command.additional_photo_references, *photos),
                additional_photo_uploads=(),
            )
            if failures:
                if not resolved.signed_document_reference and not any(
                    resolved.additional_photo_references
                ):
                    raise failures[0]
                warnings.append(f"{len(failures)} document(s) could not be stored")
            return resolved, warnings

        return command, warnings


def _with_placeholder_uploads(command: Command) -> Command:
    """Swap pending uploads for placeholder references so the command can be checked first."""
    if isinstance(command, SaveFeeDraft) and command.shipping_quote_upload is not None:
        return replace(
            command, shipping_quote_reference=_PENDING_UPLOAD, shipping_quote_upload=None
        )
    if isinstance(command, ConfirmDelivery | AttachShippingDocuments):
        signed = command.signed_document_reference
        if command.signed_document_upload is not None:
            signed = _PENDING_UPLOAD
        command = replace(command, signed_document_reference=signed, signed_document_upload=None)
    if isinstance(command, ConfirmDelivery):
        return replace(
            command,
            damage_evidence_references=(
                *command.damage_evidence_references,
                *(_PENDING_UPLOAD for _ in command.damage_evidence_uploads),
            ),
            damage_evidence_uploads=(),
        )
    if isinstance(command, AttachShippingDocuments):
        return replace(
            command,
            additional_photo_references=(
                *command.additional_photo_references,
                *(_PENDING_UPLOAD for _ in command.additional_photo_uploads),
            ),
            additional_photo_uploads=(),
        )
    return command
