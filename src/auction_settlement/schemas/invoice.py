"""Pydantic schemas for the invoice API.

These schemas define the request/response shapes for the REST API. They are
separate from both the domain dataclasses and the ORM models; each request
model knows how to turn itself into the domain command it carries.

Commands travel as a tagged union on `type`:

    {"actor_id": "seller-1", "actor_role": "seller",
     "command": {"type": "mark_shipped", "carrier": "XPO", "freight": {"pro_number": "123"}}}

File uploads are base64-encoded inside the JSON body.
"""

from __future__ import annotations

import base64
import binascii
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auction_settlement.domain.commands import (
    ApproveFees,
    AttachShippingDocuments,
    ConfirmDelivery,
    DocumentUpload,
    MarkDelivered,
    MarkShipped,
    RejectFees,
    SaveFeeDraft,
    SubmitFeesForApproval,
    UpdateFreightDetails,
)
from auction_settlement.domain.enums import (
    ActorRole,
    DeliveryCondition,
    EventType,
    FeesStatus,
    FulfillmentStatus,
    PaymentStatus,
)
from auction_settlement.domain.invoice import FreightPatch
from auction_settlement.domain.pricing import MAX_AMOUNT

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class CreateInvoiceRequest(BaseModel):
    """Sale origination: one closed auction or accepted offer."""

    listing_id: str = Field(..., min_length=1, max_length=64)
    seller_id: str = Field(..., min_length=1, max_length=64)
    buyer_id: str = Field(..., min_length=1, max_length=64)
    sale_amount: Decimal = Field(..., gt=0, le=MAX_AMOUNT, decimal_places=2, examples=["10000.00"])
    buyer_premium_percent: Decimal | None = Field(
        default=None,
        ge=0,
        le=100,
        description="Defaults to the marketplace rate when omitted",
        examples=["5.0"],
    )
    seller_commission_percent: Decimal | None = Field(default=None, ge=0, le=100)
    tax_amount: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_AMOUNT)


class UploadPayload(BaseModel):
    """A file carried inline in a command."""

    content_base64: str = Field(..., min_length=1, description="Base64-encoded file content")
    content_type: str = Field(..., min_length=3, examples=["application/pdf", "image/jpeg"])
    filename: str | None = None

    @field_validator("content_base64")
    @classmethod
    def _must_be_base64(cls, value: str) -> str:
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("content_base64 is not valid base64") from exc
        return value

    def to_domain(self) -> DocumentUpload:
        return DocumentUpload(
            content=base64.b64decode(self.content_base64),
            content_type=self.content_type,
            filename=self.filename,
        )


def _uploads(items: list[UploadPayload]) -> tuple[DocumentUpload, ...]:
    return tuple(item.to_domain() for item in items)


class FreightFields(BaseModel):
    """Freight metadata; omitted fields are left untouched."""

    bol_number: str | None = None
    pro_number: str | None = None
    freight_class: str | None = None
    weight_lbs: Decimal | None = Field(default=None, ge=0)
    pickup_date: date | None = None
    estimated_delivery: date | None = None
    pickup_contact: str | None = None
    delivery_contact: str | None = None
    special_instructions: str | None = None

    def to_domain(self) -> FreightPatch:
        return FreightPatch(**self.model_dump())


class SaveFeeDraftCommand(BaseModel):
    type: Literal["save_fee_draft"]
    packaging_amount: Decimal | None = Field(default=None, ge=0, le=MAX_AMOUNT)
    packaging_note: str | None = None
    shipping_amount: Decimal | None = Field(default=None, ge=0, le=MAX_AMOUNT)
    shipping_note: str | None = None
    shipping_quote_reference: str | None = None
    shipping_quote_upload: UploadPayload | None = None

    def to_command(self) -> SaveFeeDraft:
        return SaveFeeDraft(
            packaging_amount=self.packaging_amount,
            packaging_note=self.packaging_note,
            shipping_amount=self.shipping_amount,
            shipping_note=self.shipping_note,
            shipping_quote_reference=self.shipping_quote_reference,
            shipping_quote_upload=(
                self.shipping_quote_upload.to_domain() if self.shipping_quote_upload else None
            ),
        )


class SubmitFeesCommand(BaseModel):
    type: Literal["submit_fees_for_approval"]

    def to_command(self) -> SubmitFeesForApproval:
        return SubmitFeesForApproval()


class ApproveFeesCommand(BaseModel):
    type: Literal["approve_fees"]

    def to_command(self) -> ApproveFees:
        return ApproveFees()


class RejectFeesCommand(BaseModel):
    type: Literal["reject_fees"]
    reason: str = ""

    def to_command(self) -> RejectFees:
        return RejectFees(reason=self.reason)


class MarkShippedCommand(BaseModel):
    type: Literal["mark_shipped"]
    carrier: str = ""
    tracking_number: str | None = None
    freight: FreightFields = Field(default_factory=FreightFields)

    def to_command(self) -> MarkShipped:
        return MarkShipped(
            carrier=self.carrier,
            tracking_number=self.tracking_number,
            freight=self.freight.to_domain(),
        )


class UpdateFreightCommand(BaseModel):
    type: Literal["update_freight_details"]
    freight: FreightFields = Field(default_factory=FreightFields)
    carrier: str | None = None
    tracking_number: str | None = None

    def to_command(self) -> UpdateFreightDetails:
        return UpdateFreightDetails(
            freight=self.freight.to_domain(),
            carrier=self.carrier,
            tracking_number=self.tracking_number,
        )


class MarkDeliveredCommand(BaseModel):
    type: Literal["mark_delivered"]

    def to_command(self) -> MarkDelivered:
        return MarkDelivered()


class ConfirmDeliveryCommand(BaseModel):
    type: Literal["confirm_delivery"]
    # Left as a plain string so an unknown condition is reported as a domain
    # VALIDATION_FAILED rather than a schema error
    condition: str = DeliveryCondition.GOOD.value
    notes: str = ""
    signed_document_reference: str | None = None
    signed_document_upload: UploadPayload | None = None
    damage_evidence_references: list[str] = Field(default_factory=list)
    damage_evidence_uploads: list[UploadPayload] = Field(default_factory=list)

    def to_command(self) -> ConfirmDelivery:
        return ConfirmDelivery(
            condition=self.condition,
            notes=self.notes,
            signed_document_reference=self.signed_document_reference,
            signed_document_upload=(
                self.signed_document_upload.to_domain() if self.signed_document_upload else None
            ),
            damage_evidence_references=tuple(self.damage_evidence_references),
            damage_evidence_uploads=_uploads(self.damage_evidence_uploads),
        )


class AttachShippingDocumentsCommand(BaseModel):
    type: Literal["attach_shipping_documents"]
    signed_document_reference: str | None = None
    signed_document_upload: UploadPayload | None = None
    additional_photo_references: list[str] = Field(default_factory=list)
    additional_photo_uploads: list[UploadPayload] = Field(default_factory=list)

    def to_command(self) -> AttachShippingDocuments:
        return AttachShippingDocuments(
            signed_document_reference=self.signed_document_reference,
            signed_document_upload=(
                self.signed_document_upload.to_domain() if self.signed_document_upload else None
            ),
            additional_photo_references=tuple(self.additional_photo_references),
            additional_photo_uploads=_uploads(self.additional_photo_uploads),
        )


CommandPayload = Annotated[
    SaveFeeDraftCommand
    | SubmitFeesCommand
    | ApproveFeesCommand
    | RejectFeesCommand
    | MarkShippedCommand
    | UpdateFreightCommand
    | MarkDeliveredCommand
    | ConfirmDeliveryCommand
    | AttachShippingDocumentsCommand,
    Field(discriminator="type"),
]


class CommandRequest(BaseModel):
    """Envelope for a buyer or seller command."""

    actor_id: str = Field(..., min_length=1, max_length=64)
    actor_role: ActorRole
    command: CommandPayload


class PaymentConfirmedRequest(BaseModel):
    """Event delivered by the payment gateway once money has moved."""

    invoice_id: uuid.UUID
    method: str = Field(..., min_length=1, max_length=50, examples=["card", "ach"])
    paid_at: datetime
    payment_reference: str | None = Field(default=None, max_length=255)
    event_id: str | None = Field(
        default=None,
        max_length=255,
        description="Gateway event id; replays of the same id are rejected",
    )


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class InvoiceResponse(BaseModel):
    """Full invoice projection."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    invoice_number: str
    listing_id: str
    seller_id: str
    buyer_id: str

    sale_amount: Decimal
    buyer_premium_percent: Decimal
    buyer_premium_amount: Decimal
    packaging_amount: Decimal
    shipping_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    seller_commission_percent: Decimal
    seller_commission_amount: Decimal
    seller_payout_amount: Decimal

    payment_status: PaymentStatus
    payment_due_date: date | None
    paid_at: datetime | None
    payment_method: str | None
    payment_reference: str | None

    fees_status: FeesStatus
    packaging_note: str | None
    shipping_note: str | None
    shipping_quote_reference: str | None
    fees_submitted_at: datetime | None
    fees_responded_at: datetime | None
    fees_rejection_reason: str | None

    fulfillment_status: FulfillmentStatus
    shipped_at: datetime | None
    delivered_at: datetime | None
    carrier: str | None
    tracking_reference: str | None
    freight: dict

    delivery_confirmed_at: datetime | None
    delivery_confirmed_by: str | None
    delivery_condition: DeliveryCondition | None
    delivery_notes: str | None
    signed_document_reference: str | None
    damage_evidence_references: list[str]
    additional_photo_references: list[str]

    created_at: datetime
    updated_at: datetime

    is_overdue: bool = False
    unapproved_fees_amount: Decimal = Decimal("0.00")
    allowed_commands: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Commands each role may issue in the current state",
    )

    @field_validator("freight", mode="before")
    @classmethod
    def _freight_as_dict(cls, value):
        return value.to_dict() if hasattr(value, "to_dict") else value

    @classmethod
    def from_view(cls, view) -> InvoiceResponse:
        """Build from a projection_service.InvoiceView."""
        stored = {
            name: getattr(view.invoice, name)
            for name in cls.model_fields
            if name not in _DERIVED_FIELDS
        }
        return cls.model_validate(
            {
                **stored,
                "is_overdue": view.is_overdue,
                "unapproved_fees_amount": view.unapproved_fees_amount,
                "allowed_commands": {
                    role.value: [cmd.value for cmd in commands]
                    for role, commands in view.allowed_commands.items()
                },
            }
        )


_DERIVED_FIELDS = frozenset({"is_overdue", "unapproved_fees_amount", "allowed_commands"})


class DomainEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    event_type: EventType
    invoice_id: str
    target_actor_id: str
    summary: str
    payload: dict
    occurred_at: datetime


class CommandResultResponse(BaseModel):
    """Accepted command: the new state, what was emitted, and any warnings."""

    invoice: InvoiceResponse
    events: list[DomainEventResponse]
    warnings: list[str] = Field(default_factory=list)


class InvoiceEventResponse(BaseModel):
    """Response schema for an audit event."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    invoice_id: uuid.UUID
    event_type: str
    actor_id: str
    actor_role: str | None
    target_actor_id: str | None
    summary: str
    metadata: dict | None = Field(default=None, validation_alias="metadata_json")
    created_at: datetime


class DashboardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    actor_id: str
    role: ActorRole | None
    total: int
    by_payment_status: dict[str, int]
    by_fees_status: dict[str, int]
    by_fulfillment_status: dict[str, int]
    overdue: int


class ErrorResponse(BaseModel):
    error: str
    message: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "unknown"
    redis: str = "unknown"
    storage_backend: str = "unknown"
    notification_backend: str = "unknown"
