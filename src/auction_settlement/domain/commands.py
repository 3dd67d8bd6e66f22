"""Commands accepted by the invoice orchestrator, and who may issue them.

Every command is owned by exactly one role. Authorization is a static
lookup in COMMAND_PERMISSIONS followed by a check that the actor really is
that party on this invoice.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, ClassVar

from auction_settlement.domain.enums import ActorRole, CommandType, DeliveryCondition
from auction_settlement.domain.exceptions import PermissionDeniedError
from auction_settlement.domain.invoice import FreightPatch

if TYPE_CHECKING:
    from auction_settlement.domain.invoice import Invoice


@dataclass(frozen=True)
class DocumentUpload:
    """Raw file content to be handed to object storage before a command runs."""

    content: bytes
    content_type: str
    filename: str | None = None


# ---------------------------------------------------------------------------
# Fee negotiation (seller proposes, buyer responds)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SaveFeeDraft:
    """Store packaging/shipping amounts and notes. None leaves a field unchanged."""

    command_type: ClassVar[CommandType] = CommandType.SAVE_FEE_DRAFT

    packaging_amount: Decimal | None = None
    packaging_note: str | None = None
    shipping_amount: Decimal | None = None
    shipping_note: str | None = None
    shipping_quote_reference: str | None = None
    shipping_quote_upload: DocumentUpload | None = None


@dataclass(frozen=True)
class SubmitFeesForApproval:
    command_type: ClassVar[CommandType] = CommandType.SUBMIT_FEES_FOR_APPROVAL


@dataclass(frozen=True)
class ApproveFees:
    command_type: ClassVar[CommandType] = CommandType.APPROVE_FEES


@dataclass(frozen=True)
class RejectFees:
    command_type: ClassVar[CommandType] = CommandType.REJECT_FEES

    reason: str = ""


# ---------------------------------------------------------------------------
# Fulfillment (seller)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MarkShipped:
    command_type: ClassVar[CommandType] = CommandType.MARK_SHIPPED

    carrier: str = ""
    tracking_number: str | None = None
    freight: FreightPatch = field(default_factory=FreightPatch)


@dataclass(frozen=True)
class UpdateFreightDetails:
    command_type: ClassVar[CommandType] = CommandType.UPDATE_FREIGHT_DETAILS

    freight: FreightPatch = field(default_factory=FreightPatch)
    carrier: str | None = None
    tracking_number: str | None = None


@dataclass(frozen=True)
class MarkDelivered:
    command_type: ClassVar[CommandType] = CommandType.MARK_DELIVERED


# ---------------------------------------------------------------------------
# Delivery confirmation (buyer)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfirmDelivery:
    command_type: ClassVar[CommandType] = CommandType.CONFIRM_DELIVERY

    condition: DeliveryCondition | str = DeliveryCondition.GOOD
    notes: str = ""
    signed_document_reference: str | None = None
    signed_document_upload: DocumentUpload | None = None
    damage_evidence_references: tuple[str, ...] = ()
    damage_evidence_uploads: tuple[DocumentUpload, ...] = ()


@dataclass(frozen=True)
class AttachShippingDocuments:
    command_type: ClassVar[CommandType] = CommandType.ATTACH_SHIPPING_DOCUMENTS

    signed_document_reference: str | None = None
    signed_document_upload: DocumentUpload | None = None
    additional_photo_references: tuple[str, ...] = ()
    additional_photo_uploads: tuple[DocumentUpload, ...] = ()


Command = (
    SaveFeeDraft
    | SubmitFeesForApproval
    | ApproveFees
    | RejectFees
    | MarkShipped
    | UpdateFreightDetails
    | MarkDelivered
    | ConfirmDelivery
    | AttachShippingDocuments
)


_SELLER = frozenset({ActorRole.SELLER})
_BUYER = frozenset({ActorRole.BUYER})

COMMAND_PERMISSIONS: dict[CommandType, frozenset[ActorRole]] = {
    CommandType.SAVE_FEE_DRAFT: _SELLER,
    CommandType.SUBMIT_FEES_FOR_APPROVAL: _SELLER,
    CommandType.APPROVE_FEES: _BUYER,
    CommandType.REJECT_FEES: _BUYER,
    CommandType.MARK_SHIPPED: _SELLER,
    CommandType.UPDATE_FREIGHT_DETAILS: _SELLER,
    CommandType.MARK_DELIVERED: _SELLER,
    CommandType.CONFIRM_DELIVERY: _BUYER,
    CommandType.ATTACH_SHIPPING_DOCUMENTS: _BUYER,
}


def commands_for(role: ActorRole) -> list[CommandType]:
    """All command types a role may ever issue."""
    return [cmd for cmd, roles in COMMAND_PERMISSIONS.items() if role in roles]


def check_role(command: Command, actor_role: ActorRole) -> None:
    """Raise PermissionDeniedError if the role may not issue this command."""
    if actor_role not in COMMAND_PERMISSIONS[command.command_type]:
        owner = " or ".join(sorted(r.value for r in COMMAND_PERMISSIONS[command.command_type]))
        raise PermissionDeniedError(
            command.command_type.value,
            actor_role.value,
            reason=f"Only the {owner} may perform {command.command_type.value}",
        )


def authorize(invoice: Invoice, command: Command, actor_id: str, actor_role: ActorRole) -> None:
    """Check role ownership of the command and that the actor is that party."""
    check_role(command, actor_role)
    if invoice.party_id(actor_role) != actor_id:
        raise PermissionDeniedError(
            command.command_type.value,
            actor_role.value,
            reason=f"Actor {actor_id} is not the {actor_role.value} on this invoice",
        )
