"""Domain layer — pure business logic with zero framework dependencies."""

from auction_settlement.domain.collaborators import NotificationDispatcher, ObjectStorage
from auction_settlement.domain.commands import (
    COMMAND_PERMISSIONS,
    ApproveFees,
    AttachShippingDocuments,
    Command,
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
    CommandType,
    DeliveryCondition,
    EventType,
    FeesStatus,
    FulfillmentStatus,
    PaymentStatus,
)
from auction_settlement.domain.events import DomainEvent
from auction_settlement.domain.exceptions import (
    AlreadyConfirmedError,
    ConcurrentModificationError,
    DuplicateOperationError,
    InvalidStateTransitionError,
    InvoiceNotFoundError,
    PaymentPreconditionFailedError,
    PermissionDeniedError,
    SettlementError,
    StorageUnavailableError,
    ValidationFailedError,
)
from auction_settlement.domain.invoice import FreightDetails, FreightPatch, Invoice
from auction_settlement.domain.lifecycle import available_commands, execute

__all__ = [
    "NotificationDispatcher",
    "ObjectStorage",
    "COMMAND_PERMISSIONS",
    "ApproveFees",
    "AttachShippingDocuments",
    "Command",
    "ConfirmDelivery",
    "DocumentUpload",
    "MarkDelivered",
    "MarkShipped",
    "RejectFees",
    "SaveFeeDraft",
    "SubmitFeesForApproval",
    "UpdateFreightDetails",
    "ActorRole",
    "CommandType",
    "DeliveryCondition",
    "EventType",
    "FeesStatus",
    "FulfillmentStatus",
    "PaymentStatus",
    "DomainEvent",
    "AlreadyConfirmedError",
    "ConcurrentModificationError",
    "DuplicateOperationError",
    "InvalidStateTransitionError",
    "InvoiceNotFoundError",
    "PaymentPreconditionFailedError",
    "PermissionDeniedError",
    "SettlementError",
    "StorageUnavailableError",
    "ValidationFailedError",
    "FreightDetails",
    "FreightPatch",
    "Invoice",
    "available_commands",
    "execute",
]
