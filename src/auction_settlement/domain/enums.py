"""Domain enumerations for auction settlement.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class PaymentStatus(enum.StrEnum):
    """Payment state of an invoice. Monotonic: pending -> paid."""

    PENDING = "pending"
    PAID = "paid"


class FeesStatus(enum.StrEnum):
    """Packaging/shipping fee negotiation state.

    Transitions are guarded by FeeNegotiationMachine
    (see domain/state_machine.py).
    """

    NONE = "none"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


class FulfillmentStatus(enum.StrEnum):
    """Shipment lifecycle of the physical item. Never regresses."""

    AWAITING_PAYMENT = "awaiting_payment"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"


class DeliveryCondition(enum.StrEnum):
    """Condition reported by the buyer when confirming delivery."""

    GOOD = "good"
    DAMAGED = "damaged"
    PARTIAL = "partial"


class ActorRole(enum.StrEnum):
    """The party issuing a command."""

    BUYER = "buyer"
    SELLER = "seller"


class CommandType(enum.StrEnum):
    """Commands accepted by the orchestrator.

    The role allowed to issue each one lives in
    domain/commands.py (COMMAND_PERMISSIONS).
    """

    SAVE_FEE_DRAFT = "save_fee_draft"
    SUBMIT_FEES_FOR_APPROVAL = "submit_fees_for_approval"
    APPROVE_FEES = "approve_fees"
    REJECT_FEES = "reject_fees"
    MARK_SHIPPED = "mark_shipped"
    UPDATE_FREIGHT_DETAILS = "update_freight_details"
    MARK_DELIVERED = "mark_delivered"
    CONFIRM_DELIVERY = "confirm_delivery"
    ATTACH_SHIPPING_DOCUMENTS = "attach_shipping_documents"


class EventType(enum.StrEnum):
    """Types of audit events recorded in the invoice_events table.

    Every accepted command MUST produce exactly one audit event. The subset
    listed in NOTIFIABLE_EVENTS is also handed to the notification
    dispatcher.
    """

    # Lifecycle
    INVOICE_CREATED = "INVOICE_CREATED"

    # Fee negotiation
    FEES_DRAFT_SAVED = "FEES_DRAFT_SAVED"
    FEES_SUBMITTED = "FEES_SUBMITTED"
    FEES_APPROVED = "FEES_APPROVED"
    FEES_REJECTED = "FEES_REJECTED"

    # Payment
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"

    # Fulfillment
    ITEM_SHIPPED = "ITEM_SHIPPED"
    FREIGHT_DETAILS_UPDATED = "FREIGHT_DETAILS_UPDATED"
    ITEM_DELIVERED = "ITEM_DELIVERED"

    # Delivery confirmation
    DELIVERY_CONFIRMED = "DELIVERY_CONFIRMED"
    SHIPPING_DOCUMENTS_ATTACHED = "SHIPPING_DOCUMENTS_ATTACHED"


NOTIFIABLE_EVENTS = frozenset(
    {
        EventType.FEES_SUBMITTED,
        EventType.FEES_APPROVED,
        EventType.FEES_REJECTED,
        EventType.PAYMENT_CONFIRMED,
        EventType.PAYMENT_RECEIVED,
        EventType.ITEM_SHIPPED,
        EventType.ITEM_DELIVERED,
        EventType.DELIVERY_CONFIRMED,
    }
)
