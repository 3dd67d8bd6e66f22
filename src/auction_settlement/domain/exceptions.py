"""Domain exceptions for auction settlement.

These exceptions are framework-agnostic and represent business rule violations.
The orchestrator returns them as typed results; the API layer's middleware
translates them to HTTP responses.
"""

from __future__ import annotations


class SettlementError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "SETTLEMENT_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Authorization ---


class PermissionDeniedError(SettlementError):
    """Raised when the actor's role (or identity) may not issue a command.

    Example: the seller calling approve_fees.
    """

    def __init__(self, command: str, actor_role: str, reason: str | None = None) -> None:
        super().__init__(
            message=reason or f"A {actor_role} may not perform {command}",
            code="PERMISSION_DENIED",
        )
        self.command = command
        self.actor_role = actor_role


# --- State Machine Errors ---


class InvalidStateTransitionError(SettlementError):
    """Raised when a command is not valid in the current sub-state.

    Example: approve_fees while fees_status is none.
    """

    def __init__(self, current_state: str, attempted: str, detail: str | None = None) -> None:
        message = f"Invalid state transition: {attempted} not allowed from {current_state}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message=message, code="INVALID_STATE_TRANSITION")
        self.current_state = current_state
        self.attempted_state = attempted


class ValidationFailedError(SettlementError):
    """Raised when a command is missing a required field or carries a bad value."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message=message, code="VALIDATION_FAILED")
        self.field = field


class AlreadyConfirmedError(SettlementError):
    """Raised on a second delivery confirmation for the same invoice."""

    def __init__(self, invoice_id: str) -> None:
        super().__init__(
            message=f"Delivery already confirmed for invoice: {invoice_id}",
            code="ALREADY_CONFIRMED",
        )
        self.invoice_id = invoice_id


class PaymentPreconditionFailedError(SettlementError):
    """Raised when a payment confirmation arrives while fees await approval."""

    def __init__(self, invoice_id: str, reason: str) -> None:
        super().__init__(
            message=f"Payment cannot be confirmed for invoice {invoice_id}: {reason}",
            code="PAYMENT_PRECONDITION_FAILED",
        )
        self.invoice_id = invoice_id


# --- Persistence Errors ---


class InvoiceNotFoundError(SettlementError):
    """Raised when an invoice ID does not exist."""

    def __init__(self, invoice_id: str) -> None:
        super().__init__(
            message=f"Invoice not found: {invoice_id}",
            code="INVOICE_NOT_FOUND",
        )
        self.invoice_id = invoice_id


class ConcurrentModificationError(SettlementError):
    """Raised when the invoice row is locked by, or was changed by, another command."""

    def __init__(self, invoice_id: str) -> None:
        super().__init__(
            message=f"Invoice {invoice_id} was modified concurrently; reload and retry",
            code="CONCURRENT_MODIFICATION",
        )
        self.invoice_id = invoice_id


# --- Collaborator Errors ---


class StorageUnavailableError(SettlementError):
    """Raised by object storage adapters when an upload cannot be completed."""

    def __init__(self, message: str, content_type: str | None = None) -> None:
        super().__init__(message=message, code="STORAGE_UNAVAILABLE")
        self.content_type = content_type


# --- Idempotency Errors ---


class DuplicateOperationError(SettlementError):
    """Raised when a duplicate idempotency key is detected."""

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(
            message=f"Duplicate operation detected for key: {idempotency_key}",
            code="DUPLICATE_OPERATION",
        )
