"""Pydantic API schemas."""

from auction_settlement.schemas.invoice import (
    CommandRequest,
    CommandResultResponse,
    CreateInvoiceRequest,
    DashboardResponse,
    DomainEventResponse,
    ErrorResponse,
    HealthResponse,
    InvoiceEventResponse,
    InvoiceResponse,
    PaymentConfirmedRequest,
    UploadPayload,
)

__all__ = [
    "CommandRequest",
    "CommandResultResponse",
    "CreateInvoiceRequest",
    "DashboardResponse",
    "DomainEventResponse",
    "ErrorResponse",
    "HealthResponse",
    "InvoiceEventResponse",
    "InvoiceResponse",
    "PaymentConfirmedRequest",
    "UploadPayload",
]
