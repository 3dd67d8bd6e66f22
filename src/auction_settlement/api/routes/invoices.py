"""Invoice REST API routes.

Routes:
    POST   /api/v1/invoices                 — Create the invoice for a closed sale
    GET    /api/v1/invoices/{id}            — Invoice projection (incl. is_overdue)
    GET    /api/v1/invoices/{id}/events     — Audit trail
    POST   /api/v1/invoices/{id}/commands   — Buyer/seller command
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from auction_settlement.api.deps import get_invoice_service, get_projection_service
from auction_settlement.logging_config import get_logger
from auction_settlement.schemas.invoice import (
    CommandRequest,
    CommandResultResponse,
    CreateInvoiceRequest,
    DomainEventResponse,
    ErrorResponse,
    InvoiceEventResponse,
    InvoiceResponse,
)
from auction_settlement.services.invoice_service import InvoiceService
from auction_settlement.services.projection_service import ProjectionService, build_view

router = APIRouter(prefix="/api/v1/invoices", tags=["Invoices"])
logger = get_logger(__name__)

_ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=InvoiceResponse,
    status_code=201,
    summary="Create the invoice for a closed sale",
    responses={422: {"model": ErrorResponse}},
)
async def create_invoice(
    request: CreateInvoiceRequest,
    svc: InvoiceService = Depends(get_invoice_service),
) -> InvoiceResponse:
    """Starts at payment pending, fees none, fulfillment awaiting_payment."""
    invoice = await svc.create_invoice(
        listing_id=request.listing_id,
        seller_id=request.seller_id,
        buyer_id=request.buyer_id,
        sale_amount=request.sale_amount,
        buyer_premium_percent=request.buyer_premium_percent,
        seller_commission_percent=request.seller_commission_percent,
        tax_amount=request.tax_amount,
    )
    return InvoiceResponse.from_view(build_view(invoice))


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    summary="Get invoice details",
    responses={404: {"model": ErrorResponse}},
)
async def get_invoice(
    invoice_id: uuid.UUID,
    projections: ProjectionService = Depends(get_projection_service),
) -> InvoiceResponse:
    view = await projections.get_invoice_view(invoice_id)
    return InvoiceResponse.from_view(view)


@router.get(
    "/{invoice_id}/events",
    response_model=list[InvoiceEventResponse],
    summary="Get the audit trail",
    responses={404: {"model": ErrorResponse}},
)
async def get_invoice_events(
    invoice_id: uuid.UUID,
    svc: InvoiceService = Depends(get_invoice_service),
) -> list[InvoiceEventResponse]:
    events = await svc.get_events(invoice_id)
    return [InvoiceEventResponse.model_validate(e) for e in events]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@router.post(
    "/{invoice_id}/commands",
    response_model=CommandResultResponse,
    summary="Apply a buyer or seller command",
    responses=_ERRORS,
)
async def apply_command(
    invoice_id: uuid.UUID,
    request: CommandRequest,
    svc: InvoiceService = Depends(get_invoice_service),
) -> CommandResultResponse:
    """Run one command; a rejected command returns its typed error."""
    outcome = await svc.apply_command(
        invoice_id=invoice_id,
        actor_id=request.actor_id,
        actor_role=request.actor_role,
        command=request.command.to_command(),
    )
    invoice = outcome.unwrap()
    return CommandResultResponse(
        invoice=InvoiceResponse.from_view(build_view(invoice)),
        events=[DomainEventResponse.model_validate(e) for e in outcome.events],
        warnings=outcome.warnings,
    )
