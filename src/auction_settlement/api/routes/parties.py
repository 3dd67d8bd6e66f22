"""Per-party projections.

Routes:
    GET    /api/v1/parties/{actor_id}/invoices   — Invoices the party is on
    GET    /api/v1/parties/{actor_id}/dashboard  — Status counts + overdue
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from auction_settlement.api.deps import get_projection_service
from auction_settlement.domain.enums import ActorRole
from auction_settlement.schemas.invoice import DashboardResponse, InvoiceResponse
from auction_settlement.services.projection_service import ProjectionService

router = APIRouter(prefix="/api/v1/parties", tags=["Parties"])


@router.get(
    "/{actor_id}/invoices",
    response_model=list[InvoiceResponse],
    summary="List a party's invoices",
)
async def list_party_invoices(
    actor_id: str,
    role: ActorRole | None = Query(default=None, description="Restrict to buyer or seller side"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    projections: ProjectionService = Depends(get_projection_service),
) -> list[InvoiceResponse]:
    views = await projections.list_for_party(actor_id, role, limit, offset)
    return [InvoiceResponse.from_view(view) for view in views]


@router.get(
    "/{actor_id}/dashboard",
    response_model=DashboardResponse,
    summary="Dashboard counts for a party",
)
async def party_dashboard(
    actor_id: str,
    role: ActorRole | None = Query(default=None),
    projections: ProjectionService = Depends(get_projection_service),
) -> DashboardResponse:
    summary = await projections.dashboard(actor_id, role)
    return DashboardResponse.model_validate(summary)
