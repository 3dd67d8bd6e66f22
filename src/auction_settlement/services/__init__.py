"""Application services — use case orchestration."""

from auction_settlement.services.invoice_service import CommandOutcome, InvoiceService
from auction_settlement.services.projection_service import (
    DashboardSummary,
    InvoiceView,
    ProjectionService,
)

__all__ = [
    "CommandOutcome",
    "DashboardSummary",
    "InvoiceService",
    "InvoiceView",
    "ProjectionService",
]
