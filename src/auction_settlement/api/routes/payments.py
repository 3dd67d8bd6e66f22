"""Payment gateway webhook.

Routes:
    POST   /api/v1/payments/confirmed — PaymentConfirmed event from the gateway

Events carrying an event_id are claimed in Redis first, so a redelivered
webhook is answered with 409 DUPLICATE_OPERATION without touching the
invoice. If the orchestrator refuses the payment, the claim is released so
the gateway can retry once the precondition clears.
"""

from __future__ import annotations

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends
from redis.exceptions import RedisError

from auction_settlement.api.deps import get_invoice_service, get_redis_client
from auction_settlement.domain.exceptions import DuplicateOperationError
from auction_settlement.infrastructure.redis_client import (
    claim_idempotency,
    release_idempotency,
)
from auction_settlement.logging_config import get_logger
from auction_settlement.schemas.invoice import (
    CommandResultResponse,
    DomainEventResponse,
    ErrorResponse,
    InvoiceResponse,
    PaymentConfirmedRequest,
)
from auction_settlement.services.invoice_service import InvoiceService
from auction_settlement.services.projection_service import build_view

router = APIRouter(prefix="/api/v1/payments", tags=["Payments"])
logger = get_logger(__name__)


def _idempotency_key(event_id: str) -> str:
    return f"payment:{event_id}"


@router.post(
    "/confirmed",
    response_model=CommandResultResponse,
    summary="Payment gateway: payment confirmed",
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def payment_confirmed(
    request: PaymentConfirmedRequest,
    svc: InvoiceService = Depends(get_invoice_service),
    redis: aioredis.Redis | None = Depends(get_redis_client),
) -> CommandResultResponse:
    claimed = False
    if request.event_id and redis is None:
        logger.warning("idempotency.redis_unavailable", error="redis not initialized")
    elif request.event_id:
        key = _idempotency_key(request.event_id)
        try:
            if not await claim_idempotency(key, redis=redis):
                raise DuplicateOperationError(request.event_id)
            claimed = True
        except RedisError as exc:
            # The payments.gateway_event_id unique constraint still catches replays
            logger.warning("idempotency.redis_unavailable", error=str(exc))

    outcome = await svc.confirm_payment(
        invoice_id=request.invoice_id,
        method=request.method,
        paid_at=request.paid_at,
        payment_reference=request.payment_reference,
        gateway_event_id=request.event_id,
    )
    if not outcome.ok and claimed:
        try:
            await release_idempotency(_idempotency_key(request.event_id), redis=redis)
        except RedisError as exc:
            # The claim expires on its own TTL
            logger.warning("idempotency.release_failed", error=str(exc))

    invoice = outcome.unwrap()
    return CommandResultResponse(
        invoice=InvoiceResponse.from_view(build_view(invoice)),
        events=[DomainEventResponse.model_validate(e) for e in outcome.events],
    )
