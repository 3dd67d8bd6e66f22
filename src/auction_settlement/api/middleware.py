"""FastAPI middleware: request context, access log, domain error mapping, CORS.

Stack, outermost first:
    RequestContextMiddleware  binds request_id/method/path, logs each request
    ErrorHandlerMiddleware    SettlementError -> {"error": code, "message": ...}
    CORSMiddleware            origins from Settings.cors_allow_origins

Rejected commands surface as the error their service returned; the status
code is chosen from the error code alone, so every route maps errors the
same way.
"""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from auction_settlement.config import get_settings
from auction_settlement.domain.exceptions import (
    InvalidStateTransitionError,
    SettlementError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

logger = structlog.get_logger(__name__)

ERROR_STATUS_CODES: dict[str, int] = {
    "PERMISSION_DENIED": 403,
    "INVOICE_NOT_FOUND": 404,
    "INVALID_STATE_TRANSITION": 409,
    "ALREADY_CONFIRMED": 409,
    "CONCURRENT_MODIFICATION": 409,
    "DUPLICATE_OPERATION": 409,
    "VALIDATION_FAILED": 422,
    "PAYMENT_PRECONDITION_FAILED": 422,
    "STORAGE_UNAVAILABLE": 503,
}

# Polled by load balancers; not worth an access log line each
_QUIET_PATHS = ("/health",)


def error_response(exc: SettlementError) -> JSONResponse:
    return JSONResponse(
        status_code=ERROR_STATUS_CODES.get(exc.code, 400),
        content={"error": exc.code, "message": exc.message},
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Correlate every log entry of a request and record how it ended."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        if not request.url.path.startswith(_QUIET_PATHS):
            log = logger.warning if response.status_code >= 400 else logger.info
            log(
                "request.completed",
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = f"{duration_ms:.2f}"
        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turn domain errors raised by the routes into structured JSON responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except InvalidStateTransitionError as exc:
            logger.warning(
                "state_machine.invalid_transition",
                current=exc.current_state,
                attempted=exc.attempted_state,
            )
            return error_response(exc)
        except SettlementError as exc:
            logger.warning("domain.error", error=exc.message, code=exc.code)
            return error_response(exc)
        except Exception as exc:
            logger.exception("unhandled.error", error=str(exc))
            return JSONResponse(
                status_code=500,
                content={
                    "error": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                },
            )


def setup_middleware(app: FastAPI) -> None:
    """Register the middleware stack; the last one added runs first."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_settings().cors_allow_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Response-Time-Ms"],
    )
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestContextMiddleware)
