"""FastAPI application entry point for auction settlement.

Lifecycle:
    1. Startup: Initialize logging, database, Redis, create tables (dev mode).
    2. Running: Serve the invoice, payment and party APIs (and, with the
       local storage backend, the uploaded documents under /uploads).
    3. Shutdown: Close database and Redis connections gracefully.

Run with:
    uvicorn auction_settlement.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from redis.exceptions import RedisError

from auction_settlement import __version__
from auction_settlement.config import get_settings
from auction_settlement.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings = get_settings()

    # 1. Setup structured logging
    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info(
        "app.starting",
        env=settings.app_env,
        debug=settings.app_debug,
        storage_backend=settings.storage_backend,
        notification_backend=settings.notification_backend,
    )

    # 2. Initialize database
    from auction_settlement.infrastructure.database.engine import close_db, init_db

    await init_db()

    # 3. Initialize Redis (payment idempotency degrades to the DB constraint without it)
    from auction_settlement.infrastructure.redis_client import close_redis, init_redis

    try:
        await init_redis()
    except (RedisError, OSError) as exc:
        logger.warning("app.redis_unavailable", error=str(exc))

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    # Shutdown
    logger.info("app.shutting_down")
    await close_db()
    await close_redis()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory — creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="Auction Settlement",
        description=(
            "Post-sale invoices for equipment auctions: fee negotiation, "
            "payment, shipment and delivery confirmation."
        ),
        version=__version__,
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # --- Middleware ---
    from auction_settlement.api.middleware import setup_middleware

    setup_middleware(app)

    # --- REST API Routes ---
    from auction_settlement.api.routes.health import router as health_router
    from auction_settlement.api.routes.invoices import router as invoices_router
    from auction_settlement.api.routes.parties import router as parties_router
    from auction_settlement.api.routes.payments import router as payments_router

    app.include_router(health_router)
    app.include_router(invoices_router)
    app.include_router(payments_router)
    app.include_router(parties_router)

    # LocalObjectStorage hands out {storage_public_url_base}/uploads/<name>
    if settings.storage_backend == "local":
        app.mount(
            "/uploads",
            StaticFiles(directory=settings.storage_local_path, check_dir=False),
            name="uploads",
        )

    return app


# The app instance used by Uvicorn
app = create_app()
