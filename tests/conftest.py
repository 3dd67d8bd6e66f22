"""Shared test fixtures for the auction settlement test suite.

Provides:
    - Domain invoices at each stage of the lifecycle (no database)
    - An in-memory SQLite engine and sessions (aiosqlite, one shared connection)
    - In-memory object storage and notification dispatcher
    - An InvoiceService wired to all of the above
    - An httpx client driving the FastAPI app with those collaborators injected
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import httpx
import pytest

from auction_settlement.config import Settings
from auction_settlement.domain import fees, fulfillment, payment
from auction_settlement.domain.commands import MarkShipped, SaveFeeDraft
from auction_settlement.domain.invoice import Invoice
from auction_settlement.infrastructure.database.engine import (
    build_engine,
    build_session_factory,
)
from auction_settlement.infrastructure.database.orm_models import Base
from auction_settlement.infrastructure.notifications import InMemoryNotificationDispatcher
from auction_settlement.infrastructure.storage import InMemoryObjectStorage
from auction_settlement.services.invoice_service import InvoiceService

SELLER_ID = "seller-1"
BUYER_ID = "buyer-1"

# ---------------------------------------------------------------------------
# Domain Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 3, 2, 15, 30, tzinfo=UTC)


@pytest.fixture
def invoice(now: datetime) -> Invoice:
    """Fresh invoice: 10,000 sale, 5% premium, 8% commission -> total 10,500."""
    return Invoice.create(
        listing_id="lot-1",
        seller_id=SELLER_ID,
        buyer_id=BUYER_ID,
        sale_amount=Decimal("10000"),
        buyer_premium_percent=Decimal("5"),
        seller_commission_percent=Decimal("8"),
        now=now,
    )


@pytest.fixture
def pending_fees_invoice(invoice: Invoice, now: datetime) -> Invoice:
    """200 packaging + 800 shipping, submitted to the buyer."""
    fees.save_fee_draft(
        invoice,
        SaveFeeDraft(packaging_amount=Decimal("200"), shipping_amount=Decimal("800")),
        now,
    )
    fees.submit_fees_for_approval(invoice, now)
    return invoice


@pytest.fixture
def paid_invoice(invoice: Invoice, now: datetime) -> Invoice:
    payment.confirm_payment(invoice, "card", now, now)
    return invoice


@pytest.fixture
def shipped_invoice(paid_invoice: Invoice, now: datetime) -> Invoice:
    fulfillment.mark_shipped(paid_invoice, MarkShipped(carrier="XPO"), now)
    return paid_invoice


# ---------------------------------------------------------------------------
# Infrastructure Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(
        app_env="development",
        database_url="sqlite+aiosqlite:///:memory:",
        storage_backend="memory",
        notification_backend="memory",
        default_buyer_premium_percent=Decimal("5"),
        default_seller_commission_percent=Decimal("8"),
        payment_due_days=7,
    )


@pytest.fixture
async def engine(settings: Settings):
    engine = build_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage()


@pytest.fixture
def dispatcher() -> InMemoryNotificationDispatcher:
    return InMemoryNotificationDispatcher()


@pytest.fixture
def service(session, storage, dispatcher, settings) -> InvoiceService:
    return InvoiceService(session, storage, dispatcher, settings)


@pytest.fixture
async def created_invoice(service: InvoiceService, now: datetime) -> Invoice:
    """A persisted fresh invoice (10,500 total)."""
    return await service.create_invoice(
        listing_id="lot-1",
        seller_id=SELLER_ID,
        buyer_id=BUYER_ID,
        sale_amount=Decimal("10000"),
        buyer_premium_percent=Decimal("5"),
        now=now,
    )


# ---------------------------------------------------------------------------
# API Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def redis_stub():
    """Redis as seen by the payment route; None means Redis is down."""
    return None


@pytest.fixture
def api_app(session_factory, storage, dispatcher, settings, redis_stub):
    """The FastAPI app with every collaborator swapped for the test doubles."""
    from auction_settlement.api import deps
    from auction_settlement.main import create_app

    app = create_app()

    async def _session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[deps.get_db_session] = _session
    app.dependency_overrides[deps.get_object_storage] = lambda: storage
    app.dependency_overrides[deps.get_notification_dispatcher] = lambda: dispatcher
    app.dependency_overrides[deps.get_app_settings] = lambda: settings
    app.dependency_overrides[deps.get_redis_client] = lambda: redis_stub
    return app


@pytest.fixture
async def client(api_app):
    transport = httpx.ASGITransport(app=api_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
