"""Database infrastructure — engine, ORM models, and repositories."""

from auction_settlement.infrastructure.database.engine import (
    build_engine,
    build_session_factory,
    close_db,
    get_async_session,
    get_session_factory,
    init_db,
)
from auction_settlement.infrastructure.database.orm_models import (
    Base,
    InvoiceEventRecord,
    InvoiceRecord,
    PaymentRecord,
)
from auction_settlement.infrastructure.database.repositories import (
    EventRepository,
    InvoiceRepository,
    PaymentRepository,
)

__all__ = [
    "Base",
    "InvoiceRecord",
    "InvoiceEventRecord",
    "PaymentRecord",
    "InvoiceRepository",
    "EventRepository",
    "PaymentRepository",
    "build_engine",
    "build_session_factory",
    "get_async_session",
    "get_session_factory",
    "init_db",
    "close_db",
]
