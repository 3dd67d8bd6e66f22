"""Notification dispatcher adapters.

Implementations of the NotificationDispatcher protocol:
    - LoggingNotificationDispatcher: writes each event to the structured log
    - InMemoryNotificationDispatcher: collects events (tests, simulation)
    - HttpNotificationDispatcher:    POSTs each event as JSON to a webhook

Dispatch happens after the invoice transaction commits. Adapters may raise;
the orchestrator logs and swallows dispatch failures.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from auction_settlement.logging_config import get_logger

if TYPE_CHECKING:
    from auction_settlement.config import Settings
    from auction_settlement.domain.collaborators import NotificationDispatcher
    from auction_settlement.domain.events import DomainEvent

logger = get_logger(__name__)


class LoggingNotificationDispatcher:
    async def dispatch(self, event: DomainEvent) -> None:
        logger.info(
            "notification.sent",
            channel="log",
            event_type=event.event_type.value,
            invoice_id=event.invoice_id,
            target_actor_id=event.target_actor_id,
            summary=event.summary,
        )


class InMemoryNotificationDispatcher:
    """Records dispatched events. Set `fail_with` to make every dispatch raise."""

    def __init__(self) -> None:
        self.sent: list[DomainEvent] = []
        self.fail_with: Exception | None = None

    async def dispatch(self, event: DomainEvent) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(event)

    def for_actor(self, actor_id: str) -> list[DomainEvent]:
        return [event for event in self.sent if event.target_actor_id == actor_id]


class HttpNotificationDispatcher:
    """Delivers events to a webhook; retries transport errors."""

    def __init__(self, webhook_url: str, timeout: float = 5.0) -> None:
        if not webhook_url:
            raise ValueError("notification_webhook_url must be set for the http backend")
        self.webhook_url = webhook_url
        self.timeout = timeout

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def dispatch(self, event: DomainEvent) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.webhook_url, json=event.to_dict())
            response.raise_for_status()
        logger.debug(
            "notification.sent",
            channel="http",
            event_type=event.event_type.value,
            invoice_id=event.invoice_id,
            status_code=response.status_code,
        )


class NotificationDispatcherFactory:
    """Build the configured dispatcher.

    Usage:
        dispatcher = NotificationDispatcherFactory.create(settings)
    """

    @classmethod
    def create(cls, settings: Settings) -> NotificationDispatcher:
        backend = settings.notification_backend
        if backend == "log":
            return LoggingNotificationDispatcher()
        if backend == "memory":
            return InMemoryNotificationDispatcher()
        if backend == "http":
            return HttpNotificationDispatcher(
                settings.notification_webhook_url,
                timeout=settings.notification_timeout_seconds,
            )
        raise ValueError(
            f"Unknown notification backend: '{backend}'. "
            f"Valid backends: {cls.get_supported_backends()}"
        )

    @classmethod
    def get_supported_backends(cls) -> list[str]:
        return ["log", "memory", "http"]
