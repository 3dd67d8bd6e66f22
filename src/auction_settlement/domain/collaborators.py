"""Collaborator Protocols.

Interfaces for the two external services the orchestrator talks to while a
command is in flight. These are Protocols (structural subtyping), so the
adapters in infrastructure/ don't need to inherit from anything. They just
need to match the shape.

Neither collaborator is ever called while the invoice row lock is held.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from auction_settlement.domain.events import DomainEvent


@runtime_checkable
class ObjectStorage(Protocol):
    """Stores uploaded documents and photos.

    Concrete implementations (infrastructure/storage.py):
        - InMemoryObjectStorage  (tests, simulation)
        - LocalObjectStorage     (files on disk, served under a public URL)
        - HttpObjectStorage      (remote upload endpoint via httpx)
    """

    async def store(self, data: bytes, content_type: str) -> str:
        """Persist the payload and return a reference URL both parties can resolve.

        Raises:
            StorageUnavailableError: If the payload could not be stored.
        """
        ...


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Delivers domain events to the targeted party.

    Concrete implementations (infrastructure/notifications.py):
        - LoggingNotificationDispatcher
        - InMemoryNotificationDispatcher
        - HttpNotificationDispatcher (webhook via httpx)
    """

    async def dispatch(self, event: DomainEvent) -> None:
        """Deliver a single event. Failures may raise; callers treat them as best-effort."""
        ...
