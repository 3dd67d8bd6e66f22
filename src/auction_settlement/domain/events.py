"""Domain events emitted by invoice transitions.

Events are produced by the sub-protocols and handed, after commit, to the
notification dispatcher. Each carries the invoice, the party it is meant
for, and a human-readable summary; delivery channel is the dispatcher's
concern.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from auction_settlement.domain.enums import EventType


@dataclass(frozen=True)
class DomainEvent:
    """A single notifiable fact about an invoice.

    Attributes:
        event_type: What happened.
        invoice_id: The invoice it happened to.
        target_actor_id: The buyer or seller who should hear about it.
        summary: One-line human-readable description.
        payload: Structured details (amounts, carrier, condition, ...).
        occurred_at: When the transition was accepted.
    """

    event_type: EventType
    invoice_id: str
    target_actor_id: str
    summary: str
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the notification webhook and the audit log."""
        return {
            "event_type": self.event_type.value,
            "invoice_id": self.invoice_id,
            "target_actor_id": self.target_actor_id,
            "summary": self.summary,
            "payload": self.payload,
            "occurred_at": self.occurred_at.isoformat(),
        }
