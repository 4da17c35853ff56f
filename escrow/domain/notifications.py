"""Outbound notification events.

Delivery (push, in-app, email) belongs to another service; the settlement
domain only hands over a small versioned payload.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any, Optional, Protocol

EVENT_VERSION = 1


class NotificationKind(StrEnum):
    ORDER_PAID = "order_paid"
    ORDER_SHIPPED = "order_shipped"
    ORDER_DELIVERED = "order_delivered"
    ORDER_COMPLETED = "order_completed"
    ORDER_CANCELLED = "order_cancelled"
    ISSUE_REPORTED = "issue_reported"
    DISPUTE_OPENED = "dispute_opened"
    DISPUTE_RESPONSE = "dispute_response"
    DISPUTE_RESOLVED = "dispute_resolved"
    RETURN_STARTED = "return_started"
    RETURN_SHIPPED = "return_shipped"
    RETURN_REFUNDED = "return_refunded"
    COMPLETION_REMINDER = "completion_reminder"
    ESCROW_RELEASED = "escrow_released"
    PAYOUT_SENT = "payout_sent"


@dataclass(slots=True, frozen=True)
class NotificationEvent:
    kind: NotificationKind
    recipient_id: str
    title: str
    body: str
    order_id: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)
    version: int = EVENT_VERSION

    def to_payload(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["kind"] = str(self.kind)
        return payload


class Notifier(Protocol):
    async def publish(self, event: NotificationEvent) -> None:
        ...
