"""Domain models for orders and escrow state."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, Optional


class OrderStatus(StrEnum):
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    ISSUE_REPORTED = "issue_reported"
    DISPUTED = "disputed"
    RETURN_STARTED = "return_started"
    RETURN_PROCESSING = "return_processing"
    RETURNED = "returned"
    REFUNDED = "refunded"
    CANCELLED_PAYMENT = "cancelled_payment"
    CANCELLED = "cancelled"


class EscrowStatus(StrEnum):
    HELD = "held"
    RELEASED = "released"
    REFUNDED = "refunded"


TERMINAL_STATUSES = frozenset(
    {
        OrderStatus.COMPLETED,
        OrderStatus.REFUNDED,
        OrderStatus.RETURNED,
        OrderStatus.CANCELLED_PAYMENT,
        OrderStatus.CANCELLED,
    }
)

# Statuses from which a dispute may be opened: funded and not yet settled.
DISPUTABLE_STATUSES = frozenset(
    {
        OrderStatus.PAID,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.ISSUE_REPORTED,
        OrderStatus.RETURN_STARTED,
        OrderStatus.RETURN_PROCESSING,
    }
)


@dataclass(slots=True)
class OrderRecord:
    id: str
    display_number: str
    buyer_id: str
    seller_id: str
    listing_id: Optional[str]
    item_price_cents: int
    shipping_cents: int
    tax_cents: int
    buyer_fee_cents: int
    seller_net_cents: int
    currency: str
    status: OrderStatus
    escrow_status: Optional[EscrowStatus]
    dispute_flag: bool
    wallet_credited: bool
    needs_reconciliation: bool
    processor_charge_ref: Optional[str]
    processor_transfer_ref: Optional[str]
    processor_refund_ref: Optional[str]
    tracking_ref: Optional[str]
    shipped_at: Optional[datetime]
    delivered_at: Optional[datetime]
    inspection_ends_at: Optional[datetime]
    return_tracking_ref: Optional[str]
    return_shipped_at: Optional[datetime]
    return_deadline: Optional[datetime]
    return_received: bool
    issue_reason: Optional[str]
    return_reason: Optional[str]
    paid_at: Optional[datetime]
    completed_at: Optional[datetime]
    released_at: Optional[datetime]
    refunded_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @property
    def total_cents(self) -> int:
        return self.item_price_cents + self.shipping_cents + self.tax_cents + self.buyer_fee_cents

    @classmethod
    def from_model(cls, model: Any) -> "OrderRecord":
        return cls(
            id=model.id,
            display_number=model.display_number,
            buyer_id=model.buyer_id,
            seller_id=model.seller_id,
            listing_id=model.listing_id,
            item_price_cents=model.item_price_cents,
            shipping_cents=model.shipping_cents,
            tax_cents=model.tax_cents,
            buyer_fee_cents=model.buyer_fee_cents,
            seller_net_cents=model.seller_net_cents,
            currency=model.currency,
            status=OrderStatus(model.status),
            escrow_status=EscrowStatus(model.escrow_status) if model.escrow_status else None,
            dispute_flag=bool(model.dispute_flag),
            wallet_credited=bool(model.wallet_credited),
            needs_reconciliation=bool(model.needs_reconciliation),
            processor_charge_ref=model.processor_charge_ref,
            processor_transfer_ref=model.processor_transfer_ref,
            processor_refund_ref=model.processor_refund_ref,
            tracking_ref=model.tracking_ref,
            shipped_at=model.shipped_at,
            delivered_at=model.delivered_at,
            inspection_ends_at=model.inspection_ends_at,
            return_tracking_ref=model.return_tracking_ref,
            return_shipped_at=model.return_shipped_at,
            return_deadline=model.return_deadline,
            return_received=bool(model.return_received),
            issue_reason=model.issue_reason,
            return_reason=model.return_reason,
            paid_at=model.paid_at,
            completed_at=model.completed_at,
            released_at=model.released_at,
            refunded_at=model.refunded_at,
            cancelled_at=model.cancelled_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


@dataclass(slots=True)
class NewOrder:
    buyer_id: str
    seller_id: str
    item_price_cents: int
    seller_net_cents: int
    shipping_cents: int = 0
    tax_cents: int = 0
    buyer_fee_cents: int = 0
    listing_id: Optional[str] = None
    currency: str = "usd"
