"""Amounts and deadlines derived from an order."""

from __future__ import annotations

from datetime import datetime, timedelta

from escrow.core.config import SettlementSettings
from escrow.domain.orders import OrderRecord


def return_refund_cents(order: OrderRecord) -> int:
    """Item, shipping and tax. The buyer fee is not refundable on returns or cancellations."""
    return order.item_price_cents + order.shipping_cents + order.tax_cents


def dispute_refund_cents(order: OrderRecord) -> int:
    """A dispute decided for the buyer refunds the whole charge."""
    return order.total_cents


def inspection_deadline(delivered_at: datetime, settings: SettlementSettings) -> datetime:
    return delivered_at + timedelta(hours=settings.inspection_window_hours)


def return_deadline(requested_at: datetime, settings: SettlementSettings) -> datetime:
    return requested_at + timedelta(hours=settings.return_ship_window_hours)
