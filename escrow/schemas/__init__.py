"""Pydantic schemas used across the HTTP layer."""
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class PaymentConfirmedEvent(BaseModel):
    order_id: str
    charge_ref: str = Field(..., min_length=1)
    amount_cents: Optional[int] = Field(None, ge=0)


class OrderCreate(BaseModel):
    seller_id: str
    listing_id: Optional[str] = None
    item_price_cents: int = Field(..., gt=0)
    shipping_cents: int = Field(0, ge=0)
    tax_cents: int = Field(0, ge=0)
    buyer_fee_cents: int = Field(0, ge=0)
    seller_net_cents: int = Field(..., gt=0)
    currency: str = Field("usd", min_length=3, max_length=3)


class ShipRequest(BaseModel):
    tracking_ref: str = Field(..., min_length=1, max_length=255)


class IssueCreate(BaseModel):
    reason: str = Field(..., min_length=1)


class DisputeCreate(BaseModel):
    reason: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    evidence_urls: list[str] = Field(default_factory=list)


class DisputeReply(BaseModel):
    response: str = Field(..., min_length=1)
    evidence_urls: list[str] = Field(default_factory=list)


class DisputeResolveRequest(BaseModel):
    outcome: Literal["refund", "release"]
    notes: Optional[str] = None


class ReturnCreate(BaseModel):
    reason: str = Field(..., min_length=1)
    notes: Optional[str] = None
    tracking_ref: Optional[str] = None


class ReturnTrackingRequest(BaseModel):
    tracking_ref: str = Field(..., min_length=1, max_length=255)


class PayoutCreate(BaseModel):
    method: Literal["instant", "standard"] = "standard"
    amount_cents: Optional[int] = Field(None, gt=0, description="Ignored for instant payouts, which withdraw the full balance")


class JobRequest(BaseModel):
    now: Optional[datetime] = None


class OrderResponse(BaseModel):
    id: str
    display_number: str
    buyer_id: str
    seller_id: str
    listing_id: Optional[str] = None
    item_price_cents: int
    shipping_cents: int
    tax_cents: int
    buyer_fee_cents: int
    seller_net_cents: int
    total_cents: int
    currency: str
    status: str
    escrow_status: Optional[str] = None
    dispute_flag: bool
    wallet_credited: bool
    needs_reconciliation: bool
    tracking_ref: Optional[str] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    inspection_ends_at: Optional[datetime] = None
    return_tracking_ref: Optional[str] = None
    return_deadline: Optional[datetime] = None
    return_received: bool
    paid_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]


class DisputeResponse(BaseModel):
    id: str
    order_id: str
    opened_by: str
    reason: str
    description: Optional[str] = None
    status: str
    resolution: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    admin_notes: Optional[str] = None
    buyer_response: Optional[str] = None
    seller_response: Optional[str] = None
    evidence_urls: list[str] = Field(default_factory=list)
    buyer_evidence_urls: list[str] = Field(default_factory=list)
    seller_evidence_urls: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DisputeListResponse(BaseModel):
    disputes: list[DisputeResponse]


class WalletResponse(BaseModel):
    seller_id: str
    available_cents: int
    pending_cents: int
    lifetime_earnings_cents: int
    currency: str
    payout_locked: bool

    model_config = ConfigDict(from_attributes=True)


class WalletTransactionResponse(BaseModel):
    id: str
    order_id: Optional[str] = None
    payout_id: Optional[str] = None
    kind: str
    direction: str
    bucket: str
    amount_cents: int
    status: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class WalletTransactionListResponse(BaseModel):
    transactions: list[WalletTransactionResponse]


class PayoutResponse(BaseModel):
    id: str
    gross_cents: int
    fee_cents: int
    net_cents: int
    method: str
    currency: str
    external_payout_ref: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PayoutListResponse(BaseModel):
    payouts: list[PayoutResponse]


class ReconciliationCaseResponse(BaseModel):
    id: str
    entity_type: str
    entity_id: str
    operation: str
    external_ref: Optional[str] = None
    detail: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ReconciliationListResponse(BaseModel):
    cases: list[ReconciliationCaseResponse]


class OrderActionResponse(BaseModel):
    already_processed: bool = False
    message: Optional[str] = None
    order: Optional[OrderResponse] = None


class DisputeActionResponse(BaseModel):
    already_processed: bool = False
    message: Optional[str] = None
    dispute: Optional[DisputeResponse] = None


class JobResponse(BaseModel):
    already_processed: bool = False
    message: Optional[str] = None
    data: Any = None


class ErrorDetail(BaseModel):
    kind: str
    message: str
