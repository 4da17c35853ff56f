"""SQLAlchemy ORM models."""
import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from escrow.infrastructure.database.base import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


def generate_display_number() -> str:
    return uuid.uuid4().hex[:8].upper()


class Listing(Base):
    __tablename__ = "listings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    seller_id = Column(String(36), nullable=False, index=True)
    title = Column(String(255))
    status = Column(String(20), nullable=False, default="active")  # active, inactive
    is_sold = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Offer(Base):
    __tablename__ = "offers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    listing_id = Column(String(36), ForeignKey("listings.id"), nullable=False, index=True)
    buyer_id = Column(String(36), nullable=False, index=True)
    amount_cents = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending, countered, accepted, declined, expired
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    listing = relationship("Listing")


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    display_number = Column(String(16), unique=True, nullable=False, default=generate_display_number)
    buyer_id = Column(String(36), nullable=False, index=True)
    seller_id = Column(String(36), nullable=False, index=True)
    listing_id = Column(String(36), ForeignKey("listings.id"), nullable=True, index=True)

    item_price_cents = Column(Integer, nullable=False, default=0)
    shipping_cents = Column(Integer, nullable=False, default=0)
    tax_cents = Column(Integer, nullable=False, default=0)
    buyer_fee_cents = Column(Integer, nullable=False, default=0)
    seller_net_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(10), nullable=False, default="usd")

    status = Column(String(30), nullable=False, default="pending_payment", index=True)
    escrow_status = Column(String(20), nullable=True)  # held, released, refunded
    dispute_flag = Column(Boolean, nullable=False, default=False)
    wallet_credited = Column(Boolean, nullable=False, default=False)
    needs_reconciliation = Column(Boolean, nullable=False, default=False)

    processor_charge_ref = Column(String(255))
    processor_transfer_ref = Column(String(255))
    processor_refund_ref = Column(String(255))

    tracking_ref = Column(String(255))
    shipped_at = Column(DateTime(timezone=True))
    delivered_at = Column(DateTime(timezone=True))
    inspection_ends_at = Column(DateTime(timezone=True))

    issue_reason = Column(Text)
    issue_reported_at = Column(DateTime(timezone=True))

    return_reason = Column(Text)
    return_notes = Column(Text)
    return_requested_at = Column(DateTime(timezone=True))
    return_deadline = Column(DateTime(timezone=True))
    return_tracking_ref = Column(String(255))
    return_shipped_at = Column(DateTime(timezone=True))
    return_received = Column(Boolean, nullable=False, default=False)

    paid_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    released_at = Column(DateTime(timezone=True))
    refunded_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    disputes = relationship("Dispute", back_populates="order")


class Dispute(Base):
    __tablename__ = "disputes"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    opened_by = Column(String(10), nullable=False)  # buyer, seller
    reason = Column(String(100), nullable=False)
    description = Column(Text)
    evidence_urls = Column(Text, nullable=False, default="[]")
    buyer_evidence_urls = Column(Text, nullable=False, default="[]")
    seller_evidence_urls = Column(Text, nullable=False, default="[]")
    buyer_response = Column(Text)
    buyer_responded_at = Column(DateTime(timezone=True))
    seller_response = Column(Text)
    seller_responded_at = Column(DateTime(timezone=True))
    status = Column(String(20), nullable=False, default="open", index=True)
    resolution = Column(String(10))  # refund, release
    resolving_outcome = Column(String(10))  # claimed by an in-flight resolution
    resolved_by = Column(String(36))
    resolved_at = Column(DateTime(timezone=True))
    admin_notes = Column(Text)
    processor_ref = Column(String(255))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    order = relationship("Order", back_populates="disputes")


class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint("available_cents >= 0", name="ck_wallets_available_non_negative"),
        CheckConstraint("pending_cents >= 0", name="ck_wallets_pending_non_negative"),
    )

    seller_id = Column(String(36), primary_key=True)
    available_cents = Column(Integer, nullable=False, default=0)
    pending_cents = Column(Integer, nullable=False, default=0)
    lifetime_earnings_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(10), nullable=False, default="usd")
    payout_account_ref = Column(String(255))
    payout_locked = Column(Boolean, nullable=False, default=False)
    locked_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    transactions = relationship("WalletTransaction", back_populates="wallet")


class WalletTransaction(Base):
    __tablename__ = "wallet_transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    seller_id = Column(String(36), ForeignKey("wallets.seller_id"), nullable=False, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=True, index=True)
    payout_id = Column(String(36), ForeignKey("payouts.id"), nullable=True)
    kind = Column(String(20), nullable=False)  # credit, reversal, release, withdrawal
    direction = Column(String(10), nullable=False)  # credit, debit
    bucket = Column(String(10), nullable=False)  # pending, available
    amount_cents = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="completed")
    description = Column(String(255))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    wallet = relationship("Wallet", back_populates="transactions")


class Payout(Base):
    __tablename__ = "payouts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    seller_id = Column(String(36), ForeignKey("wallets.seller_id"), nullable=False, index=True)
    gross_cents = Column(Integer, nullable=False)
    fee_cents = Column(Integer, nullable=False, default=0)
    net_cents = Column(Integer, nullable=False)
    method = Column(String(10), nullable=False)  # instant, standard
    currency = Column(String(10), nullable=False, default="usd")
    external_payout_ref = Column(String(255))
    fee_transfer_ref = Column(String(255))
    status = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ReconciliationCase(Base):
    __tablename__ = "reconciliation_cases"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    entity_type = Column(String(20), nullable=False)  # order, dispute, payout
    entity_id = Column(String(36), nullable=False, index=True)
    operation = Column(String(50), nullable=False)
    external_ref = Column(String(255))
    detail = Column(Text)
    status = Column(String(10), nullable=False, default="open", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    resolved_at = Column(DateTime(timezone=True))
