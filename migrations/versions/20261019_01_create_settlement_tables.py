"""create settlement tables

Revision ID: 5e7a0c2d9b41
Revises: 
Create Date: 2026-10-19 09:30:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "5e7a0c2d9b41"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "listings",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("seller_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=255)),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("is_sold", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_listings_seller_id", "listings", ["seller_id"])

    op.create_table(
        "offers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("listing_id", sa.String(length=36), sa.ForeignKey("listings.id"), nullable=False),
        sa.Column("buyer_id", sa.String(length=36), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_offers_listing_id", "offers", ["listing_id"])
    op.create_index("ix_offers_buyer_id", "offers", ["buyer_id"])

    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("display_number", sa.String(length=16), nullable=False, unique=True),
        sa.Column("buyer_id", sa.String(length=36), nullable=False),
        sa.Column("seller_id", sa.String(length=36), nullable=False),
        sa.Column("listing_id", sa.String(length=36), sa.ForeignKey("listings.id")),
        sa.Column("item_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("shipping_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tax_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("buyer_fee_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("seller_net_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="usd"),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending_payment"),
        sa.Column("escrow_status", sa.String(length=20)),
        sa.Column("dispute_flag", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("wallet_credited", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("needs_reconciliation", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("processor_charge_ref", sa.String(length=255)),
        sa.Column("processor_transfer_ref", sa.String(length=255)),
        sa.Column("processor_refund_ref", sa.String(length=255)),
        sa.Column("tracking_ref", sa.String(length=255)),
        sa.Column("shipped_at", sa.DateTime(timezone=True)),
        sa.Column("delivered_at", sa.DateTime(timezone=True)),
        sa.Column("inspection_ends_at", sa.DateTime(timezone=True)),
        sa.Column("issue_reason", sa.Text()),
        sa.Column("issue_reported_at", sa.DateTime(timezone=True)),
        sa.Column("return_reason", sa.Text()),
        sa.Column("return_notes", sa.Text()),
        sa.Column("return_requested_at", sa.DateTime(timezone=True)),
        sa.Column("return_deadline", sa.DateTime(timezone=True)),
        sa.Column("return_tracking_ref", sa.String(length=255)),
        sa.Column("return_shipped_at", sa.DateTime(timezone=True)),
        sa.Column("return_received", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("paid_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("released_at", sa.DateTime(timezone=True)),
        sa.Column("refunded_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_orders_buyer_id", "orders", ["buyer_id"])
    op.create_index("ix_orders_seller_id", "orders", ["seller_id"])
    op.create_index("ix_orders_listing_id", "orders", ["listing_id"])
    op.create_index("ix_orders_status", "orders", ["status"])

    op.create_table(
        "disputes",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("opened_by", sa.String(length=10), nullable=False),
        sa.Column("reason", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("evidence_urls", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("buyer_evidence_urls", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("seller_evidence_urls", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("buyer_response", sa.Text()),
        sa.Column("buyer_responded_at", sa.DateTime(timezone=True)),
        sa.Column("seller_response", sa.Text()),
        sa.Column("seller_responded_at", sa.DateTime(timezone=True)),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="open"),
        sa.Column("resolution", sa.String(length=10)),
        sa.Column("resolving_outcome", sa.String(length=10)),
        sa.Column("resolved_by", sa.String(length=36)),
        sa.Column("resolved_at", sa.DateTime(timezone=True)),
        sa.Column("admin_notes", sa.Text()),
        sa.Column("processor_ref", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_disputes_order_id", "disputes", ["order_id"])
    op.create_index("ix_disputes_status", "disputes", ["status"])

    op.create_table(
        "wallets",
        sa.Column("seller_id", sa.String(length=36), primary_key=True),
        sa.Column("available_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pending_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("lifetime_earnings_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="usd"),
        sa.Column("payout_account_ref", sa.String(length=255)),
        sa.Column("payout_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("locked_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("available_cents >= 0", name="ck_wallets_available_non_negative"),
        sa.CheckConstraint("pending_cents >= 0", name="ck_wallets_pending_non_negative"),
    )

    op.create_table(
        "payouts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("seller_id", sa.String(length=36), sa.ForeignKey("wallets.seller_id"), nullable=False),
        sa.Column("gross_cents", sa.Integer(), nullable=False),
        sa.Column("fee_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("net_cents", sa.Integer(), nullable=False),
        sa.Column("method", sa.String(length=10), nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="usd"),
        sa.Column("external_payout_ref", sa.String(length=255)),
        sa.Column("fee_transfer_ref", sa.String(length=255)),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_payouts_seller_id", "payouts", ["seller_id"])

    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("seller_id", sa.String(length=36), sa.ForeignKey("wallets.seller_id"), nullable=False),
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("orders.id")),
        sa.Column("payout_id", sa.String(length=36), sa.ForeignKey("payouts.id")),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("direction", sa.String(length=10), nullable=False),
        sa.Column("bucket", sa.String(length=10), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="completed"),
        sa.Column("description", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_wallet_transactions_seller_id", "wallet_transactions", ["seller_id"])
    op.create_index("ix_wallet_transactions_order_id", "wallet_transactions", ["order_id"])

    op.create_table(
        "reconciliation_cases",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("entity_type", sa.String(length=20), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("operation", sa.String(length=50), nullable=False),
        sa.Column("external_ref", sa.String(length=255)),
        sa.Column("detail", sa.Text()),
        sa.Column("status", sa.String(length=10), nullable=False, server_default="open"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("resolved_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_reconciliation_cases_entity_id", "reconciliation_cases", ["entity_id"])
    op.create_index("ix_reconciliation_cases_status", "reconciliation_cases", ["status"])


def downgrade() -> None:
    op.drop_index("ix_reconciliation_cases_status", table_name="reconciliation_cases")
    op.drop_index("ix_reconciliation_cases_entity_id", table_name="reconciliation_cases")
    op.drop_table("reconciliation_cases")

    op.drop_index("ix_wallet_transactions_order_id", table_name="wallet_transactions")
    op.drop_index("ix_wallet_transactions_seller_id", table_name="wallet_transactions")
    op.drop_table("wallet_transactions")

    op.drop_index("ix_payouts_seller_id", table_name="payouts")
    op.drop_table("payouts")

    op.drop_table("wallets")

    op.drop_index("ix_disputes_status", table_name="disputes")
    op.drop_index("ix_disputes_order_id", table_name="disputes")
    op.drop_table("disputes")

    op.drop_index("ix_orders_status", table_name="orders")
    op.drop_index("ix_orders_listing_id", table_name="orders")
    op.drop_index("ix_orders_seller_id", table_name="orders")
    op.drop_index("ix_orders_buyer_id", table_name="orders")
    op.drop_table("orders")

    op.drop_index("ix_offers_buyer_id", table_name="offers")
    op.drop_index("ix_offers_listing_id", table_name="offers")
    op.drop_table("offers")

    op.drop_index("ix_listings_seller_id", table_name="listings")
    op.drop_table("listings")
