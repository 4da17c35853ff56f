"""Domain models for wallet operations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, Optional


class TransactionKind(StrEnum):
    CREDIT = "credit"
    REVERSAL = "reversal"
    RELEASE = "release"
    WITHDRAWAL = "withdrawal"


class Direction(StrEnum):
    CREDIT = "credit"
    DEBIT = "debit"


class Bucket(StrEnum):
    PENDING = "pending"
    AVAILABLE = "available"


@dataclass(slots=True)
class WalletSnapshot:
    seller_id: str
    available_cents: int
    pending_cents: int
    lifetime_earnings_cents: int
    currency: str
    payout_locked: bool
    payout_account_ref: Optional[str]
    updated_at: Optional[datetime]

    @classmethod
    def from_model(cls, model: Any) -> "WalletSnapshot":
        return cls(
            seller_id=model.seller_id,
            available_cents=model.available_cents,
            pending_cents=model.pending_cents,
            lifetime_earnings_cents=model.lifetime_earnings_cents,
            currency=model.currency,
            payout_locked=bool(model.payout_locked),
            payout_account_ref=model.payout_account_ref,
            updated_at=model.updated_at,
        )


@dataclass(slots=True)
class WalletTransactionRecord:
    id: str
    seller_id: str
    order_id: Optional[str]
    payout_id: Optional[str]
    kind: TransactionKind
    direction: Direction
    bucket: Bucket
    amount_cents: int
    status: str
    description: Optional[str]
    created_at: Optional[datetime]

    @classmethod
    def from_model(cls, model: Any) -> "WalletTransactionRecord":
        return cls(
            id=model.id,
            seller_id=model.seller_id,
            order_id=model.order_id,
            payout_id=model.payout_id,
            kind=TransactionKind(model.kind),
            direction=Direction(model.direction),
            bucket=Bucket(model.bucket),
            amount_cents=model.amount_cents,
            status=model.status,
            description=model.description,
            created_at=model.created_at,
        )


@dataclass(slots=True, frozen=True)
class LedgerBalances:
    """Balances recomputed from the transaction log."""

    available_cents: int
    pending_cents: int
    lifetime_earnings_cents: int
