"""Domain models for seller payouts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, Optional


class PayoutMethod(StrEnum):
    INSTANT = "instant"
    STANDARD = "standard"


@dataclass(slots=True)
class PayoutRecord:
    id: str
    seller_id: str
    gross_cents: int
    fee_cents: int
    net_cents: int
    method: PayoutMethod
    currency: str
    external_payout_ref: Optional[str]
    fee_transfer_ref: Optional[str]
    status: str
    created_at: Optional[datetime]

    @classmethod
    def from_model(cls, model: Any) -> "PayoutRecord":
        return cls(
            id=model.id,
            seller_id=model.seller_id,
            gross_cents=model.gross_cents,
            fee_cents=model.fee_cents,
            net_cents=model.net_cents,
            method=PayoutMethod(model.method),
            currency=model.currency,
            external_payout_ref=model.external_payout_ref,
            fee_transfer_ref=model.fee_transfer_ref,
            status=model.status,
            created_at=model.created_at,
        )


@dataclass(slots=True, frozen=True)
class PayoutQuote:
    gross_cents: int
    fee_cents: int

    @property
    def net_cents(self) -> int:
        return self.gross_cents - self.fee_cents
