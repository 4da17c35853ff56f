"""Repository protocol for payouts."""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from escrow.db.models import Payout as PayoutModel

from .models import PayoutMethod


class PayoutRepository(Protocol):
    async def create(
        self,
        *,
        seller_id: str,
        gross_cents: int,
        fee_cents: int,
        net_cents: int,
        method: PayoutMethod,
        currency: str,
        external_payout_ref: Optional[str],
        fee_transfer_ref: Optional[str],
        status: str,
    ) -> PayoutModel:
        ...

    async def list_for_seller(self, seller_id: str, limit: int, offset: int) -> Sequence[PayoutModel]:
        ...
