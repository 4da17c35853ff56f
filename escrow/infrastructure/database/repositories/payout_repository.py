"""SQLAlchemy implementation for payouts"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from sqlalchemy import desc, select

from escrow.db.models import Payout
from escrow.domain.common.repository import AsyncRepository
from escrow.infrastructure.database.values import plain


class SqlPayoutRepository(AsyncRepository[Payout]):
    async def create(
        self,
        *,
        seller_id: str,
        gross_cents: int,
        fee_cents: int,
        net_cents: int,
        method: Any,
        currency: str,
        external_payout_ref: Optional[str],
        fee_transfer_ref: Optional[str],
        status: str,
    ) -> Payout:
        payout = Payout(
            seller_id=seller_id,
            gross_cents=gross_cents,
            fee_cents=fee_cents,
            net_cents=net_cents,
            method=plain(method),
            currency=currency,
            external_payout_ref=external_payout_ref,
            fee_transfer_ref=fee_transfer_ref,
            status=status,
        )
        await self.add(payout)
        await self.session.refresh(payout)
        return payout

    async def list_for_seller(self, seller_id: str, limit: int, offset: int) -> Sequence[Payout]:
        stmt = (
            select(Payout)
            .where(Payout.seller_id == seller_id)
            .order_by(desc(Payout.created_at))
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
