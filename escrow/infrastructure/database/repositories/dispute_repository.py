"""SQLAlchemy implementation of the dispute store."""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy import desc, or_, select, update

from escrow.db.models import Dispute
from escrow.domain.common.repository import AsyncRepository
from escrow.infrastructure.database.values import plain, plain_values

_TERMINAL_STATUSES = ("resolved_buyer", "resolved_seller")


class SqlDisputeRepository(AsyncRepository[Dispute]):
    async def create(
        self,
        *,
        order_id: str,
        opened_by: Any,
        reason: str,
        description: Optional[str],
        evidence_urls: list[str],
    ) -> Dispute:
        party = plain(opened_by)
        urls = json.dumps(list(evidence_urls))
        dispute = Dispute(
            order_id=order_id,
            opened_by=party,
            reason=reason,
            description=description,
            status="open",
            evidence_urls=urls,
            buyer_evidence_urls=urls if party == "buyer" else "[]",
            seller_evidence_urls=urls if party == "seller" else "[]",
        )
        await self.add(dispute)
        await self.session.refresh(dispute)
        return dispute

    async def get(self, dispute_id: str) -> Dispute | None:
        stmt = select(Dispute).where(Dispute.id == dispute_id).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def find_active(self, order_id: str) -> Dispute | None:
        stmt = (
            select(Dispute)
            .where(Dispute.order_id == order_id, Dispute.status.notin_(_TERMINAL_STATUSES))
            .order_by(desc(Dispute.created_at))
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def compare_and_set(
        self,
        dispute_id: str,
        *,
        statuses: Iterable[Any],
        values: Mapping[str, Any],
    ) -> Dispute | None:
        stmt = (
            update(Dispute)
            .where(Dispute.id == dispute_id, Dispute.status.in_([plain(status) for status in statuses]))
            .values(**plain_values(values))
            .execution_options(synchronize_session="fetch", populate_existing=True)
            .returning(Dispute)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def claim_resolution(self, dispute_id: str, *, statuses: Iterable[Any], outcome: Any) -> Dispute | None:
        stmt = (
            update(Dispute)
            .where(
                Dispute.id == dispute_id,
                Dispute.status.in_([plain(status) for status in statuses]),
                or_(Dispute.resolving_outcome.is_(None), Dispute.resolving_outcome == plain(outcome)),
            )
            .values(resolving_outcome=plain(outcome))
            .execution_options(synchronize_session="fetch", populate_existing=True)
            .returning(Dispute)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def release_claim(self, dispute_id: str, *, outcome: Any) -> bool:
        stmt = (
            update(Dispute)
            .where(
                Dispute.id == dispute_id,
                Dispute.status.notin_(_TERMINAL_STATUSES),
                Dispute.resolving_outcome == plain(outcome),
            )
            .values(resolving_outcome=None)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def list_by_status(self, statuses: Iterable[Any], limit: int, offset: int) -> Sequence[Dispute]:
        stmt = (
            select(Dispute)
            .where(Dispute.status.in_([plain(status) for status in statuses]))
            .order_by(desc(Dispute.created_at))
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
