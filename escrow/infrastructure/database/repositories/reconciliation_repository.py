"""SQLAlchemy implementation for reconciliation cases"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import desc, select, update

from escrow.db.models import ReconciliationCase
from escrow.domain.common.repository import AsyncRepository
from escrow.infrastructure.database.values import plain


class SqlReconciliationRepository(AsyncRepository[ReconciliationCase]):
    async def create(
        self,
        *,
        entity_type: Any,
        entity_id: str,
        operation: str,
        external_ref: Optional[str],
        detail: Optional[str],
    ) -> ReconciliationCase:
        case = ReconciliationCase(
            entity_type=plain(entity_type),
            entity_id=entity_id,
            operation=operation,
            external_ref=external_ref,
            detail=detail,
            status="open",
        )
        await self.add(case)
        await self.session.refresh(case)
        return case

    async def get(self, case_id: str) -> ReconciliationCase | None:
        stmt = select(ReconciliationCase).where(ReconciliationCase.id == case_id)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def find_open(self, *, entity_id: str, operation: str, external_ref: Optional[str]) -> ReconciliationCase | None:
        ref = ReconciliationCase.external_ref.is_(None) if external_ref is None else ReconciliationCase.external_ref == external_ref
        stmt = (
            select(ReconciliationCase)
            .where(
                ReconciliationCase.entity_id == entity_id,
                ReconciliationCase.operation == operation,
                ref,
                ReconciliationCase.status == "open",
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_cases(self, status: Any, limit: int, offset: int) -> Sequence[ReconciliationCase]:
        stmt = select(ReconciliationCase)
        if status is not None:
            stmt = stmt.where(ReconciliationCase.status == plain(status))
        stmt = stmt.order_by(desc(ReconciliationCase.created_at)).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def mark_resolved(self, case_id: str, resolved_at: datetime) -> ReconciliationCase | None:
        stmt = (
            update(ReconciliationCase)
            .where(ReconciliationCase.id == case_id, ReconciliationCase.status == "open")
            .values(status="resolved", resolved_at=resolved_at)
            .execution_options(synchronize_session="fetch")
            .returning(ReconciliationCase)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()
