"""Repository protocol for reconciliation cases."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from escrow.db.models import ReconciliationCase as ReconciliationCaseModel

from .models import CaseStatus, EntityType


class ReconciliationRepository(Protocol):
    async def create(
        self,
        *,
        entity_type: EntityType,
        entity_id: str,
        operation: str,
        external_ref: Optional[str],
        detail: Optional[str],
    ) -> ReconciliationCaseModel:
        ...

    async def find_open(
        self,
        *,
        entity_id: str,
        operation: str,
        external_ref: Optional[str],
    ) -> ReconciliationCaseModel | None:
        ...

    async def list_cases(self, status: Optional[CaseStatus], limit: int, offset: int) -> Sequence[ReconciliationCaseModel]:
        ...

    async def mark_resolved(self, case_id: str, resolved_at: datetime) -> ReconciliationCaseModel | None:
        """Close an open case. Returns ``None`` if it is missing or already resolved."""
        ...

    async def get(self, case_id: str) -> ReconciliationCaseModel | None:
        ...
