"""Records of external effects that never made it into the local database."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, Optional


class CaseStatus(StrEnum):
    OPEN = "open"
    RESOLVED = "resolved"


class EntityType(StrEnum):
    ORDER = "order"
    DISPUTE = "dispute"
    PAYOUT = "payout"


@dataclass(slots=True)
class ReconciliationCaseRecord:
    id: str
    entity_type: EntityType
    entity_id: str
    operation: str
    external_ref: Optional[str]
    detail: Optional[str]
    status: CaseStatus
    created_at: Optional[datetime]
    resolved_at: Optional[datetime]

    @classmethod
    def from_model(cls, model: Any) -> "ReconciliationCaseRecord":
        return cls(
            id=model.id,
            entity_type=EntityType(model.entity_type),
            entity_id=model.entity_id,
            operation=model.operation,
            external_ref=model.external_ref,
            detail=model.detail,
            status=CaseStatus(model.status),
            created_at=model.created_at,
            resolved_at=model.resolved_at,
        )
