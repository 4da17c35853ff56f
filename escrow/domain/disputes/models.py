"""Domain models for order disputes."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Optional


class DisputeStatus(StrEnum):
    OPEN = "open"
    SELLER_RESPONDED = "seller_responded"
    UNDER_REVIEW = "under_review"
    RESOLVED_BUYER = "resolved_buyer"
    RESOLVED_SELLER = "resolved_seller"


class DisputeResolution(StrEnum):
    REFUND = "refund"
    RELEASE = "release"


class DisputeParty(StrEnum):
    BUYER = "buyer"
    SELLER = "seller"


TERMINAL_DISPUTE_STATUSES = frozenset({DisputeStatus.RESOLVED_BUYER, DisputeStatus.RESOLVED_SELLER})
OPEN_DISPUTE_STATUSES = frozenset(set(DisputeStatus) - TERMINAL_DISPUTE_STATUSES)


def load_evidence(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        return []
    return [str(item) for item in value] if isinstance(value, list) else []


def dump_evidence(urls: list[str]) -> str:
    return json.dumps(urls)


@dataclass(slots=True)
class DisputeRecord:
    id: str
    order_id: str
    opened_by: DisputeParty
    reason: str
    description: Optional[str]
    status: DisputeStatus
    resolution: Optional[DisputeResolution]
    resolved_by: Optional[str]
    resolved_at: Optional[datetime]
    admin_notes: Optional[str]
    processor_ref: Optional[str]
    buyer_response: Optional[str]
    buyer_responded_at: Optional[datetime]
    seller_response: Optional[str]
    seller_responded_at: Optional[datetime]
    created_at: Optional[datetime]
    evidence_urls: list[str] = field(default_factory=list)
    buyer_evidence_urls: list[str] = field(default_factory=list)
    seller_evidence_urls: list[str] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_DISPUTE_STATUSES

    @classmethod
    def from_model(cls, model: Any) -> "DisputeRecord":
        return cls(
            id=model.id,
            order_id=model.order_id,
            opened_by=DisputeParty(model.opened_by),
            reason=model.reason,
            description=model.description,
            status=DisputeStatus(model.status),
            resolution=DisputeResolution(model.resolution) if model.resolution else None,
            resolved_by=model.resolved_by,
            resolved_at=model.resolved_at,
            admin_notes=model.admin_notes,
            processor_ref=model.processor_ref,
            buyer_response=model.buyer_response,
            buyer_responded_at=model.buyer_responded_at,
            seller_response=model.seller_response,
            seller_responded_at=model.seller_responded_at,
            created_at=model.created_at,
            evidence_urls=load_evidence(model.evidence_urls),
            buyer_evidence_urls=load_evidence(model.buyer_evidence_urls),
            seller_evidence_urls=load_evidence(model.seller_evidence_urls),
        )
