"""Repository protocol for disputes."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Mapping, Optional, Protocol, Sequence

from escrow.db.models import Dispute as DisputeModel

from .models import DisputeParty, DisputeResolution, DisputeStatus


class DisputeRepository(Protocol):
    async def create(
        self,
        *,
        order_id: str,
        opened_by: DisputeParty,
        reason: str,
        description: Optional[str],
        evidence_urls: list[str],
    ) -> DisputeModel:
        ...

    async def get(self, dispute_id: str) -> DisputeModel | None:
        ...

    async def find_active(self, order_id: str) -> DisputeModel | None:
        """Return the non-terminal dispute for ``order_id`` if there is one."""
        ...

    async def compare_and_set(
        self,
        dispute_id: str,
        *,
        statuses: Iterable[DisputeStatus],
        values: Mapping[str, Any],
    ) -> DisputeModel | None:
        ...

    async def claim_resolution(
        self,
        dispute_id: str,
        *,
        statuses: Iterable[DisputeStatus],
        outcome: DisputeResolution,
    ) -> DisputeModel | None:
        """Reserve an open dispute for ``outcome``.

        Returns ``None`` when the dispute is closed or another outcome holds
        the claim. Re-claiming with the same outcome succeeds.
        """
        ...

    async def release_claim(self, dispute_id: str, *, outcome: DisputeResolution) -> bool:
        ...

    async def list_by_status(self, statuses: Iterable[DisputeStatus], limit: int, offset: int) -> Sequence[DisputeModel]:
        ...
