"""Repository protocol for the order store."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Mapping, Optional, Protocol, Sequence

from escrow.db.models import Order as OrderModel

from .models import EscrowStatus, NewOrder, OrderStatus


class OrderRepository(Protocol):
    async def create(self, order: NewOrder) -> OrderModel:
        ...

    async def get(self, order_id: str) -> OrderModel | None:
        ...

    async def compare_and_set(
        self,
        order_id: str,
        *,
        statuses: Iterable[OrderStatus],
        escrow_statuses: Optional[Iterable[Optional[EscrowStatus]]] = None,
        where: Optional[Mapping[str, Any]] = None,
        values: Mapping[str, Any],
    ) -> OrderModel | None:
        """Apply ``values`` in one conditional UPDATE.

        The row must still be in one of ``statuses`` (and ``escrow_statuses`` when
        given) and every column named in ``where`` must equal its value. Returns
        ``None`` when nothing matched.
        """
        ...

    async def flag_reconciliation(self, order_id: str) -> None:
        ...

    async def list_for_party(self, party_id: str, limit: int, offset: int) -> Sequence[OrderModel]:
        ...


class MarketplaceRepository(Protocol):
    """Listing and offer writes the engine performs when a payment lands."""

    async def mark_listing_sold(self, listing_id: str) -> bool:
        ...

    async def expire_open_offers(self, listing_id: str) -> int:
        ...
