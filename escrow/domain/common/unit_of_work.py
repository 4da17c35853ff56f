"""Unit-of-work protocol handed to the settlement services."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from escrow.domain.disputes.repository import DisputeRepository
    from escrow.domain.orders.repository import MarketplaceRepository, OrderRepository
    from escrow.domain.payouts.repository import PayoutRepository
    from escrow.domain.reconciliation.repository import ReconciliationRepository
    from escrow.domain.wallets.service import WalletService


class UnitOfWork(Protocol):
    """One database transaction: committed on clean exit, rolled back on error."""

    session: "AsyncSession"
    orders: "OrderRepository"
    marketplace: "MarketplaceRepository"
    wallets: "WalletService"
    disputes: "DisputeRepository"
    payouts: "PayoutRepository"
    reconciliation: "ReconciliationRepository"

    async def __aenter__(self) -> "UnitOfWork":
        ...

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        ...


UnitOfWorkFactory = Callable[[], UnitOfWork]
