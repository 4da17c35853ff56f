"""SQLAlchemy unit of work: one session, one transaction, all repositories."""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from escrow.domain.wallets import WalletService

from .repositories import (
    SqlDisputeRepository,
    SqlMarketplaceRepository,
    SqlOrderRepository,
    SqlPayoutRepository,
    SqlReconciliationRepository,
)


class SqlUnitOfWork:
    """Commits on clean exit and rolls back when the block raises."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self.session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SqlUnitOfWork":
        session = self._session_factory()
        self.session = session
        self.orders = SqlOrderRepository(session)
        self.marketplace = SqlMarketplaceRepository(session)
        self.wallets = WalletService.with_session(session)
        self.disputes = SqlDisputeRepository(session)
        self.payouts = SqlPayoutRepository(session)
        self.reconciliation = SqlReconciliationRepository(session)
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        session = self.session
        self.session = None
        if session is None:
            return
        try:
            if exc_type is None:
                await session.commit()
            else:
                await session.rollback()
        finally:
            await session.close()


def sql_unit_of_work(session_factory: async_sessionmaker[AsyncSession]):
    """Return a zero-argument factory producing fresh units of work."""

    def factory() -> SqlUnitOfWork:
        return SqlUnitOfWork(session_factory)

    return factory
