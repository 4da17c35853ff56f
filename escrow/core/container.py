"""Simple dependency container for wiring core services."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from escrow.core.config import Settings, get_settings
from escrow.domain.ledger import LedgerClient
from escrow.domain.notifications import Notifier
from escrow.domain.payouts import PayoutExecutor
from escrow.domain.reconciliation import ReconciliationService
from escrow.domain.settlement import SettlementEngine
from escrow.infrastructure.database import build_engine, build_session_factory, init_db
from escrow.infrastructure.database.unit_of_work import sql_unit_of_work
from escrow.infrastructure.ledger import build_ledger_client
from escrow.infrastructure.notifications import LoggingNotifier


@dataclass(slots=True)
class ApplicationContainer:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    ledger: LedgerClient
    notifier: Notifier

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        ledger: Optional[LedgerClient] = None,
        notifier: Optional[Notifier] = None,
    ) -> "ApplicationContainer":
        engine = build_engine(settings)
        return cls(
            settings=settings,
            engine=engine,
            session_factory=build_session_factory(engine),
            ledger=ledger or build_ledger_client(settings.ledger),
            notifier=notifier or LoggingNotifier(),
        )

    async def init_infrastructure(self) -> None:
        """Create tables when configured to (development and tests; migrations otherwise)."""
        if self.settings.database.create_tables:
            await init_db(self.engine)

    async def dispose(self) -> None:
        await self.engine.dispose()

    def unit_of_work(self):
        return sql_unit_of_work(self.session_factory)

    def settlement_engine(self) -> SettlementEngine:
        return SettlementEngine(
            unit_of_work=self.unit_of_work(),
            ledger=self.ledger,
            notifier=self.notifier,
            settings=self.settings.settlement,
        )

    def payout_executor(self) -> PayoutExecutor:
        return PayoutExecutor(
            unit_of_work=self.unit_of_work(),
            ledger=self.ledger,
            settings=self.settings.settlement,
            notifier=self.notifier,
        )

    def reconciliation_service(self) -> ReconciliationService:
        return ReconciliationService(self.unit_of_work())


@lru_cache()
def get_container() -> ApplicationContainer:
    return ApplicationContainer.build(get_settings())


__all__ = ["ApplicationContainer", "get_container"]
