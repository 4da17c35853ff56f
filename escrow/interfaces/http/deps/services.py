"""Service dependency providers backed by the application container."""

from fastapi import Depends, Request

from escrow.core.container import ApplicationContainer
from escrow.domain.payouts import PayoutExecutor
from escrow.domain.reconciliation import ReconciliationService
from escrow.domain.settlement import SettlementEngine


def get_app_container(request: Request) -> ApplicationContainer:
    return request.app.state.container


def get_settlement_engine(container: ApplicationContainer = Depends(get_app_container)) -> SettlementEngine:
    return container.settlement_engine()


def get_payout_executor(container: ApplicationContainer = Depends(get_app_container)) -> PayoutExecutor:
    return container.payout_executor()


def get_reconciliation_service(container: ApplicationContainer = Depends(get_app_container)) -> ReconciliationService:
    return container.reconciliation_service()


__all__ = [
    "get_app_container",
    "get_payout_executor",
    "get_reconciliation_service",
    "get_settlement_engine",
]
