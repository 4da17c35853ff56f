"""Reusable FastAPI dependencies."""

from .services import (
    get_app_container,
    get_payout_executor,
    get_reconciliation_service,
    get_settlement_engine,
)
from escrow.core.security import get_current_admin, get_current_caller

__all__ = [
    "get_app_container",
    "get_current_admin",
    "get_current_caller",
    "get_payout_executor",
    "get_reconciliation_service",
    "get_settlement_engine",
]
