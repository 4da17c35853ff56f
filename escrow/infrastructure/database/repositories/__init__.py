"""SQLAlchemy-backed repository implementations."""

from .dispute_repository import SqlDisputeRepository
from .order_repository import SqlMarketplaceRepository, SqlOrderRepository
from .payout_repository import SqlPayoutRepository
from .reconciliation_repository import SqlReconciliationRepository
from .wallet_repository import SqlWalletRepository

__all__ = [
    "SqlDisputeRepository",
    "SqlMarketplaceRepository",
    "SqlOrderRepository",
    "SqlPayoutRepository",
    "SqlReconciliationRepository",
    "SqlWalletRepository",
]
