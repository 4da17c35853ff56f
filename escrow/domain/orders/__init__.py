"""Order domain exports"""

from .models import (
    DISPUTABLE_STATUSES,
    TERMINAL_STATUSES,
    EscrowStatus,
    NewOrder,
    OrderRecord,
    OrderStatus,
)
from .repository import MarketplaceRepository, OrderRepository

__all__ = [
    "DISPUTABLE_STATUSES",
    "TERMINAL_STATUSES",
    "EscrowStatus",
    "NewOrder",
    "OrderRecord",
    "OrderStatus",
    "MarketplaceRepository",
    "OrderRepository",
]
