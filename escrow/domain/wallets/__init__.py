"""Wallet domain exports"""

from .models import (
    Bucket,
    Direction,
    LedgerBalances,
    TransactionKind,
    WalletSnapshot,
    WalletTransactionRecord,
)
from .service import WalletService

__all__ = [
    "Bucket",
    "Direction",
    "LedgerBalances",
    "TransactionKind",
    "WalletSnapshot",
    "WalletTransactionRecord",
    "WalletService",
]
