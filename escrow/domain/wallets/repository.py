"""Repository protocol for wallet operations."""

from __future__ import annotations

from typing import Protocol, Sequence

from escrow.db.models import Wallet as WalletModel, WalletTransaction as WalletTransactionModel

from .models import Bucket, Direction, TransactionKind


class WalletRepository(Protocol):
    async def get_wallet(self, seller_id: str) -> WalletModel | None:
        ...

    async def create_wallet(self, seller_id: str, currency: str) -> WalletModel:
        ...

    async def apply_delta(
        self,
        seller_id: str,
        *,
        available_cents: int = 0,
        pending_cents: int = 0,
        lifetime_cents: int = 0,
        locked: bool = False,
    ) -> WalletModel | None:
        """Adjust balances only if the wallet's lock flag equals ``locked`` and
        neither balance would drop below zero. Returns ``None`` otherwise."""
        ...

    async def set_lock(self, seller_id: str, *, locked: bool) -> bool:
        """Flip ``payout_locked`` to ``locked`` if it currently holds the opposite value."""
        ...

    async def set_payout_account(self, seller_id: str, account_ref: str | None) -> WalletModel | None:
        ...

    async def add_transaction(
        self,
        *,
        seller_id: str,
        kind: TransactionKind,
        direction: Direction,
        bucket: Bucket,
        amount_cents: int,
        order_id: str | None = None,
        payout_id: str | None = None,
        description: str | None = None,
    ) -> WalletTransactionModel:
        ...

    async def list_transactions(self, seller_id: str, limit: int, offset: int) -> Sequence[WalletTransactionModel]:
        ...

    async def sum_transactions(self, seller_id: str) -> dict[tuple[str, str, str], int]:
        """Totals keyed by ``(kind, direction, bucket)``."""
        ...
