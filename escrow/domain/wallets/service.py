"""Wallet ledger service.

Every balance mutation is a single conditional ``UPDATE`` on the wallet row
followed by the matching ``wallet_transactions`` insert(s) on the same session,
so the caller's transaction commits both or neither. The transaction log is
the source of truth; balances are a cache that ``reconstruct`` can rebuild.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from escrow.db.models import Wallet as WalletModel
from escrow.domain.exceptions import (
    InsufficientFundsError,
    InvalidAmountError,
    NotFoundError,
    ResourceLockedError,
)
from escrow.infrastructure.database.repositories.wallet_repository import SqlWalletRepository

from .models import Bucket, Direction, LedgerBalances, TransactionKind, WalletSnapshot, WalletTransactionRecord
from .repository import WalletRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WalletService:
    repository: WalletRepository

    @classmethod
    def with_session(cls, session: AsyncSession) -> "WalletService":
        return cls(SqlWalletRepository(session))

    async def ensure_wallet(self, seller_id: str, currency: str = "usd") -> WalletSnapshot:
        wallet = await self._ensure(seller_id, currency)
        return WalletSnapshot.from_model(wallet)

    async def get_wallet(self, seller_id: str) -> Optional[WalletSnapshot]:
        wallet = await self.repository.get_wallet(seller_id)
        return WalletSnapshot.from_model(wallet) if wallet else None

    async def credit_pending(
        self,
        seller_id: str,
        amount_cents: int,
        *,
        order_id: str,
        currency: str = "usd",
        description: Optional[str] = None,
    ) -> WalletSnapshot:
        _require_positive(amount_cents)
        await self._ensure(seller_id, currency)
        wallet = await self._apply(
            seller_id,
            pending_cents=amount_cents,
            lifetime_cents=amount_cents,
        )
        await self.repository.add_transaction(
            seller_id=seller_id,
            kind=TransactionKind.CREDIT,
            direction=Direction.CREDIT,
            bucket=Bucket.PENDING,
            amount_cents=amount_cents,
            order_id=order_id,
            description=description or "Sale completed",
        )
        logger.info("Credited %s pending cents to seller %s for order %s", amount_cents, seller_id, order_id)
        return WalletSnapshot.from_model(wallet)

    async def reverse_pending(
        self,
        seller_id: str,
        amount_cents: int,
        *,
        order_id: str,
        description: Optional[str] = None,
    ) -> WalletSnapshot:
        _require_positive(amount_cents)
        wallet = await self._apply(seller_id, pending_cents=-amount_cents)
        await self.repository.add_transaction(
            seller_id=seller_id,
            kind=TransactionKind.REVERSAL,
            direction=Direction.DEBIT,
            bucket=Bucket.PENDING,
            amount_cents=amount_cents,
            order_id=order_id,
            description=description or "Sale refunded",
        )
        logger.info("Reversed %s pending cents from seller %s for order %s", amount_cents, seller_id, order_id)
        return WalletSnapshot.from_model(wallet)

    async def release_pending(
        self,
        seller_id: str,
        amount_cents: int,
        *,
        order_id: str,
        description: Optional[str] = None,
    ) -> WalletSnapshot:
        _require_positive(amount_cents)
        wallet = await self._apply(seller_id, pending_cents=-amount_cents, available_cents=amount_cents)
        for direction, bucket in ((Direction.DEBIT, Bucket.PENDING), (Direction.CREDIT, Bucket.AVAILABLE)):
            await self.repository.add_transaction(
                seller_id=seller_id,
                kind=TransactionKind.RELEASE,
                direction=direction,
                bucket=bucket,
                amount_cents=amount_cents,
                order_id=order_id,
                description=description or "Escrow released",
            )
        logger.info("Moved %s cents pending->available for seller %s (order %s)", amount_cents, seller_id, order_id)
        return WalletSnapshot.from_model(wallet)

    async def credit_available(
        self,
        seller_id: str,
        amount_cents: int,
        *,
        order_id: str,
        currency: str = "usd",
        description: Optional[str] = None,
    ) -> WalletSnapshot:
        _require_positive(amount_cents)
        await self._ensure(seller_id, currency)
        wallet = await self._apply(seller_id, available_cents=amount_cents, lifetime_cents=amount_cents)
        await self.repository.add_transaction(
            seller_id=seller_id,
            kind=TransactionKind.CREDIT,
            direction=Direction.CREDIT,
            bucket=Bucket.AVAILABLE,
            amount_cents=amount_cents,
            order_id=order_id,
            description=description or "Escrow released",
        )
        logger.info("Credited %s available cents to seller %s for order %s", amount_cents, seller_id, order_id)
        return WalletSnapshot.from_model(wallet)

    async def debit_available(
        self,
        seller_id: str,
        amount_cents: int,
        *,
        payout_id: str,
        description: Optional[str] = None,
    ) -> WalletSnapshot:
        """Withdraw from available balance. The caller must hold the payout lock."""
        _require_positive(amount_cents)
        wallet = await self._apply(seller_id, available_cents=-amount_cents, locked=True)
        await self.repository.add_transaction(
            seller_id=seller_id,
            kind=TransactionKind.WITHDRAWAL,
            direction=Direction.DEBIT,
            bucket=Bucket.AVAILABLE,
            amount_cents=amount_cents,
            payout_id=payout_id,
            description=description or "Seller withdrawal",
        )
        return WalletSnapshot.from_model(wallet)

    async def lock_for_payout(self, seller_id: str) -> None:
        if not await self.repository.set_lock(seller_id, locked=True):
            if await self.repository.get_wallet(seller_id) is None:
                raise NotFoundError(f"wallet for seller {seller_id} not found")
            raise ResourceLockedError("wallet busy: a payout is already in flight")

    async def unlock(self, seller_id: str) -> bool:
        return await self.repository.set_lock(seller_id, locked=False)

    async def set_payout_account(self, seller_id: str, account_ref: Optional[str], currency: str = "usd") -> WalletSnapshot:
        await self._ensure(seller_id, currency)
        wallet = await self.repository.set_payout_account(seller_id, account_ref)
        return WalletSnapshot.from_model(wallet)

    async def list_transactions(self, seller_id: str, limit: int = 20, offset: int = 0) -> list[WalletTransactionRecord]:
        rows = await self.repository.list_transactions(seller_id, limit, offset)
        return [WalletTransactionRecord.from_model(row) for row in rows]

    async def reconstruct(self, seller_id: str) -> LedgerBalances:
        totals = await self.repository.sum_transactions(seller_id)
        balances = {Bucket.AVAILABLE: 0, Bucket.PENDING: 0}
        lifetime = 0
        for (kind, direction, bucket), amount in totals.items():
            sign = 1 if direction == Direction.CREDIT else -1
            balances[Bucket(bucket)] += sign * amount
            if kind == TransactionKind.CREDIT:
                lifetime += amount
        return LedgerBalances(
            available_cents=balances[Bucket.AVAILABLE],
            pending_cents=balances[Bucket.PENDING],
            lifetime_earnings_cents=lifetime,
        )

    async def _ensure(self, seller_id: str, currency: str) -> WalletModel:
        wallet = await self.repository.get_wallet(seller_id)
        if wallet is None:
            wallet = await self.repository.create_wallet(seller_id, currency)
        return wallet

    async def _apply(
        self,
        seller_id: str,
        *,
        available_cents: int = 0,
        pending_cents: int = 0,
        lifetime_cents: int = 0,
        locked: bool = False,
    ) -> WalletModel:
        wallet = await self.repository.apply_delta(
            seller_id,
            available_cents=available_cents,
            pending_cents=pending_cents,
            lifetime_cents=lifetime_cents,
            locked=locked,
        )
        if wallet is not None:
            return wallet

        current = await self.repository.get_wallet(seller_id)
        if current is None:
            raise NotFoundError(f"wallet for seller {seller_id} not found")
        if bool(current.payout_locked) != locked:
            if locked:
                raise ResourceLockedError("wallet is not locked for payout")
            raise ResourceLockedError("wallet busy: a payout is in flight")
        raise InsufficientFundsError(
            f"insufficient balance for seller {seller_id}: "
            f"available={current.available_cents} pending={current.pending_cents}"
        )


def _require_positive(amount_cents: int) -> None:
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool) or amount_cents <= 0:
        raise InvalidAmountError(f"amount must be a positive integer number of cents, got {amount_cents!r}")
