"""SQLAlchemy implementation for the wallet ledger"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Sequence

from sqlalchemy import desc, func, select, update

from escrow.db.models import Wallet, WalletTransaction
from escrow.domain.common.repository import AsyncRepository
from escrow.infrastructure.database.values import plain


class SqlWalletRepository(AsyncRepository[Wallet]):
    async def get_wallet(self, seller_id: str) -> Wallet | None:
        stmt = select(Wallet).where(Wallet.seller_id == seller_id).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def create_wallet(self, seller_id: str, currency: str) -> Wallet:
        wallet = Wallet(
            seller_id=seller_id,
            currency=currency,
            available_cents=0,
            pending_cents=0,
            lifetime_earnings_cents=0,
            payout_locked=False,
        )
        await self.add(wallet)
        await self.session.refresh(wallet)
        return wallet

    async def apply_delta(
        self,
        seller_id: str,
        *,
        available_cents: int = 0,
        pending_cents: int = 0,
        lifetime_cents: int = 0,
        locked: bool = False,
    ) -> Wallet | None:
        stmt = (
            update(Wallet)
            .where(
                Wallet.seller_id == seller_id,
                Wallet.payout_locked.is_(locked),
                Wallet.available_cents + available_cents >= 0,
                Wallet.pending_cents + pending_cents >= 0,
            )
            .values(
                available_cents=Wallet.available_cents + available_cents,
                pending_cents=Wallet.pending_cents + pending_cents,
                lifetime_earnings_cents=Wallet.lifetime_earnings_cents + lifetime_cents,
            )
            .execution_options(synchronize_session="fetch", populate_existing=True)
            .returning(Wallet)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def set_lock(self, seller_id: str, *, locked: bool) -> bool:
        stmt = (
            update(Wallet)
            .where(Wallet.seller_id == seller_id, Wallet.payout_locked.is_(not locked))
            .values(payout_locked=locked, locked_at=datetime.now(timezone.utc) if locked else None)
            .execution_options(synchronize_session="fetch", populate_existing=True)
            .returning(Wallet)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first() is not None

    async def set_payout_account(self, seller_id: str, account_ref: str | None) -> Wallet | None:
        stmt = (
            update(Wallet)
            .where(Wallet.seller_id == seller_id)
            .values(payout_account_ref=account_ref)
            .execution_options(synchronize_session="fetch", populate_existing=True)
            .returning(Wallet)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def add_transaction(
        self,
        *,
        seller_id: str,
        kind: Any,
        direction: Any,
        bucket: Any,
        amount_cents: int,
        order_id: str | None = None,
        payout_id: str | None = None,
        description: str | None = None,
    ) -> WalletTransaction:
        tx = WalletTransaction(
            seller_id=seller_id,
            order_id=order_id,
            payout_id=payout_id,
            kind=plain(kind),
            direction=plain(direction),
            bucket=plain(bucket),
            amount_cents=amount_cents,
            description=description,
        )
        await self.add(tx)
        await self.session.refresh(tx)
        return tx

    async def list_transactions(self, seller_id: str, limit: int, offset: int) -> Sequence[WalletTransaction]:
        stmt = (
            select(WalletTransaction)
            .where(WalletTransaction.seller_id == seller_id)
            .order_by(desc(WalletTransaction.created_at))
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def sum_transactions(self, seller_id: str) -> dict[tuple[str, str, str], int]:
        stmt = (
            select(
                WalletTransaction.kind,
                WalletTransaction.direction,
                WalletTransaction.bucket,
                func.sum(WalletTransaction.amount_cents),
            )
            .where(WalletTransaction.seller_id == seller_id)
            .group_by(WalletTransaction.kind, WalletTransaction.direction, WalletTransaction.bucket)
        )
        result = await self.session.execute(stmt)
        return {(kind, direction, bucket): int(total or 0) for kind, direction, bucket, total in result.all()}
