import pytest

from conftest import SELLER
from escrow.domain.exceptions import InsufficientFundsError, InvalidAmountError, NotFoundError, ResourceLockedError
from escrow.domain.wallets import Bucket, Direction, TransactionKind


async def test_every_balance_change_is_logged(container, market):
    async with container.unit_of_work()() as uow:
        await uow.wallets.credit_pending(SELLER, 4000, order_id="o1")
        await uow.wallets.credit_pending(SELLER, 1500, order_id="o2")
        await uow.wallets.reverse_pending(SELLER, 1500, order_id="o2")
        await uow.wallets.release_pending(SELLER, 4000, order_id="o1")

    wallet = await market.wallet()
    assert (wallet.available_cents, wallet.pending_cents, wallet.lifetime_earnings_cents) == (4000, 0, 5500)
    await market.assert_ledger_consistent()

    async with container.unit_of_work()() as uow:
        rows = await uow.wallets.list_transactions(SELLER, limit=10)
    assert sorted((row.kind, row.direction, row.bucket, row.amount_cents) for row in rows) == sorted(
        [
            (TransactionKind.CREDIT, Direction.CREDIT, Bucket.PENDING, 4000),
            (TransactionKind.CREDIT, Direction.CREDIT, Bucket.PENDING, 1500),
            (TransactionKind.REVERSAL, Direction.DEBIT, Bucket.PENDING, 1500),
            (TransactionKind.RELEASE, Direction.DEBIT, Bucket.PENDING, 4000),
            (TransactionKind.RELEASE, Direction.CREDIT, Bucket.AVAILABLE, 4000),
        ]
    )


async def test_balances_never_go_negative(container, market):
    async with container.unit_of_work()() as uow:
        await uow.wallets.credit_pending(SELLER, 1000, order_id="o1")

    with pytest.raises(InsufficientFundsError):
        async with container.unit_of_work()() as uow:
            await uow.wallets.reverse_pending(SELLER, 1001, order_id="o1")

    with pytest.raises(InsufficientFundsError):
        async with container.unit_of_work()() as uow:
            await uow.wallets.release_pending(SELLER, 2000, order_id="o1")

    wallet = await market.wallet()
    assert (wallet.pending_cents, wallet.available_cents) == (1000, 0)
    await market.assert_ledger_consistent()


async def test_amounts_must_be_positive(container):
    async with container.unit_of_work()() as uow:
        with pytest.raises(InvalidAmountError):
            await uow.wallets.credit_pending(SELLER, 0, order_id="o1")
        with pytest.raises(InvalidAmountError):
            await uow.wallets.credit_available(SELLER, -5, order_id="o1")


async def test_withdrawal_requires_payout_lock(container, market):
    async with container.unit_of_work()() as uow:
        await uow.wallets.credit_available(SELLER, 5000, order_id="o1")

    with pytest.raises(ResourceLockedError):
        async with container.unit_of_work()() as uow:
            await uow.wallets.debit_available(SELLER, 1000, payout_id="p1")

    async with container.unit_of_work()() as uow:
        await uow.wallets.lock_for_payout(SELLER)
        with pytest.raises(ResourceLockedError):
            await uow.wallets.lock_for_payout(SELLER)
        with pytest.raises(ResourceLockedError):
            await uow.wallets.credit_pending(SELLER, 100, order_id="o2")
        await uow.wallets.debit_available(SELLER, 1000, payout_id="p1")
        await uow.wallets.unlock(SELLER)

    wallet = await market.wallet()
    assert (wallet.available_cents, wallet.payout_locked) == (4000, False)
    await market.assert_ledger_consistent()


async def test_missing_wallet(container):
    async with container.unit_of_work()() as uow:
        with pytest.raises(NotFoundError):
            await uow.wallets.lock_for_payout("nobody")
        with pytest.raises(NotFoundError):
            await uow.wallets.reverse_pending("nobody", 100, order_id="o1")
