import asyncio
from decimal import Decimal

import pytest

from conftest import PLATFORM_ACCOUNT, SELLER, SELLER_ACCOUNT
from escrow.core.config import SettlementSettings
from escrow.domain.exceptions import ErrorKind
from escrow.domain.notifications import NotificationKind
from escrow.domain.orders import EscrowStatus
from escrow.domain.payouts import PayoutExecutor, PayoutMethod, payout_fee, quote_payout, round_half_up
from escrow.domain.settlement import SettlementEngine
from escrow.infrastructure.ledger import InMemoryLedgerClient


@pytest.mark.parametrize(
    ("amount", "fee"),
    [
        (10000, 300),
        (1000, 75),
        (100000, 2500),
        (2550, 77),
    ],
)
def test_instant_fee_is_clamped(amount, fee):
    assert payout_fee(amount, PayoutMethod.INSTANT, SettlementSettings()) == fee


def test_standard_payouts_are_free():
    quote = quote_payout(10000, PayoutMethod.STANDARD, SettlementSettings())
    assert (quote.fee_cents, quote.net_cents) == (0, 10000)


def test_round_half_up():
    assert round_half_up(Decimal("76.5")) == 77
    assert round_half_up(Decimal("76.49")) == 76


async def funded_seller(market, seller_net_cents=10000):
    await market.seed_wallet()
    await market.released_order(seller_net_cents=seller_net_cents, item_price_cents=seller_net_cents + 1000)
    wallet = await market.wallet()
    assert wallet.available_cents == seller_net_cents
    return wallet


async def test_instant_payout_takes_fee_and_drains_balance(market, executor, ledger, notifier):
    await funded_seller(market)

    result = await executor.request_payout(SELLER, method="instant")

    payout = result.data
    assert (payout.gross_cents, payout.fee_cents, payout.net_cents) == (10000, 300, 9700)
    assert payout.method is PayoutMethod.INSTANT
    fee_transfer = [call for call in ledger.calls_of("transfer") if call.extra.get("source_ref")]
    assert [(call.amount_cents, call.reference, call.extra["source_ref"]) for call in fee_transfer] == [
        (300, PLATFORM_ACCOUNT, SELLER_ACCOUNT)
    ]
    payouts = ledger.calls_of("payout")
    assert [(call.amount_cents, call.reference, call.extra["method"]) for call in payouts] == [
        (9700, SELLER_ACCOUNT, "instant")
    ]

    wallet = await market.wallet()
    assert wallet.available_cents == 0
    assert wallet.payout_locked is False
    history = await executor.list_payouts(SELLER)
    assert [(row.method, row.net_cents) for row in history] == [(PayoutMethod.INSTANT, 9700)]
    assert notifier.of_kind(NotificationKind.PAYOUT_SENT)[0].recipient_id == SELLER
    await market.assert_ledger_consistent()


async def test_standard_payout_of_part_of_balance(market, executor, ledger):
    await funded_seller(market)

    result = await executor.request_payout(SELLER, 2500, "standard")

    assert (result.data.fee_cents, result.data.net_cents) == (0, 2500)
    assert [call.amount_cents for call in ledger.calls_of("payout")] == [2500]
    assert (await market.wallet()).available_cents == 7500
    await market.assert_ledger_consistent()


async def test_payout_above_available_is_rejected(market, executor, ledger):
    await funded_seller(market)

    result = await executor.request_payout(SELLER, 10001, "standard")

    assert result.kind is ErrorKind.INSUFFICIENT_FUNDS
    assert ledger.calls_of("payout") == []
    wallet = await market.wallet()
    assert (wallet.available_cents, wallet.payout_locked) == (10000, False)


async def test_payout_amount_validation(market, executor):
    await funded_seller(market)

    assert (await executor.request_payout(SELLER, 0, "standard")).kind is ErrorKind.INVALID_AMOUNT
    assert (await executor.request_payout(SELLER, None, "standard")).kind is ErrorKind.INVALID_AMOUNT
    assert (await executor.request_payout(SELLER, 100, "wire")).kind is ErrorKind.INVALID_AMOUNT
    assert (await executor.request_payout("nobody", 100, "standard")).kind is ErrorKind.NOT_FOUND


async def test_instant_payout_must_cover_fee(market, executor):
    await funded_seller(market, seller_net_cents=60)

    result = await executor.request_payout(SELLER, method="instant")

    assert result.kind is ErrorKind.INVALID_AMOUNT
    assert (await market.wallet()).payout_locked is False


async def test_payout_without_account(market, executor, container):
    await funded_seller(market)
    async with container.unit_of_work()() as uow:
        await uow.wallets.set_payout_account(SELLER, None)

    result = await executor.request_payout(SELLER, 100, "standard")

    assert result.kind is ErrorKind.INVALID_AMOUNT


class BlockingLedger(InMemoryLedgerClient):
    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.proceed = asyncio.Event()

    async def payout(self, *args, **kwargs):
        self.entered.set()
        await self.proceed.wait()
        return await super().payout(*args, **kwargs)


async def test_concurrent_payouts_are_mutually_exclusive(container, market):
    await funded_seller(market)
    ledger = BlockingLedger()
    executor = PayoutExecutor(container.unit_of_work(), ledger, container.settings.settlement)

    first = asyncio.create_task(executor.request_payout(SELLER, 6000, "standard"))
    await asyncio.wait_for(ledger.entered.wait(), timeout=5)
    second = await executor.request_payout(SELLER, 6000, "standard")
    ledger.proceed.set()
    first_result = await first

    assert second.kind is ErrorKind.RESOURCE_LOCKED
    assert first_result.ok
    assert len(ledger.calls_of("payout")) == 1
    wallet = await market.wallet()
    assert (wallet.available_cents, wallet.payout_locked) == (4000, False)
    await market.assert_ledger_consistent()


async def test_payout_failure_releases_lock(market, executor, ledger):
    await funded_seller(market)
    ledger.fail_next("payout")

    failed = await executor.request_payout(SELLER, 5000, "standard")

    assert failed.kind is ErrorKind.EXTERNAL_LEDGER_FAILURE
    wallet = await market.wallet()
    assert (wallet.available_cents, wallet.payout_locked) == (10000, False)

    retried = await executor.request_payout(SELLER, 5000, "standard")
    assert retried.ok


async def test_payout_failure_after_fee_is_flagged(market, executor, ledger, container):
    await funded_seller(market)
    ledger.fail_next("payout")

    result = await executor.request_payout(SELLER, method="instant")

    assert result.kind is ErrorKind.RECONCILIATION_REQUIRED
    wallet = await market.wallet()
    assert (wallet.available_cents, wallet.payout_locked) == (10000, False)
    cases = await container.reconciliation_service().list_cases()
    assert [(case.entity_id, case.operation) for case in cases] == [(SELLER, "instant_payout_fee")]


async def test_escrow_release_waits_for_payout_lock(market, container, ledger):
    await market.seed_wallet()
    order = await market.completed_order()
    async with container.unit_of_work()() as uow:
        await uow.wallets.lock_for_payout(SELLER)

    result = await market.engine.release_escrow(order.id)

    assert result.kind is ErrorKind.RESOURCE_LOCKED
    assert ledger.calls_of("transfer") == []


class LockingLedger(InMemoryLedgerClient):
    """Takes the seller's payout lock right after the first transfer lands."""

    def __init__(self, container) -> None:
        super().__init__()
        self.container = container
        self.lock_after_transfer = True

    async def transfer(self, *args, **kwargs):
        receipt = await super().transfer(*args, **kwargs)
        if self.lock_after_transfer:
            self.lock_after_transfer = False
            async with self.container.unit_of_work()() as uow:
                await uow.wallets.lock_for_payout(SELLER)
        return receipt


async def test_release_racing_a_payout_lock_is_retryable(container, market):
    await market.seed_wallet()
    order = await market.completed_order()
    ledger = LockingLedger(container)
    engine = SettlementEngine(container.unit_of_work(), ledger, container.notifier, container.settings.settlement)

    blocked = await engine.release_escrow(order.id)

    assert blocked.kind is ErrorKind.RESOURCE_LOCKED
    assert blocked.retryable
    assert await container.reconciliation_service().list_cases() == []
    stored = await market.order(order.id)
    assert stored.escrow_status is EscrowStatus.HELD
    assert stored.needs_reconciliation is False

    async with container.unit_of_work()() as uow:
        await uow.wallets.unlock(SELLER)
    retried = await engine.release_escrow(order.id)

    assert retried.ok
    assert len(ledger.calls_of("transfer")) == 1
    wallet = await market.wallet()
    assert (wallet.available_cents, wallet.pending_cents) == (4000, 0)
    await market.assert_ledger_consistent()
