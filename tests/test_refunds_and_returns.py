import asyncio
from datetime import timedelta

from conftest import BUYER, SELLER
from escrow.domain.common import ensure_aware
from escrow.domain.exceptions import ErrorKind
from escrow.domain.ledger import LedgerAmbiguousError
from escrow.domain.notifications import NotificationKind
from escrow.domain.orders import EscrowStatus, OrderStatus
from escrow.domain.settlement import SettlementEngine
from escrow.infrastructure.ledger import InMemoryLedgerClient


async def test_cancel_paid_order_refunds_without_buyer_fee(market, ledger, notifier):
    order = await market.paid_order()

    result = await market.engine.cancel_paid_order(order.id, BUYER)

    cancelled = result.data
    assert cancelled.status is OrderStatus.CANCELLED
    assert cancelled.escrow_status is EscrowStatus.REFUNDED
    refunds = ledger.calls_of("refund")
    assert [(call.amount_cents, call.reference, call.idempotency_key) for call in refunds] == [
        (5500, order.processor_charge_ref, f"refund:cancel:{order.id}")
    ]
    assert cancelled.processor_refund_ref == refunds[0].receipt.refund_id
    assert notifier.of_kind(NotificationKind.ORDER_CANCELLED)[0].recipient_id == SELLER


async def test_cancel_after_shipping_is_rejected(market, ledger):
    order = await market.shipped_order()

    result = await market.engine.cancel_paid_order(order.id, BUYER)

    assert result.kind is ErrorKind.INVALID_TRANSITION
    assert ledger.calls_of("refund") == []


async def test_second_refund_is_rejected_without_a_second_ledger_call(market, ledger):
    order = await market.paid_order()
    await market.engine.cancel_paid_order(order.id, BUYER)

    again = await market.engine.cancel_paid_order(order.id, BUYER)

    assert again.kind is ErrorKind.ALREADY_PROCESSED
    assert len(ledger.calls_of("refund")) == 1


async def test_concurrent_refunds_move_money_once(market, ledger):
    order = await market.paid_order()

    first, second = await asyncio.gather(
        market.engine.cancel_paid_order(order.id, BUYER),
        market.engine.cancel_paid_order(order.id, BUYER),
    )

    assert sorted([first.ok, second.ok]) == [False, True]
    loser = first if not first.ok else second
    assert loser.kind is ErrorKind.ALREADY_PROCESSED
    assert len(ledger.calls_of("refund")) == 1
    assert (await market.order(order.id)).status is OrderStatus.CANCELLED


async def test_ledger_failure_leaves_order_untouched(market, ledger):
    order = await market.paid_order()
    ledger.fail_next("refund", LedgerAmbiguousError("read timed out"))

    failed = await market.engine.cancel_paid_order(order.id, BUYER)

    assert failed.kind is ErrorKind.EXTERNAL_LEDGER_FAILURE
    assert failed.retryable
    stored = await market.order(order.id)
    assert stored.status is OrderStatus.PAID
    assert stored.escrow_status is EscrowStatus.HELD
    assert stored.processor_refund_ref is None

    retried = await market.engine.cancel_paid_order(order.id, BUYER)
    assert retried.ok
    assert retried.data.status is OrderStatus.CANCELLED


async def test_failed_refund_status_is_not_committed(container, market):
    ledger = InMemoryLedgerClient(refund_status="failed")
    engine = SettlementEngine(container.unit_of_work(), ledger, container.notifier, container.settings.settlement)
    order = await market.paid_order()

    result = await engine.cancel_paid_order(order.id, BUYER)

    assert result.kind is ErrorKind.EXTERNAL_LEDGER_FAILURE
    assert (await market.order(order.id)).status is OrderStatus.PAID


class InterleavingLedger(InMemoryLedgerClient):
    """Runs ``hook`` after the processor accepts a refund, before the caller commits."""

    def __init__(self, hook) -> None:
        super().__init__()
        self.hook = hook

    async def refund(self, charge_ref, amount_cents, *, idempotency_key):
        receipt = await super().refund(charge_ref, amount_cents, idempotency_key=idempotency_key)
        await self.hook()
        return receipt


async def test_commit_failure_after_refund_is_flagged(container, market):
    order = await market.paid_order()

    async def seller_ships_meanwhile():
        await market.engine.mark_shipped(order.id, SELLER, "1Z-race")

    ledger = InterleavingLedger(seller_ships_meanwhile)
    engine = SettlementEngine(container.unit_of_work(), ledger, container.notifier, container.settings.settlement)

    result = await engine.cancel_paid_order(order.id, BUYER)

    assert result.kind is ErrorKind.RECONCILIATION_REQUIRED
    refund_id = ledger.calls_of("refund")[0].receipt.refund_id
    stored = await market.order(order.id)
    assert stored.status is OrderStatus.SHIPPED
    assert stored.needs_reconciliation is True
    assert stored.processor_refund_ref is None

    cases = await container.reconciliation_service().list_cases()
    assert len(cases) == 1
    assert cases[0].operation == "cancel_paid_order"
    assert cases[0].external_ref == refund_id


async def test_return_refund_reverses_credited_earnings(market, ledger, notifier):
    order = await market.delivered_order(item_price_cents=5000, shipping_cents=500, tax_cents=0)
    started = await market.engine.start_return(order.id, BUYER, "Not as described", tracking_ref="RET-1")
    assert started.data.status is OrderStatus.RETURN_STARTED
    await market.credit_order(started.data)
    assert (await market.wallet()).pending_cents == 4000

    result = await market.engine.confirm_return_received(order.id, SELLER)

    returned = result.data
    assert returned.status is OrderStatus.RETURNED
    assert returned.escrow_status is EscrowStatus.REFUNDED
    assert returned.return_received is True
    assert returned.wallet_credited is False
    assert [call.amount_cents for call in ledger.calls_of("refund")] == [5500]
    wallet = await market.wallet()
    assert wallet.pending_cents == 0
    assert notifier.of_kind(NotificationKind.RETURN_REFUNDED)[0].recipient_id == BUYER
    await market.assert_ledger_consistent()

    again = await market.engine.confirm_return_received(order.id, SELLER)
    assert again.kind is ErrorKind.ALREADY_PROCESSED
    assert len(ledger.calls_of("refund")) == 1


async def test_return_flow_with_tracking_submitted_later(market, ledger):
    order = await market.delivered_order()
    await market.engine.start_return(order.id, BUYER, "Wrong size")

    early = await market.engine.confirm_return_received(order.id, SELLER)
    assert early.kind is ErrorKind.INVALID_TRANSITION

    tracked = await market.engine.submit_return_tracking(order.id, BUYER, "RET-2")
    assert tracked.data.status is OrderStatus.RETURN_PROCESSING
    assert tracked.data.return_tracking_ref == "RET-2"

    result = await market.engine.confirm_return_received(order.id, SELLER)
    assert result.ok
    assert result.data.status is OrderStatus.RETURNED
    assert len(ledger.calls_of("refund")) == 1


async def test_only_buyer_starts_return(market):
    order = await market.delivered_order()
    result = await market.engine.start_return(order.id, SELLER, "Changed my mind")
    assert result.kind is ErrorKind.FORBIDDEN


async def test_unshipped_return_expires_into_completion(market):
    order = await market.delivered_order()
    started = (await market.engine.start_return(order.id, BUYER, "Changed my mind")).data
    deadline = ensure_aware(started.return_deadline)

    early = await market.engine.expire_return(order.id, now=deadline - timedelta(hours=1))
    assert early.kind is ErrorKind.INVALID_TRANSITION

    result = await market.engine.expire_return(order.id, now=deadline + timedelta(minutes=1))
    assert result.ok
    assert result.data.status is OrderStatus.COMPLETED
    assert result.data.wallet_credited is True
    assert (await market.wallet()).pending_cents == 4000

    replay = await market.engine.expire_return(order.id, now=deadline + timedelta(hours=5))
    assert replay.ok and replay.already_processed
    assert (await market.wallet()).pending_cents == 4000


async def test_shipped_return_does_not_expire(market):
    order = await market.delivered_order()
    started = (await market.engine.start_return(order.id, BUYER, "Torn", tracking_ref="RET-3")).data

    result = await market.engine.expire_return(order.id, now=ensure_aware(started.return_deadline) + timedelta(days=1))

    assert result.kind is ErrorKind.INVALID_TRANSITION
    assert (await market.order(order.id)).status is OrderStatus.RETURN_STARTED
