from datetime import timedelta

import pytest

from conftest import BUYER, SELLER, STRANGER
from escrow.domain.common import Caller, ensure_aware, utcnow
from escrow.domain.exceptions import ErrorKind, ForbiddenError
from escrow.domain.notifications import NotificationKind
from escrow.domain.orders import EscrowStatus, OrderStatus


async def test_only_seller_ships_paid_orders(market):
    order = await market.paid_order()

    assert (await market.engine.mark_shipped(order.id, BUYER, "1Z1")).kind is ErrorKind.FORBIDDEN
    assert (await market.engine.mark_shipped(order.id, SELLER, "  ")).kind is ErrorKind.INVALID_TRANSITION

    result = await market.engine.mark_shipped(order.id, SELLER, " 1Z1 ")
    assert result.ok
    assert result.data.tracking_ref == "1Z1"
    assert result.data.status is OrderStatus.SHIPPED

    again = await market.engine.mark_shipped(order.id, SELLER, "1Z1")
    assert again.kind is ErrorKind.ALREADY_PROCESSED


async def test_cannot_ship_unpaid_order(market):
    order = await market.new_order()
    result = await market.engine.mark_shipped(order.id, SELLER, "1Z1")
    assert result.kind is ErrorKind.INVALID_TRANSITION


async def test_delivery_opens_inspection_window(market, notifier):
    order = await market.shipped_order()

    result = await market.engine.mark_delivered(order.id)

    delivered = result.data
    assert delivered.status is OrderStatus.DELIVERED
    window = ensure_aware(delivered.inspection_ends_at) - ensure_aware(delivered.delivered_at)
    assert window == timedelta(hours=72)
    assert notifier.of_kind(NotificationKind.ORDER_DELIVERED)[0].recipient_id == BUYER

    replay = await market.engine.mark_delivered(order.id)
    assert replay.ok and replay.already_processed


async def test_buyer_confirmation_credits_pending(market, notifier):
    order = await market.delivered_order()

    result = await market.engine.buyer_confirm_completion(order.id, BUYER)

    completed = result.data
    assert completed.status is OrderStatus.COMPLETED
    assert completed.escrow_status is EscrowStatus.HELD
    assert completed.wallet_credited is True
    wallet = await market.wallet()
    assert (wallet.pending_cents, wallet.available_cents, wallet.lifetime_earnings_cents) == (4000, 0, 4000)
    assert notifier.of_kind(NotificationKind.ORDER_COMPLETED)[0].recipient_id == SELLER
    await market.assert_ledger_consistent()


async def test_completion_replay_does_not_credit_twice(market):
    order = await market.completed_order()

    replay = await market.engine.buyer_confirm_completion(order.id, BUYER)
    timer = await market.engine.attempt_auto_complete(order.id, now=utcnow() + timedelta(days=10))

    assert replay.ok and replay.already_processed
    assert timer.ok and timer.already_processed
    assert (await market.wallet()).pending_cents == 4000
    await market.assert_ledger_consistent()


async def test_auto_complete_waits_for_inspection_window(market):
    order = await market.delivered_order()
    ends_at = ensure_aware(order.inspection_ends_at)

    early = await market.engine.attempt_auto_complete(order.id, now=ends_at - timedelta(minutes=1))
    assert early.kind is ErrorKind.INVALID_TRANSITION
    assert (await market.order(order.id)).status is OrderStatus.DELIVERED

    due = await market.engine.attempt_auto_complete(order.id, now=ends_at + timedelta(seconds=1))
    assert due.ok and not due.already_processed
    assert due.data.status is OrderStatus.COMPLETED
    assert (await market.wallet()).pending_cents == 4000


async def test_auto_complete_skips_orders_with_an_issue(market):
    order = await market.delivered_order()
    await market.engine.report_issue(order.id, BUYER, "Zip is broken")

    result = await market.engine.attempt_auto_complete(order.id, now=utcnow() + timedelta(days=10))

    assert result.kind is ErrorKind.INVALID_TRANSITION
    assert await market.wallet() is None


async def test_completion_reminder(market, notifier):
    order = await market.delivered_order()

    result = await market.engine.send_completion_reminder(order.id)

    assert result.ok
    assert 70 <= result.data["hours_left"] <= 72
    reminder = notifier.of_kind(NotificationKind.COMPLETION_REMINDER)[0]
    assert reminder.recipient_id == BUYER
    assert reminder.order_id == order.id


async def test_release_moves_pending_to_available(market, ledger, notifier):
    await market.seed_wallet()
    order = await market.completed_order()

    result = await market.engine.release_escrow(order.id)

    released = result.data
    assert released.escrow_status is EscrowStatus.RELEASED
    assert released.status is OrderStatus.COMPLETED
    transfers = ledger.calls_of("transfer")
    assert [(call.amount_cents, call.reference) for call in transfers] == [(4000, "acct_seller_1")]
    assert released.processor_transfer_ref == transfers[0].receipt.transfer_id
    wallet = await market.wallet()
    assert (wallet.pending_cents, wallet.available_cents) == (0, 4000)
    assert notifier.of_kind(NotificationKind.ESCROW_RELEASED)
    await market.assert_ledger_consistent()

    again = await market.engine.release_escrow(order.id)
    assert again.ok and again.already_processed
    assert len(ledger.calls_of("transfer")) == 1


async def test_release_requires_payout_account(market, ledger):
    order = await market.completed_order()

    result = await market.engine.release_escrow(order.id)

    assert result.kind is ErrorKind.INVALID_TRANSITION
    assert ledger.calls_of("transfer") == []


async def test_release_waits_for_platform_balance(market, ledger):
    await market.seed_wallet()
    order = await market.completed_order()
    ledger.platform_balance_cents = 100

    result = await market.engine.release_escrow(order.id)

    assert result.kind is ErrorKind.EXTERNAL_LEDGER_FAILURE
    assert result.retryable
    stored = await market.order(order.id)
    assert stored.escrow_status is EscrowStatus.HELD


async def test_get_order_hides_from_strangers(market):
    order = await market.new_order()

    assert (await market.engine.get_order(order.id, Caller(BUYER))).id == order.id
    assert await market.engine.get_order("missing", Caller(BUYER)) is None
    with pytest.raises(ForbiddenError):
        await market.engine.get_order(order.id, Caller(STRANGER))
