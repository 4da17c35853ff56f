import pytest
import stripe

from escrow.core.config import LedgerSettings
from escrow.domain.ledger import LedgerAmbiguousError, LedgerError
from escrow.domain.notifications import NotificationEvent, NotificationKind
from escrow.infrastructure.ledger import InMemoryLedgerClient, StripeLedgerClient, build_ledger_client


@pytest.fixture
def stripe_client() -> StripeLedgerClient:
    return StripeLedgerClient(LedgerSettings(provider="stripe", stripe_secret_key="sk_test_123"))


def test_build_ledger_client():
    assert isinstance(build_ledger_client(LedgerSettings(provider="memory")), InMemoryLedgerClient)
    assert isinstance(
        build_ledger_client(LedgerSettings(provider="stripe", stripe_secret_key="sk_test_123")),
        StripeLedgerClient,
    )
    with pytest.raises(ValueError):
        build_ledger_client(LedgerSettings(provider="stripe"))


async def test_stripe_refund_uses_payment_intent_and_idempotency_key(monkeypatch, stripe_client):
    captured = {}

    def fake_create(**params):
        captured.update(params)
        return {"id": "re_1", "status": "succeeded", "amount": params["amount"]}

    monkeypatch.setattr(stripe.Refund, "create", fake_create)

    receipt = await stripe_client.refund("pi_abc", 5500, idempotency_key="refund:cancel:o1")

    assert (receipt.refund_id, receipt.status, receipt.amount_cents) == ("re_1", "succeeded", 5500)
    assert captured["payment_intent"] == "pi_abc"
    assert captured["idempotency_key"] == "refund:cancel:o1"
    assert captured["api_key"] == "sk_test_123"
    assert "charge" not in captured


async def test_stripe_fee_transfer_runs_on_connected_account(monkeypatch, stripe_client):
    captured = {}

    def fake_create(**params):
        captured.update(params)
        return {"id": "tr_1", "amount": params["amount"]}

    monkeypatch.setattr(stripe.Transfer, "create", fake_create)

    receipt = await stripe_client.transfer(300, "acct_platform", source_ref="acct_seller", idempotency_key="fee:1")

    assert receipt.transfer_id == "tr_1"
    assert captured["stripe_account"] == "acct_seller"
    assert captured["destination"] == "acct_platform"


async def test_stripe_balance_sums_matching_currency(monkeypatch, stripe_client):
    monkeypatch.setattr(
        stripe.Balance,
        "retrieve",
        lambda **params: {"available": [{"amount": 700, "currency": "usd"}, {"amount": 50, "currency": "eur"}]},
    )

    assert await stripe_client.available_balance("usd") == 700


async def test_stripe_errors_are_translated(monkeypatch, stripe_client):
    def connection_lost(**params):
        raise stripe.APIConnectionError("connection reset")

    def declined(**params):
        raise stripe.InvalidRequestError("No such charge", param="charge")

    monkeypatch.setattr(stripe.Payout, "create", connection_lost)
    with pytest.raises(LedgerAmbiguousError):
        await stripe_client.payout(100, "acct_seller", "standard")

    monkeypatch.setattr(stripe.Refund, "create", declined)
    with pytest.raises(LedgerError) as excinfo:
        await stripe_client.refund("ch_1", 100, idempotency_key="k")
    assert not isinstance(excinfo.value, LedgerAmbiguousError)


async def test_memory_ledger_honours_idempotency_keys():
    ledger = InMemoryLedgerClient(platform_balance_cents=10000)

    first = await ledger.transfer(4000, "acct_seller", idempotency_key="transfer:release:o1")
    second = await ledger.transfer(4000, "acct_seller", idempotency_key="transfer:release:o1")

    assert first == second
    assert len(ledger.calls_of("transfer")) == 1
    assert await ledger.available_balance() == 6000


def test_notification_payload_is_versioned():
    event = NotificationEvent(
        kind=NotificationKind.ORDER_PAID,
        recipient_id="seller-1",
        title="You made a sale",
        body="Ship it",
        order_id="o1",
    )

    payload = event.to_payload()

    assert payload["version"] == 1
    assert payload["kind"] == "order_paid"
    assert payload["data"] == {}
