import httpx
import pytest

from conftest import BUYER, SELLER, STRANGER
from escrow.core.security import create_access_token
from escrow.main import create_app


@pytest.fixture
async def client(container):
    app = create_app(container)
    app.state.container = container
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth(settings):
    def headers(user_id: str, role: str = "user") -> dict[str, str]:
        token = create_access_token(user_id, settings.security, role=role)
        return {"Authorization": f"Bearer {token}"}

    return headers


async def create_paid_order(client, auth) -> dict:
    created = await client.post(
        "/api/orders",
        json={"seller_id": SELLER, "item_price_cents": 5000, "shipping_cents": 500, "seller_net_cents": 4000},
        headers=auth(BUYER),
    )
    assert created.status_code == 201, created.text
    order = created.json()["order"]
    paid = await client.post(
        "/api/webhooks/payment-confirmed",
        json={"order_id": order["id"], "charge_ref": "pi_http", "amount_cents": 5500},
    )
    assert paid.status_code == 200, paid.text
    return paid.json()["order"]


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_requests_need_a_token(client):
    response = await client.get("/api/orders")
    assert response.status_code == 401

    bad = await client.get("/api/orders", headers={"Authorization": "Bearer not-a-jwt"})
    assert bad.status_code == 401


async def test_payment_webhook_is_idempotent(client, auth):
    order = await create_paid_order(client, auth)
    assert order["status"] == "paid"
    assert order["escrow_status"] == "held"

    replay = await client.post(
        "/api/webhooks/payment-confirmed",
        json={"order_id": order["id"], "charge_ref": "pi_http"},
    )

    assert replay.status_code == 200
    assert replay.json()["already_processed"] is True


async def test_order_visibility(client, auth):
    order = await create_paid_order(client, auth)

    mine = await client.get(f"/api/orders/{order['id']}", headers=auth(SELLER))
    assert mine.status_code == 200
    assert mine.json()["total_cents"] == 5500

    theirs = await client.get(f"/api/orders/{order['id']}", headers=auth(STRANGER))
    assert theirs.status_code == 403

    missing = await client.get("/api/orders/nope", headers=auth(BUYER))
    assert missing.status_code == 404

    listing = await client.get("/api/orders", headers=auth(BUYER))
    assert [row["id"] for row in listing.json()["orders"]] == [order["id"]]


async def test_error_kinds_map_to_status_codes(client, auth):
    order = await create_paid_order(client, auth)

    forbidden = await client.post(f"/api/orders/{order['id']}/ship", json={"tracking_ref": "1Z"}, headers=auth(BUYER))
    assert forbidden.status_code == 403
    assert forbidden.json()["detail"]["kind"] == "forbidden"

    shipped = await client.post(f"/api/orders/{order['id']}/ship", json={"tracking_ref": "1Z"}, headers=auth(SELLER))
    assert shipped.status_code == 200
    assert shipped.json()["order"]["status"] == "shipped"

    conflict = await client.post(f"/api/orders/{order['id']}/cancel", headers=auth(BUYER))
    assert conflict.status_code == 409
    assert conflict.json()["detail"]["kind"] == "invalid_transition"


async def test_ledger_failure_is_retryable(client, auth, ledger):
    order = await create_paid_order(client, auth)
    ledger.fail_next("refund")

    failed = await client.post(f"/api/orders/{order['id']}/cancel", headers=auth(BUYER))

    assert failed.status_code == 502
    assert failed.headers["Retry-After"] == "30"

    retried = await client.post(f"/api/orders/{order['id']}/cancel", headers=auth(BUYER))
    assert retried.status_code == 200
    assert retried.json()["order"]["status"] == "cancelled"


async def test_dispute_round_trip(client, auth, ledger):
    order = await create_paid_order(client, auth)

    opened = await client.post(
        f"/api/orders/{order['id']}/disputes",
        json={"reason": "Never arrived", "evidence_urls": []},
        headers=auth(BUYER),
    )
    assert opened.status_code == 201
    dispute = opened.json()["dispute"]

    reply = await client.post(
        f"/api/disputes/{dispute['id']}/responses",
        json={"response": "Shipping label attached", "evidence_urls": ["https://img/label.png"]},
        headers=auth(SELLER),
    )
    assert reply.json()["dispute"]["status"] == "seller_responded"

    not_admin = await client.post(
        f"/api/admin/disputes/{dispute['id']}/resolve",
        json={"outcome": "refund"},
        headers=auth(BUYER),
    )
    assert not_admin.status_code == 403

    queue = await client.get("/api/admin/disputes", headers=auth("ops", role="admin"))
    assert [row["id"] for row in queue.json()["disputes"]] == [dispute["id"]]

    resolved = await client.post(
        f"/api/admin/disputes/{dispute['id']}/resolve",
        json={"outcome": "refund", "notes": "No scan after label"},
        headers=auth("ops", role="admin"),
    )
    assert resolved.status_code == 200
    assert resolved.json()["dispute"]["status"] == "resolved_buyer"
    assert [call.amount_cents for call in ledger.calls_of("refund")] == [5500]

    twice = await client.post(
        f"/api/admin/disputes/{dispute['id']}/resolve",
        json={"outcome": "refund"},
        headers=auth("ops", role="admin"),
    )
    assert twice.status_code == 409
    assert twice.json()["detail"]["kind"] == "already_processed"


async def test_scheduler_and_wallet_endpoints(client, auth, market):
    await market.seed_wallet()
    order = await create_paid_order(client, auth)
    admin = auth("scheduler", role="admin")
    await client.post(f"/api/orders/{order['id']}/ship", json={"tracking_ref": "1Z"}, headers=auth(SELLER))

    assert (await client.post(f"/api/orders/{order['id']}/deliver", headers=auth(SELLER))).status_code == 403
    delivered = await client.post(f"/api/orders/{order['id']}/deliver", headers=admin)
    assert delivered.json()["order"]["status"] == "delivered"

    early = await client.post(f"/api/jobs/orders/{order['id']}/auto-complete", headers=admin)
    assert early.status_code == 409

    completed = await client.post(
        f"/api/jobs/orders/{order['id']}/auto-complete",
        json={"now": "2099-01-01T00:00:00+00:00"},
        headers=admin,
    )
    assert completed.status_code == 200
    assert completed.json()["data"]["status"] == "completed"

    released = await client.post(f"/api/jobs/orders/{order['id']}/release", headers=admin)
    assert released.json()["data"]["escrow_status"] == "released"
    replay = await client.post(f"/api/jobs/orders/{order['id']}/release", headers=admin)
    assert replay.status_code == 200
    assert replay.json()["already_processed"] is True

    wallet = await client.get("/api/wallet", headers=auth(SELLER))
    assert wallet.json()["available_cents"] == 4000

    too_much = await client.post("/api/wallet/payouts", json={"method": "standard", "amount_cents": 9999}, headers=auth(SELLER))
    assert too_much.status_code == 422
    assert too_much.json()["detail"]["kind"] == "insufficient_funds"

    payout = await client.post("/api/wallet/payouts", json={"method": "instant"}, headers=auth(SELLER))
    assert payout.status_code == 201
    assert (payout.json()["fee_cents"], payout.json()["net_cents"]) == (120, 3880)

    history = await client.get("/api/wallet/payouts", headers=auth(SELLER))
    assert len(history.json()["payouts"]) == 1
    transactions = await client.get("/api/wallet/transactions", headers=auth(SELLER))
    assert {row["kind"] for row in transactions.json()["transactions"]} == {"credit", "release", "withdrawal"}

    no_wallet = await client.get("/api/wallet", headers=auth(STRANGER))
    assert no_wallet.status_code == 404


async def test_reconciliation_queue(client, auth, market):
    order = await market.new_order()
    await market.engine.cancel_unpaid_order(order.id, BUYER)
    late = await client.post(
        "/api/webhooks/payment-confirmed",
        json={"order_id": order.id, "charge_ref": "pi_after_cancel"},
    )
    assert late.status_code == 500
    assert late.json()["detail"]["kind"] == "reconciliation_required"

    admin = auth("ops", role="admin")
    cases = (await client.get("/api/admin/reconciliation", headers=admin)).json()["cases"]
    assert [case["external_ref"] for case in cases] == ["pi_after_cancel"]

    closed = await client.post(f"/api/admin/reconciliation/{cases[0]['id']}/resolve", headers=admin)
    assert closed.status_code == 200
    assert closed.json()["status"] == "resolved"

    again = await client.post(f"/api/admin/reconciliation/{cases[0]['id']}/resolve", headers=admin)
    assert again.status_code == 409
    assert (await client.get("/api/admin/reconciliation", headers=admin)).json()["cases"] == []
