import pytest

from escrow.core.config import DatabaseSettings, LedgerSettings, SecuritySettings, Settings, SettlementSettings
from escrow.core.container import ApplicationContainer
from escrow.domain.common import Caller
from escrow.domain.notifications import NotificationEvent, NotificationKind
from escrow.domain.orders import NewOrder, OrderRecord
from escrow.infrastructure.ledger import InMemoryLedgerClient

BUYER = "buyer-1"
SELLER = "seller-1"
STRANGER = "someone-else"
SELLER_ACCOUNT = "acct_seller_1"
PLATFORM_ACCOUNT = "acct_platform"
ADMIN = Caller(user_id="admin-1", is_admin=True)


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    async def publish(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: NotificationKind) -> list[NotificationEvent]:
        return [event for event in self.events if event.kind == kind]


class Marketplace:
    """Drives orders through the engine to the state a test needs."""

    def __init__(self, container: ApplicationContainer) -> None:
        self.container = container
        self.engine = container.settlement_engine()

    async def new_order(self, **overrides) -> OrderRecord:
        fields = dict(
            buyer_id=BUYER,
            seller_id=SELLER,
            item_price_cents=5000,
            shipping_cents=500,
            tax_cents=0,
            buyer_fee_cents=250,
            seller_net_cents=4000,
        )
        fields.update(overrides)
        result = await self.engine.create_order(NewOrder(**fields))
        assert result.ok, result.message
        return result.data

    async def paid_order(self, **overrides) -> OrderRecord:
        order = await self.new_order(**overrides)
        result = await self.engine.confirm_payment(order.id, f"pi_{order.id[:12]}")
        assert result.ok, result.message
        return result.data

    async def shipped_order(self, **overrides) -> OrderRecord:
        order = await self.paid_order(**overrides)
        result = await self.engine.mark_shipped(order.id, order.seller_id, "1Z999AA10123456784")
        assert result.ok, result.message
        return result.data

    async def delivered_order(self, **overrides) -> OrderRecord:
        order = await self.shipped_order(**overrides)
        result = await self.engine.mark_delivered(order.id)
        assert result.ok, result.message
        return result.data

    async def completed_order(self, **overrides) -> OrderRecord:
        order = await self.delivered_order(**overrides)
        result = await self.engine.buyer_confirm_completion(order.id, order.buyer_id)
        assert result.ok, result.message
        return result.data

    async def released_order(self, **overrides) -> OrderRecord:
        order = await self.completed_order(**overrides)
        result = await self.engine.release_escrow(order.id)
        assert result.ok, result.message
        return result.data

    async def seed_wallet(self, seller_id: str = SELLER, account_ref: str = SELLER_ACCOUNT):
        async with self.container.unit_of_work()() as uow:
            return await uow.wallets.set_payout_account(seller_id, account_ref)

    async def credit_order(self, order: OrderRecord) -> None:
        """Put an order's seller net into pending as if it had been credited early."""
        async with self.container.unit_of_work()() as uow:
            await uow.wallets.credit_pending(order.seller_id, order.seller_net_cents, order_id=order.id)
            await uow.orders.compare_and_set(order.id, statuses=[order.status], values={"wallet_credited": True})

    async def order(self, order_id: str) -> OrderRecord:
        async with self.container.unit_of_work()() as uow:
            return OrderRecord.from_model(await uow.orders.get(order_id))

    async def wallet(self, seller_id: str = SELLER):
        async with self.container.unit_of_work()() as uow:
            return await uow.wallets.get_wallet(seller_id)

    async def reconstruct(self, seller_id: str = SELLER):
        async with self.container.unit_of_work()() as uow:
            return await uow.wallets.reconstruct(seller_id)

    async def assert_ledger_consistent(self, seller_id: str = SELLER) -> None:
        wallet = await self.wallet(seller_id)
        rebuilt = await self.reconstruct(seller_id)
        assert wallet.available_cents >= 0
        assert wallet.pending_cents >= 0
        assert rebuilt.available_cents == wallet.available_cents
        assert rebuilt.pending_cents == wallet.pending_cents
        assert rebuilt.lifetime_earnings_cents == wallet.lifetime_earnings_cents


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        environment="test",
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'escrow.db'}"),
        security=SecuritySettings(secret_key="test-secret-key"),
        ledger=LedgerSettings(provider="memory"),
        settlement=SettlementSettings(platform_account_ref=PLATFORM_ACCOUNT),
    )


@pytest.fixture
async def container(settings):
    container = ApplicationContainer.build(
        settings,
        ledger=InMemoryLedgerClient(),
        notifier=RecordingNotifier(),
    )
    await container.init_infrastructure()
    yield container
    await container.dispose()


@pytest.fixture
def ledger(container) -> InMemoryLedgerClient:
    return container.ledger


@pytest.fixture
def notifier(container) -> RecordingNotifier:
    return container.notifier


@pytest.fixture
def settlement(container):
    return container.settlement_engine()


@pytest.fixture
def executor(container):
    return container.payout_executor()


@pytest.fixture
def market(container) -> Marketplace:
    return Marketplace(container)
