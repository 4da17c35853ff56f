"""SQLAlchemy implementation of the order store."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy import desc, or_, select, update

from escrow.db.models import Listing, Offer, Order
from escrow.domain.common.repository import AsyncRepository
from escrow.infrastructure.database.values import plain, plain_values

_OPEN_OFFER_STATUSES = ("pending", "countered")


class SqlOrderRepository(AsyncRepository[Order]):
    async def create(self, order: Any) -> Order:
        model = Order(
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            listing_id=order.listing_id,
            item_price_cents=order.item_price_cents,
            shipping_cents=order.shipping_cents,
            tax_cents=order.tax_cents,
            buyer_fee_cents=order.buyer_fee_cents,
            seller_net_cents=order.seller_net_cents,
            currency=order.currency,
        )
        await self.add(model)
        await self.session.refresh(model)
        return model

    async def get(self, order_id: str) -> Order | None:
        stmt = select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def compare_and_set(
        self,
        order_id: str,
        *,
        statuses: Iterable[Any],
        escrow_statuses: Optional[Iterable[Any]] = None,
        where: Optional[Mapping[str, Any]] = None,
        values: Mapping[str, Any],
    ) -> Order | None:
        stmt = update(Order).where(
            Order.id == order_id,
            Order.status.in_([plain(status) for status in statuses]),
        )
        if escrow_statuses is not None:
            escrow_statuses = list(escrow_statuses)
            allowed = [plain(status) for status in escrow_statuses if status is not None]
            clauses = [Order.escrow_status.in_(allowed)] if allowed else []
            if None in escrow_statuses:
                clauses.append(Order.escrow_status.is_(None))
            stmt = stmt.where(or_(*clauses))
        for key, expected in (where or {}).items():
            column = getattr(Order, key)
            stmt = stmt.where(column.is_(None) if expected is None else column == plain(expected))

        stmt = (
            stmt.values(**plain_values(values))
            .execution_options(synchronize_session="fetch", populate_existing=True)
            .returning(Order)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def flag_reconciliation(self, order_id: str) -> None:
        stmt = (
            update(Order)
            .where(Order.id == order_id)
            .values(needs_reconciliation=True)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.execute(stmt)

    async def list_for_party(self, party_id: str, limit: int, offset: int) -> Sequence[Order]:
        stmt = (
            select(Order)
            .where(or_(Order.buyer_id == party_id, Order.seller_id == party_id))
            .order_by(desc(Order.created_at))
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()


class SqlMarketplaceRepository(AsyncRepository[Listing]):
    async def mark_listing_sold(self, listing_id: str) -> bool:
        stmt = (
            update(Listing)
            .where(Listing.id == listing_id, Listing.is_sold.is_(False))
            .values(is_sold=True, status="sold")
            .execution_options(synchronize_session="fetch")
            .returning(Listing.id)
        )
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def expire_open_offers(self, listing_id: str) -> int:
        stmt = (
            update(Offer)
            .where(Offer.listing_id == listing_id, Offer.status.in_(_OPEN_OFFER_STATUSES))
            .values(status="expired")
            .execution_options(synchronize_session="fetch")
            .returning(Offer.id)
        )
        result = await self.session.execute(stmt)
        return len(result.all())
