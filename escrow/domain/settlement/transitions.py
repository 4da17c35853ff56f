"""Guarded order transitions.

Every status write goes through ``guarded_transition``: a single conditional
``UPDATE ... WHERE status IN (...)`` whose side effects run on the same
transaction. When the update matches nothing the current row is re-read to
tell a replay apart from a stale or out-of-order request.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from escrow.db.models import Order as OrderModel
from escrow.domain.common import UnitOfWork
from escrow.domain.exceptions import AlreadyProcessedError, InvalidTransitionError, NotFoundError, SettlementError
from escrow.domain.orders import DISPUTABLE_STATUSES, EscrowStatus, OrderStatus

SideEffect = Callable[[UnitOfWork, OrderModel], Awaitable[None]]


@dataclass(slots=True, frozen=True)
class Transition:
    name: str
    expected: frozenset[OrderStatus]
    target: OrderStatus
    escrow_expected: Optional[frozenset[Optional[EscrowStatus]]] = None
    escrow_target: Optional[EscrowStatus] = None
    # Statuses meaning the transition already happened; defaults to the target.
    done: frozenset[OrderStatus] = field(default_factory=frozenset)

    def allows(self, order: OrderModel) -> bool:
        if OrderStatus(order.status) not in self.expected:
            return False
        return self.escrow_expected is None or _escrow(order) in self.escrow_expected

    def is_done(self, order: OrderModel) -> bool:
        status = OrderStatus(order.status)
        if status not in (self.done or frozenset({self.target})):
            return False
        return self.escrow_target is None or status != self.target or _escrow(order) == self.escrow_target


def _escrow(order: OrderModel) -> Optional[EscrowStatus]:
    return EscrowStatus(order.escrow_status) if order.escrow_status else None


def _all_but(*statuses: OrderStatus) -> frozenset[OrderStatus]:
    return frozenset(OrderStatus) - frozenset(statuses)


HELD = frozenset({EscrowStatus.HELD})

CONFIRM_PAYMENT = Transition(
    "confirm_payment",
    expected=frozenset({OrderStatus.PENDING_PAYMENT}),
    target=OrderStatus.PAID,
    escrow_expected=frozenset({None}),
    escrow_target=EscrowStatus.HELD,
    done=_all_but(OrderStatus.PENDING_PAYMENT, OrderStatus.CANCELLED_PAYMENT),
)
CANCEL_UNPAID = Transition(
    "cancel_unpaid_order",
    expected=frozenset({OrderStatus.PENDING_PAYMENT}),
    target=OrderStatus.CANCELLED_PAYMENT,
    done=_all_but(OrderStatus.PENDING_PAYMENT),
)
CANCEL_PAID = Transition(
    "cancel_paid_order",
    expected=frozenset({OrderStatus.PAID}),
    target=OrderStatus.CANCELLED,
    escrow_expected=HELD,
    escrow_target=EscrowStatus.REFUNDED,
)
MARK_SHIPPED = Transition("mark_shipped", expected=frozenset({OrderStatus.PAID}), target=OrderStatus.SHIPPED)
MARK_DELIVERED = Transition("mark_delivered", expected=frozenset({OrderStatus.SHIPPED}), target=OrderStatus.DELIVERED)
COMPLETE = Transition(
    "complete",
    expected=frozenset({OrderStatus.DELIVERED}),
    target=OrderStatus.COMPLETED,
    escrow_expected=HELD,
)
EXPIRE_RETURN = Transition(
    "expire_return",
    expected=frozenset({OrderStatus.RETURN_STARTED}),
    target=OrderStatus.COMPLETED,
    escrow_expected=HELD,
)
RELEASE_ESCROW = Transition(
    "release_escrow",
    expected=frozenset({OrderStatus.COMPLETED}),
    target=OrderStatus.COMPLETED,
    escrow_expected=HELD,
    escrow_target=EscrowStatus.RELEASED,
)
REPORT_ISSUE = Transition(
    "report_issue",
    expected=frozenset({OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.DELIVERED}),
    target=OrderStatus.ISSUE_REPORTED,
)
OPEN_DISPUTE = Transition("open_dispute", expected=DISPUTABLE_STATUSES, target=OrderStatus.DISPUTED)
START_RETURN = Transition(
    "start_return",
    expected=frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED}),
    target=OrderStatus.RETURN_STARTED,
)
SUBMIT_RETURN_TRACKING = Transition(
    "submit_return_tracking",
    expected=frozenset({OrderStatus.RETURN_STARTED}),
    target=OrderStatus.RETURN_PROCESSING,
)
CONFIRM_RETURN = Transition(
    "confirm_return_received",
    expected=frozenset({OrderStatus.RETURN_STARTED, OrderStatus.RETURN_PROCESSING}),
    target=OrderStatus.RETURNED,
    escrow_expected=HELD,
    escrow_target=EscrowStatus.REFUNDED,
)
DISPUTE_REFUND = Transition(
    "resolve_dispute_refund",
    expected=frozenset({OrderStatus.DISPUTED}),
    target=OrderStatus.REFUNDED,
    escrow_expected=HELD,
    escrow_target=EscrowStatus.REFUNDED,
)
DISPUTE_RELEASE = Transition(
    "resolve_dispute_release",
    expected=frozenset({OrderStatus.DISPUTED}),
    target=OrderStatus.COMPLETED,
    escrow_expected=HELD,
    escrow_target=EscrowStatus.RELEASED,
)


def rejection(order: Optional[OrderModel], order_id: str, transition: Transition) -> SettlementError:
    if order is None:
        return NotFoundError(f"order {order_id} not found")
    if transition.is_done(order):
        return AlreadyProcessedError(
            f"order {order_id} is already {order.status}",
            data={"order_id": order_id, "status": order.status},
        )
    expected = ", ".join(sorted(transition.expected))
    return InvalidTransitionError(
        f"cannot {transition.name.replace('_', ' ')}: order {order_id} is {order.status}"
        f" (escrow {order.escrow_status or 'none'}), expected {expected}",
        data={"order_id": order_id, "status": order.status},
    )


def ensure_allowed(order: Optional[OrderModel], order_id: str, transition: Transition) -> OrderModel:
    """Raise the same rejection the guarded write would, without writing."""
    if order is None:
        raise NotFoundError(f"order {order_id} not found")
    if not transition.allows(order):
        raise rejection(order, order_id, transition)
    return order


async def guarded_transition(
    uow: UnitOfWork,
    order_id: str,
    transition: Transition,
    *,
    values: Optional[Mapping[str, Any]] = None,
    where: Optional[Mapping[str, Any]] = None,
    side_effect: Optional[SideEffect] = None,
) -> OrderModel:
    update_values: dict[str, Any] = {"status": transition.target}
    if transition.escrow_target is not None:
        update_values["escrow_status"] = transition.escrow_target
    if values:
        update_values.update(values)

    order = await uow.orders.compare_and_set(
        order_id,
        statuses=transition.expected,
        escrow_statuses=transition.escrow_expected,
        where=where,
        values=update_values,
    )
    if order is None:
        current = await uow.orders.get(order_id)
        if current is not None and transition.allows(current) and where:
            mismatched = sorted(key for key, value in where.items() if getattr(current, key) != value)
            if mismatched:
                raise InvalidTransitionError(
                    f"order {order_id} changed concurrently ({', '.join(mismatched)}); retry",
                    data={"order_id": order_id},
                )
        raise rejection(current, order_id, transition)
    if side_effect is not None:
        await side_effect(uow, order)
    return order
