"""Escrow and settlement engine.

Every public operation returns an ``OperationResult``. Money-moving operations
follow the same three steps: check guards inside one transaction, call the
processor with no transaction open, then commit the local change in a fresh
transaction through a guarded transition. A processor failure leaves the order
untouched. A commit failure after the processor succeeded is recorded as a
reconciliation case and never retried automatically, except a payout lock met
at commit time, which is reported as retryable.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from escrow.core.config import SettlementSettings
from escrow.db.models import Order as OrderModel
from escrow.domain.common import Caller, UnitOfWork, UnitOfWorkFactory, ensure_aware, utcnow
from escrow.domain.disputes import (
    OPEN_DISPUTE_STATUSES,
    DisputeParty,
    DisputeRecord,
    DisputeResolution,
    DisputeStatus,
    dump_evidence,
)
from escrow.domain.exceptions import (
    AlreadyProcessedError,
    ExternalLedgerError,
    ForbiddenError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidTransitionError,
    NotFoundError,
    ReconciliationRequiredError,
    ResourceLockedError,
)
from escrow.domain.ledger import LedgerClient, LedgerError, RefundReceipt, TransferReceipt
from escrow.domain.notifications import NotificationEvent, NotificationKind, Notifier
from escrow.domain.orders import NewOrder, OrderRecord, OrderStatus
from escrow.domain.reconciliation import EntityType, ReconciliationService
from escrow.domain.results import operation
from escrow.domain.wallets import WalletSnapshot, WalletTransactionRecord

from . import policy
from .transitions import (
    CANCEL_PAID,
    CANCEL_UNPAID,
    COMPLETE,
    CONFIRM_PAYMENT,
    CONFIRM_RETURN,
    DISPUTE_REFUND,
    DISPUTE_RELEASE,
    EXPIRE_RETURN,
    MARK_DELIVERED,
    MARK_SHIPPED,
    OPEN_DISPUTE,
    RELEASE_ESCROW,
    REPORT_ISSUE,
    START_RETURN,
    SUBMIT_RETURN_TRACKING,
    SideEffect,
    Transition,
    ensure_allowed,
    guarded_transition,
)

logger = logging.getLogger(__name__)

_REFUND_OK_STATUSES = {"succeeded", "pending"}


@dataclass(slots=True)
class SettlementEngine:
    unit_of_work: UnitOfWorkFactory
    ledger: LedgerClient
    notifier: Notifier
    settings: SettlementSettings
    clock: Callable[[], datetime] = utcnow
    reconciliation: ReconciliationService = field(init=False)

    def __post_init__(self) -> None:
        self.reconciliation = ReconciliationService(self.unit_of_work)

    # ------------------------------------------------------------------
    # Checkout and payment

    @operation("create_order")
    async def create_order(self, new_order: NewOrder) -> OrderRecord:
        amounts = {
            "item_price_cents": new_order.item_price_cents,
            "shipping_cents": new_order.shipping_cents,
            "tax_cents": new_order.tax_cents,
            "buyer_fee_cents": new_order.buyer_fee_cents,
            "seller_net_cents": new_order.seller_net_cents,
        }
        for name, value in amounts.items():
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise InvalidAmountError(f"{name} must be a non-negative number of cents")
        if new_order.item_price_cents <= 0 or new_order.seller_net_cents <= 0:
            raise InvalidAmountError("item price and seller net must be positive")
        sale_cents = new_order.item_price_cents + new_order.shipping_cents + new_order.tax_cents
        if new_order.seller_net_cents > sale_cents:
            raise InvalidAmountError(
                f"seller net {new_order.seller_net_cents} exceeds the {sale_cents} cents charged for the sale",
                data={"seller_net_cents": new_order.seller_net_cents, "sale_cents": sale_cents},
            )
        if new_order.buyer_id == new_order.seller_id:
            raise InvalidTransitionError("buyer and seller must be different accounts")

        async with self.unit_of_work() as uow:
            order = await uow.orders.create(new_order)
            record = OrderRecord.from_model(order)
        logger.info("Order %s created for buyer %s, seller %s", record.id, record.buyer_id, record.seller_id)
        return record

    @operation("confirm_payment", replay_safe=True)
    async def confirm_payment(
        self,
        order_id: str,
        charge_ref: str,
        amount_cents: Optional[int] = None,
    ) -> OrderRecord:
        """Handle a verified payment-succeeded event. Safe to deliver more than once."""
        if not charge_ref:
            raise InvalidTransitionError("payment event carries no charge reference")

        async with self.unit_of_work() as uow:
            order = await self._load_order(uow, order_id)
            if order.status == OrderStatus.CANCELLED_PAYMENT:
                cancelled = True
            else:
                cancelled = False
                if order.status == OrderStatus.PENDING_PAYMENT and amount_cents is not None:
                    expected = OrderRecord.from_model(order).total_cents
                    if amount_cents != expected:
                        raise InvalidAmountError(
                            f"payment of {amount_cents} does not match order total {expected}",
                            data={"expected_cents": expected, "received_cents": amount_cents},
                        )

                async def mark_listing(uow: UnitOfWork, model: OrderModel) -> None:
                    if model.listing_id:
                        await uow.marketplace.mark_listing_sold(model.listing_id)
                        expired = await uow.marketplace.expire_open_offers(model.listing_id)
                        if expired:
                            logger.info("Expired %s open offers on listing %s", expired, model.listing_id)

                now = self.clock()
                updated = await guarded_transition(
                    uow,
                    order_id,
                    CONFIRM_PAYMENT,
                    values={"processor_charge_ref": charge_ref, "paid_at": now},
                    side_effect=mark_listing,
                )
                record = OrderRecord.from_model(updated)

        if cancelled:
            # Captured money for an order the buyer already abandoned.
            await self.reconciliation.record(
                entity_type=EntityType.ORDER,
                entity_id=order_id,
                operation="confirm_payment",
                external_ref=charge_ref,
                detail="payment confirmed for an order cancelled before payment",
                order_id=order_id,
            )
            raise ReconciliationRequiredError(
                "payment landed on a cancelled order; flagged for review",
                data={"order_id": order_id, "charge_ref": charge_ref},
            )

        logger.info("Order %s paid (charge %s); escrow held", order_id, charge_ref)
        await self._notify(
            NotificationKind.ORDER_PAID,
            record.seller_id,
            "You made a sale",
            f"Order #{record.display_number} has been paid. Ship it to release your earnings.",
            order_id=order_id,
        )
        return record

    @operation("cancel_unpaid_order", replay_safe=True)
    async def cancel_unpaid_order(self, order_id: str, buyer_id: str) -> OrderRecord:
        """Abandon checkout. Skipped silently if the payment already landed."""
        async with self.unit_of_work() as uow:
            order = await self._load_order(uow, order_id)
            self._require_party(order, buyer_id, DisputeParty.BUYER)
            updated = await guarded_transition(
                uow,
                order_id,
                CANCEL_UNPAID,
                values={"cancelled_at": self.clock()},
            )
            record = OrderRecord.from_model(updated)
        logger.info("Unpaid order %s cancelled by buyer", order_id)
        return record

    @operation("cancel_paid_order")
    async def cancel_paid_order(self, order_id: str, buyer_id: str) -> OrderRecord:
        async with self.unit_of_work() as uow:
            order = await self._load_order(uow, order_id)
            self._require_party(order, buyer_id, DisputeParty.BUYER)
            ensure_allowed(order, order_id, CANCEL_PAID)
            record = OrderRecord.from_model(order)
            amount = policy.return_refund_cents(record)
            await self._check_refund_guards(uow, record, amount)

        refund = await self._refund(record, amount, f"refund:cancel:{order_id}")
        updated = await self._commit_refund(record, refund, CANCEL_PAID, extra_values={"cancelled_at": self.clock()})

        await self._notify(
            NotificationKind.ORDER_CANCELLED,
            record.seller_id,
            "Order cancelled",
            f"The buyer cancelled order #{record.display_number} before it shipped.",
            order_id=order_id,
        )
        return updated

    # ------------------------------------------------------------------
    # Fulfilment

    @operation("mark_shipped")
    async def mark_shipped(self, order_id: str, seller_id: str, tracking_ref: str) -> OrderRecord:
        if not tracking_ref or not tracking_ref.strip():
            raise InvalidTransitionError("a tracking reference is required to ship")
        async with self.unit_of_work() as uow:
            order = await self._load_order(uow, order_id)
            self._require_party(order, seller_id, DisputeParty.SELLER)
            updated = await guarded_transition(
                uow,
                order_id,
                MARK_SHIPPED,
                values={"tracking_ref": tracking_ref.strip(), "shipped_at": self.clock()},
            )
            record = OrderRecord.from_model(updated)
        await self._notify(
            NotificationKind.ORDER_SHIPPED,
            record.buyer_id,
            "Your order shipped",
            f"Order #{record.display_number} is on its way.",
            order_id=order_id,
            tracking_ref=record.tracking_ref,
        )
        return record

    @operation("mark_delivered", replay_safe=True)
    async def mark_delivered(self, order_id: str) -> OrderRecord:
        now = self.clock()
        ends_at = policy.inspection_deadline(now, self.settings)
        async with self.unit_of_work() as uow:
            updated = await guarded_transition(
                uow,
                order_id,
                MARK_DELIVERED,
                values={"delivered_at": now, "inspection_ends_at": ends_at},
            )
            record = OrderRecord.from_model(updated)
        logger.info("Order %s delivered; inspection window ends %s", order_id, ends_at.isoformat())
        await self._notify(
            NotificationKind.ORDER_DELIVERED,
            record.buyer_id,
            "Your order arrived",
            f"Check order #{record.display_number} and confirm everything is as described.",
            order_id=order_id,
            inspection_ends_at=ends_at.isoformat(),
        )
        return record

    @operation("buyer_confirm_completion", replay_safe=True)
    async def buyer_confirm_completion(self, order_id: str, buyer_id: str) -> OrderRecord:
        async with self.unit_of_work() as uow:
            order = await self._load_order(uow, order_id)
            self._require_party(order, buyer_id, DisputeParty.BUYER)
            record = await self._complete(uow, order, COMPLETE, reason="buyer confirmed")
        await self._notify_completed(record)
        return record

    @operation("attempt_auto_complete", replay_safe=True)
    async def attempt_auto_complete(self, order_id: str, now: Optional[datetime] = None) -> OrderRecord:
        """Complete a delivered order whose inspection window has run out."""
        now = ensure_aware(now) or self.clock()
        async with self.unit_of_work() as uow:
            order = ensure_allowed(await uow.orders.get(order_id), order_id, COMPLETE)
            ends_at = ensure_aware(order.inspection_ends_at)
            if ends_at is None or now < ends_at:
                raise InvalidTransitionError(
                    f"inspection window for order {order_id} is still open",
                    data={"inspection_ends_at": ends_at.isoformat() if ends_at else None},
                )
            record = await self._complete(uow, order, COMPLETE, reason="inspection window expired")
        await self._notify_completed(record)
        return record

    @operation("send_completion_reminder")
    async def send_completion_reminder(self, order_id: str) -> dict[str, Any]:
        async with self.unit_of_work() as uow:
            order = await self._load_order(uow, order_id)
            if order.status != OrderStatus.DELIVERED:
                raise InvalidTransitionError(f"order {order_id} is {order.status}, not awaiting confirmation")
            record = OrderRecord.from_model(order)
        ends_at = ensure_aware(record.inspection_ends_at)
        hours_left = max(0, int((ends_at - self.clock()).total_seconds() // 3600)) if ends_at else 0
        await self._notify(
            NotificationKind.COMPLETION_REMINDER,
            record.buyer_id,
            "Is everything OK with your order?",
            f"Confirm order #{record.display_number} or report a problem. "
            f"It completes automatically in {hours_left} hours.",
            order_id=order_id,
            hours_left=hours_left,
        )
        return {"order_id": order_id, "hours_left": hours_left}

    @operation("release_escrow", replay_safe=True)
    async def release_escrow(self, order_id: str) -> OrderRecord:
        """Pay a completed order's seller net out of escrow and make it withdrawable."""
        async with self.unit_of_work() as uow:
            order = ensure_allowed(await uow.orders.get(order_id), order_id, RELEASE_ESCROW)
            if not order.wallet_credited:
                raise InvalidTransitionError(f"order {order_id} has not been credited to the seller")
            record = OrderRecord.from_model(order)
            wallet = await self._check_release_guards(uow, record, needs_pending=True)

        transfer = await self._transfer(record, wallet, f"transfer:release:{order_id}")

        async def release_wallet(uow: UnitOfWork, model: OrderModel) -> None:
            await uow.wallets.release_pending(record.seller_id, record.seller_net_cents, order_id=order_id)

        async def commit() -> OrderModel:
            async with self.unit_of_work() as uow:
                return await guarded_transition(
                    uow,
                    order_id,
                    RELEASE_ESCROW,
                    values={"processor_transfer_ref": transfer.transfer_id, "released_at": self.clock()},
                    where={"wallet_credited": True},
                    side_effect=release_wallet,
                )

        updated = await self._commit_or_reconcile(
            commit,
            operation="release_escrow",
            order_id=order_id,
            external_ref=transfer.transfer_id,
            stored_ref=lambda model: model.processor_transfer_ref,
        )
        released = OrderRecord.from_model(updated)
        logger.info("Escrow released for order %s (transfer %s)", order_id, transfer.transfer_id)
        await self._notify(
            NotificationKind.ESCROW_RELEASED,
            released.seller_id,
            "Funds available",
            f"Earnings from order #{released.display_number} are ready to withdraw.",
            order_id=order_id,
            amount_cents=released.seller_net_cents,
        )
        return released

    # ------------------------------------------------------------------
    # Issues and disputes

    @operation("report_issue")
    async def report_issue(self, order_id: str, buyer_id: str, reason: str) -> OrderRecord:
        if not reason or not reason.strip():
            raise InvalidTransitionError("a reason is required to report an issue")
        async with self.unit_of_work() as uow:
            order = await self._load_order(uow, order_id)
            self._require_party(order, buyer_id, DisputeParty.BUYER)
            updated = await guarded_transition(
                uow,
                order_id,
                REPORT_ISSUE,
                values={"issue_reason": reason.strip(), "issue_reported_at": self.clock()},
            )
            record = OrderRecord.from_model(updated)
        await self._notify(
            NotificationKind.ISSUE_REPORTED,
            record.seller_id,
            "The buyer reported a problem",
            f"Order #{record.display_number}: {reason.strip()}",
            order_id=order_id,
        )
        return record

    @operation("open_dispute")
    async def open_dispute(
        self,
        order_id: str,
        caller_id: str,
        reason: str,
        description: Optional[str] = None,
        evidence_urls: Sequence[str] = (),
    ) -> DisputeRecord:
        if not reason or not reason.strip():
            raise InvalidTransitionError("a reason is required to open a dispute")
        evidence = [url for url in evidence_urls if url]

        async with self.unit_of_work() as uow:
            order = await self._load_order(uow, order_id)
            party = self._party_of(order, caller_id)
            if await uow.disputes.find_active(order_id) is not None:
                raise InvalidTransitionError(f"order {order_id} already has an open dispute")

            created: list[Any] = []

            async def create_dispute(uow: UnitOfWork, model: OrderModel) -> None:
                dispute = await uow.disputes.create(
                    order_id=order_id,
                    opened_by=party,
                    reason=reason.strip(),
                    description=description,
                    evidence_urls=evidence,
                )
                created.append(dispute)

            order = await guarded_transition(
                uow,
                order_id,
                OPEN_DISPUTE,
                values={"dispute_flag": True},
                side_effect=create_dispute,
            )
            record = DisputeRecord.from_model(created[0])

        logger.info("Dispute %s opened on order %s by %s", record.id, order_id, party)
        other = order.seller_id if party is DisputeParty.BUYER else order.buyer_id
        await self._notify(
            NotificationKind.DISPUTE_OPENED,
            other,
            "A dispute was opened",
            f"A dispute was opened on order #{order.display_number}: {record.reason}",
            order_id=order_id,
            dispute_id=record.id,
        )
        return record

    @operation("respond_to_dispute")
    async def respond_to_dispute(
        self,
        dispute_id: str,
        caller_id: str,
        response: str,
        evidence_urls: Sequence[str] = (),
    ) -> DisputeRecord:
        if not response or not response.strip():
            raise InvalidTransitionError("a response is required")
        new_evidence = [url for url in evidence_urls if url]

        async with self.unit_of_work() as uow:
            dispute = await self._load_dispute(uow, dispute_id)
            if dispute.is_terminal:
                raise InvalidTransitionError("dispute already resolved")
            order = await self._load_order(uow, dispute.order_id)
            party = self._party_of(order, caller_id)

            status = dispute.status
            if party is DisputeParty.SELLER and status is DisputeStatus.OPEN:
                status = DisputeStatus.SELLER_RESPONDED
            elif party is DisputeParty.BUYER and dispute.opened_by is DisputeParty.SELLER:
                status = DisputeStatus.UNDER_REVIEW

            now = self.clock()
            party_evidence = dispute.buyer_evidence_urls if party is DisputeParty.BUYER else dispute.seller_evidence_urls
            values = {
                "status": status,
                f"{party}_response": response.strip(),
                f"{party}_responded_at": now,
                f"{party}_evidence_urls": dump_evidence(party_evidence + new_evidence),
                "evidence_urls": dump_evidence(dispute.evidence_urls + new_evidence),
            }
            updated = await uow.disputes.compare_and_set(dispute_id, statuses={dispute.status}, values=values)
            if updated is None:
                raise InvalidTransitionError("dispute changed while responding; retry")
            record = DisputeRecord.from_model(updated)

        other = order.buyer_id if party is DisputeParty.SELLER else order.seller_id
        await self._notify(
            NotificationKind.DISPUTE_RESPONSE,
            other,
            "New response on your dispute",
            f"The {party} responded to the dispute on order #{order.display_number}.",
            order_id=order.id,
            dispute_id=dispute_id,
        )
        return record

    @operation("mark_dispute_under_review")
    async def mark_dispute_under_review(self, dispute_id: str, caller: Caller) -> DisputeRecord:
        self._require_admin(caller)
        async with self.unit_of_work() as uow:
            updated = await uow.disputes.compare_and_set(
                dispute_id,
                statuses={DisputeStatus.OPEN, DisputeStatus.SELLER_RESPONDED},
                values={"status": DisputeStatus.UNDER_REVIEW},
            )
            if updated is None:
                dispute = await self._load_dispute(uow, dispute_id)
                if dispute.is_terminal:
                    raise InvalidTransitionError("dispute already resolved")
                raise AlreadyProcessedError("dispute is already under review")
            record = DisputeRecord.from_model(updated)
        logger.info("Dispute %s under review by %s", dispute_id, caller.user_id)
        return record

    @operation("resolve_dispute")
    async def resolve_dispute(
        self,
        dispute_id: str,
        outcome: DisputeResolution | str,
        notes: Optional[str],
        caller: Caller,
    ) -> DisputeRecord:
        self._require_admin(caller)
        try:
            outcome = DisputeResolution(outcome)
        except ValueError as exc:
            raise InvalidTransitionError(f"unknown dispute outcome {outcome!r}") from exc

        async with self.unit_of_work() as uow:
            dispute = await self._load_dispute(uow, dispute_id)
            if dispute.is_terminal:
                raise AlreadyProcessedError("dispute already resolved", data={"dispute_id": dispute_id})
            # One outcome owns the dispute until it closes or its processor call
            # fails. A guard failure below rolls the claim back with the rest.
            claimed = await uow.disputes.claim_resolution(dispute_id, statuses=OPEN_DISPUTE_STATUSES, outcome=outcome)
            if claimed is None:
                raise AlreadyProcessedError(
                    "dispute already resolved or being resolved", data={"dispute_id": dispute_id}
                )
            transition = DISPUTE_REFUND if outcome is DisputeResolution.REFUND else DISPUTE_RELEASE
            order = ensure_allowed(await uow.orders.get(dispute.order_id), dispute.order_id, transition)
            record = OrderRecord.from_model(order)
            if outcome is DisputeResolution.REFUND:
                amount = policy.dispute_refund_cents(record)
                await self._check_refund_guards(uow, record, amount)
                wallet = None
            else:
                wallet = await self._check_release_guards(uow, record, needs_pending=record.wallet_credited)

        resolved_status = (
            DisputeStatus.RESOLVED_BUYER if outcome is DisputeResolution.REFUND else DisputeStatus.RESOLVED_SELLER
        )

        def close_dispute(external_ref: str) -> SideEffect:
            async def side_effect(uow: UnitOfWork, model: OrderModel) -> None:
                closed = await uow.disputes.compare_and_set(
                    dispute_id,
                    statuses=OPEN_DISPUTE_STATUSES,
                    values={
                        "status": resolved_status,
                        "resolution": outcome,
                        "resolved_by": caller.user_id,
                        "resolved_at": self.clock(),
                        "admin_notes": notes,
                        "processor_ref": external_ref,
                    },
                )
                if closed is None:
                    raise AlreadyProcessedError("dispute already resolved", data={"dispute_id": dispute_id})

            return side_effect

        try:
            if outcome is DisputeResolution.REFUND:
                receipt = await self._refund(record, amount, f"refund:dispute:{dispute_id}")
            else:
                receipt = await self._transfer(record, wallet, f"transfer:dispute:{dispute_id}")
        except ExternalLedgerError:
            async with self.unit_of_work() as uow:
                await uow.disputes.release_claim(dispute_id, outcome=outcome)
            logger.info("Released %s claim on dispute %s after a processor failure", outcome, dispute_id)
            raise

        try:
            if outcome is DisputeResolution.REFUND:
                await self._commit_refund(
                    record,
                    receipt,
                    DISPUTE_REFUND,
                    extra_effect=close_dispute(receipt.refund_id),
                    entity=(EntityType.DISPUTE, dispute_id),
                )
                recipient, body = record.buyer_id, "The dispute was decided in your favour. A refund is on its way."
            else:
                await self._commit_dispute_release(record, receipt, close_dispute(receipt.transfer_id), dispute_id)
                recipient, body = record.seller_id, "The dispute was decided in your favour. Funds have been released."
        except AlreadyProcessedError as exc:
            raise AlreadyProcessedError("dispute already resolved", data={"dispute_id": dispute_id}) from exc

        async with self.unit_of_work() as uow:
            resolved = await self._load_dispute(uow, dispute_id)
        logger.info("Dispute %s resolved as %s by %s", dispute_id, outcome, caller.user_id)
        await self._notify(
            NotificationKind.DISPUTE_RESOLVED,
            recipient,
            "Dispute resolved",
            body,
            order_id=record.id,
            dispute_id=dispute_id,
            resolution=str(outcome),
        )
        return resolved

    # ------------------------------------------------------------------
    # Returns

    @operation("start_return")
    async def start_return(
        self,
        order_id: str,
        buyer_id: str,
        reason: str,
        notes: Optional[str] = None,
        tracking_ref: Optional[str] = None,
    ) -> OrderRecord:
        if not reason or not reason.strip():
            raise InvalidTransitionError("a reason is required to start a return")
        now = self.clock()
        values: dict[str, Any] = {
            "return_reason": reason.strip(),
            "return_notes": notes,
            "return_requested_at": now,
            "return_deadline": policy.return_deadline(now, self.settings),
        }
        if tracking_ref and tracking_ref.strip():
            values["return_tracking_ref"] = tracking_ref.strip()
            values["return_shipped_at"] = now

        async with self.unit_of_work() as uow:
            order = await self._load_order(uow, order_id)
            self._require_party(order, buyer_id, DisputeParty.BUYER)
            updated = await guarded_transition(uow, order_id, START_RETURN, values=values)
            record = OrderRecord.from_model(updated)
        await self._notify(
            NotificationKind.RETURN_STARTED,
            record.seller_id,
            "Return requested",
            f"The buyer started a return for order #{record.display_number}: {reason.strip()}",
            order_id=order_id,
        )
        return record

    @operation("submit_return_tracking")
    async def submit_return_tracking(self, order_id: str, buyer_id: str, tracking_ref: str) -> OrderRecord:
        if not tracking_ref or not tracking_ref.strip():
            raise InvalidTransitionError("a tracking reference is required")
        async with self.unit_of_work() as uow:
            order = await self._load_order(uow, order_id)
            self._require_party(order, buyer_id, DisputeParty.BUYER)
            updated = await guarded_transition(
                uow,
                order_id,
                SUBMIT_RETURN_TRACKING,
                values={"return_tracking_ref": tracking_ref.strip(), "return_shipped_at": self.clock()},
            )
            record = OrderRecord.from_model(updated)
        await self._notify(
            NotificationKind.RETURN_SHIPPED,
            record.seller_id,
            "Return shipped",
            f"The return for order #{record.display_number} is on its way back to you.",
            order_id=order_id,
            tracking_ref=record.return_tracking_ref,
        )
        return record

    @operation("confirm_return_received")
    async def confirm_return_received(self, order_id: str, seller_id: str) -> OrderRecord:
        async with self.unit_of_work() as uow:
            order = await self._load_order(uow, order_id)
            self._require_party(order, seller_id, DisputeParty.SELLER)
            if order.return_received:
                raise AlreadyProcessedError(f"return for order {order_id} already received")
            ensure_allowed(order, order_id, CONFIRM_RETURN)
            if not order.return_tracking_ref or order.return_shipped_at is None:
                raise InvalidTransitionError(f"return for order {order_id} has not been shipped")
            record = OrderRecord.from_model(order)
            amount = policy.return_refund_cents(record)
            await self._check_refund_guards(uow, record, amount)

        refund = await self._refund(record, amount, f"refund:return:{order_id}")
        updated = await self._commit_refund(
            record,
            refund,
            CONFIRM_RETURN,
            extra_values={"return_received": True},
            extra_where={"return_received": False},
        )
        await self._notify(
            NotificationKind.RETURN_REFUNDED,
            record.buyer_id,
            "Refund issued",
            f"The seller received your return for order #{record.display_number}. "
            f"{amount / 100:.2f} {record.currency.upper()} is on its way back to you.",
            order_id=order_id,
            amount_cents=amount,
        )
        return updated

    @operation("expire_return", replay_safe=True)
    async def expire_return(self, order_id: str, now: Optional[datetime] = None) -> OrderRecord:
        """Complete the sale when the buyer never shipped the return in time."""
        now = ensure_aware(now) or self.clock()
        async with self.unit_of_work() as uow:
            order = ensure_allowed(await uow.orders.get(order_id), order_id, EXPIRE_RETURN)
            if order.return_tracking_ref:
                raise InvalidTransitionError(f"return for order {order_id} is already on its way")
            deadline = ensure_aware(order.return_deadline)
            if deadline is None or now < deadline:
                raise InvalidTransitionError(f"return window for order {order_id} is still open")
            record = await self._complete(
                uow,
                order,
                EXPIRE_RETURN,
                reason="return not shipped in time",
                where={"return_tracking_ref": None},
            )
        await self._notify_completed(record)
        return record

    # ------------------------------------------------------------------
    # Read side

    async def get_order(self, order_id: str, caller: Caller) -> Optional[OrderRecord]:
        async with self.unit_of_work() as uow:
            order = await uow.orders.get(order_id)
        if order is None:
            return None
        if not caller.is_admin and caller.user_id not in (order.buyer_id, order.seller_id):
            raise ForbiddenError("not a party to this order")
        return OrderRecord.from_model(order)

    async def list_orders(self, party_id: str, limit: int = 20, offset: int = 0) -> list[OrderRecord]:
        async with self.unit_of_work() as uow:
            rows = await uow.orders.list_for_party(party_id, limit, offset)
            return [OrderRecord.from_model(row) for row in rows]

    async def get_dispute(self, dispute_id: str, caller: Caller) -> Optional[DisputeRecord]:
        async with self.unit_of_work() as uow:
            dispute = await uow.disputes.get(dispute_id)
            if dispute is None:
                return None
            if not caller.is_admin:
                self._party_of(await self._load_order(uow, dispute.order_id), caller.user_id)
            return DisputeRecord.from_model(dispute)

    async def list_disputes(
        self,
        statuses: Sequence[DisputeStatus] = tuple(OPEN_DISPUTE_STATUSES),
        limit: int = 50,
        offset: int = 0,
    ) -> list[DisputeRecord]:
        async with self.unit_of_work() as uow:
            rows = await uow.disputes.list_by_status(statuses, limit, offset)
            return [DisputeRecord.from_model(row) for row in rows]

    async def get_wallet(self, seller_id: str) -> Optional[WalletSnapshot]:
        async with self.unit_of_work() as uow:
            return await uow.wallets.get_wallet(seller_id)

    async def list_wallet_transactions(
        self,
        seller_id: str,
        limit: int = 20,
        offset: int = 0,
    ) -> list[WalletTransactionRecord]:
        async with self.unit_of_work() as uow:
            return await uow.wallets.list_transactions(seller_id, limit, offset)

    # ------------------------------------------------------------------
    # Internals

    async def _complete(
        self,
        uow: UnitOfWork,
        order: OrderModel,
        transition: Transition,
        *,
        reason: str,
        where: Optional[dict[str, Any]] = None,
    ) -> OrderRecord:
        if order.seller_net_cents <= 0:
            raise InvalidAmountError(f"order {order.id} has no seller net to credit")
        seller_id, amount, currency = order.seller_id, order.seller_net_cents, order.currency

        async def credit_wallet(uow: UnitOfWork, model: OrderModel) -> None:
            await uow.wallets.credit_pending(seller_id, amount, order_id=model.id, currency=currency)

        updated = await guarded_transition(
            uow,
            order.id,
            transition,
            values={"completed_at": self.clock(), "wallet_credited": True},
            where={"wallet_credited": False, **(where or {})},
            side_effect=credit_wallet,
        )
        logger.info("Order %s completed (%s); %s cents pending for seller %s", order.id, reason, amount, seller_id)
        return OrderRecord.from_model(updated)

    async def _check_refund_guards(self, uow: UnitOfWork, order: OrderRecord, amount: int) -> None:
        if not order.processor_charge_ref:
            raise InvalidTransitionError(f"order {order.id} has no processor charge to refund")
        if amount <= 0:
            raise InvalidAmountError(f"refund amount for order {order.id} must be positive")
        if order.wallet_credited:
            wallet = await uow.wallets.get_wallet(order.seller_id)
            self._check_wallet_ready(wallet, order)
            if wallet.pending_cents < order.seller_net_cents:
                raise InsufficientFundsError(
                    f"seller pending balance {wallet.pending_cents} cannot cover reversal of {order.seller_net_cents}"
                )

    async def _check_release_guards(self, uow: UnitOfWork, order: OrderRecord, *, needs_pending: bool) -> WalletSnapshot:
        if order.seller_net_cents <= 0:
            raise InvalidAmountError(f"order {order.id} has no seller net to release")
        if order.seller_net_cents > order.total_cents:
            raise InvalidAmountError(
                f"seller net {order.seller_net_cents} for order {order.id} exceeds the {order.total_cents} cents held"
            )
        wallet = await uow.wallets.get_wallet(order.seller_id)
        if wallet is None or not wallet.payout_account_ref:
            raise InvalidTransitionError(f"seller {order.seller_id} has no payout account to release to")
        self._check_wallet_ready(wallet, order)
        if needs_pending and wallet.pending_cents < order.seller_net_cents:
            raise InsufficientFundsError(
                f"seller pending balance {wallet.pending_cents} cannot cover release of {order.seller_net_cents}"
            )
        return wallet

    @staticmethod
    def _check_wallet_ready(wallet: Optional[WalletSnapshot], order: OrderRecord) -> None:
        if wallet is None:
            raise NotFoundError(f"wallet for seller {order.seller_id} not found")
        if wallet.payout_locked:
            raise ResourceLockedError("wallet busy: a payout is in flight; retry later")

    async def _refund(self, order: OrderRecord, amount: int, key: str) -> RefundReceipt:
        try:
            receipt = await self.ledger.refund(order.processor_charge_ref, amount, idempotency_key=key)
        except LedgerError as exc:
            raise ExternalLedgerError(f"refund for order {order.id} failed: {exc}") from exc
        if receipt.status not in _REFUND_OK_STATUSES:
            raise ExternalLedgerError(f"refund {receipt.refund_id} for order {order.id} ended as {receipt.status}")
        logger.info("Refunded %s cents on order %s (refund %s)", amount, order.id, receipt.refund_id)
        return receipt

    async def _transfer(self, order: OrderRecord, wallet: WalletSnapshot, key: str) -> TransferReceipt:
        amount = order.seller_net_cents
        try:
            balance = await self.ledger.available_balance(order.currency)
            if balance < amount:
                raise ExternalLedgerError(
                    f"platform balance {balance} cannot cover transfer of {amount}; retry later",
                    data={"available_cents": balance},
                )
            receipt = await self.ledger.transfer(
                amount,
                wallet.payout_account_ref,
                idempotency_key=key,
                metadata={"order_id": order.id, "seller_id": order.seller_id},
                currency=order.currency,
            )
        except LedgerError as exc:
            raise ExternalLedgerError(f"transfer for order {order.id} failed: {exc}") from exc
        logger.info("Transferred %s cents to seller %s for order %s (transfer %s)", amount, order.seller_id, order.id, receipt.transfer_id)
        return receipt

    async def _commit_refund(
        self,
        order: OrderRecord,
        refund: RefundReceipt,
        transition: Transition,
        *,
        extra_values: Optional[dict[str, Any]] = None,
        extra_where: Optional[dict[str, Any]] = None,
        extra_effect: Optional[SideEffect] = None,
        entity: Optional[tuple[EntityType, str]] = None,
    ) -> OrderRecord:
        credited = order.wallet_credited

        async def reverse_and_record(uow: UnitOfWork, model: OrderModel) -> None:
            if credited:
                await uow.wallets.reverse_pending(order.seller_id, order.seller_net_cents, order_id=order.id)
            if extra_effect is not None:
                await extra_effect(uow, model)

        async def commit() -> OrderModel:
            async with self.unit_of_work() as uow:
                return await guarded_transition(
                    uow,
                    order.id,
                    transition,
                    values={
                        "processor_refund_ref": refund.refund_id,
                        "refunded_at": self.clock(),
                        "wallet_credited": False,
                        **(extra_values or {}),
                    },
                    where={"wallet_credited": credited, **(extra_where or {})},
                    side_effect=reverse_and_record,
                )

        updated = await self._commit_or_reconcile(
            commit,
            operation=transition.name,
            order_id=order.id,
            external_ref=refund.refund_id,
            stored_ref=lambda model: model.processor_refund_ref,
            entity=entity,
        )
        if credited:
            logger.info("Reversed %s pending cents for seller %s (order %s)", order.seller_net_cents, order.seller_id, order.id)
        return OrderRecord.from_model(updated)

    async def _commit_dispute_release(
        self,
        order: OrderRecord,
        transfer: TransferReceipt,
        close_dispute: SideEffect,
        dispute_id: str,
    ) -> OrderRecord:
        credited = order.wallet_credited

        async def credit_and_record(uow: UnitOfWork, model: OrderModel) -> None:
            if credited:
                await uow.wallets.release_pending(order.seller_id, order.seller_net_cents, order_id=order.id)
            else:
                await uow.wallets.credit_available(
                    order.seller_id,
                    order.seller_net_cents,
                    order_id=order.id,
                    currency=order.currency,
                )
            await close_dispute(uow, model)

        async def commit() -> OrderModel:
            now = self.clock()
            async with self.unit_of_work() as uow:
                return await guarded_transition(
                    uow,
                    order.id,
                    DISPUTE_RELEASE,
                    values={
                        "processor_transfer_ref": transfer.transfer_id,
                        "released_at": now,
                        "completed_at": now,
                        "wallet_credited": True,
                    },
                    where={"wallet_credited": credited},
                    side_effect=credit_and_record,
                )

        updated = await self._commit_or_reconcile(
            commit,
            operation=DISPUTE_RELEASE.name,
            order_id=order.id,
            external_ref=transfer.transfer_id,
            stored_ref=lambda model: model.processor_transfer_ref,
            entity=(EntityType.DISPUTE, dispute_id),
        )
        return OrderRecord.from_model(updated)

    async def _commit_or_reconcile(
        self,
        commit: Callable[[], Awaitable[OrderModel]],
        *,
        operation: str,
        order_id: str,
        external_ref: str,
        stored_ref: Callable[[OrderModel], Optional[str]],
        entity: Optional[tuple[EntityType, str]] = None,
    ) -> OrderModel:
        try:
            return await commit()
        except AlreadyProcessedError as exc:
            # A concurrent request carrying the same idempotency key already
            # committed this exact external effect.
            async with self.unit_of_work() as uow:
                current = await uow.orders.get(order_id)
            if current is not None and stored_ref(current) == external_ref:
                raise
            failure: Exception = exc
        except ResourceLockedError:
            # Nothing was written; a retry repeats the processor call under the
            # same idempotency key and gets the same receipt back.
            logger.warning(
                "%s for order %s hit a payout lock after the processor accepted %s; retry required",
                operation,
                order_id,
                external_ref,
            )
            raise
        except Exception as exc:
            failure = exc

        entity_type, entity_id = entity or (EntityType.ORDER, order_id)
        await self.reconciliation.record(
            entity_type=entity_type,
            entity_id=entity_id,
            operation=operation,
            external_ref=external_ref,
            detail=f"{type(failure).__name__}: {failure}",
            order_id=order_id,
        )
        raise ReconciliationRequiredError(
            f"{operation} succeeded at the processor ({external_ref}) but could not be recorded; flagged for review",
            data={"order_id": order_id, "external_ref": external_ref},
        ) from failure

    async def _load_order(self, uow: UnitOfWork, order_id: str) -> OrderModel:
        order = await uow.orders.get(order_id)
        if order is None:
            raise NotFoundError(f"order {order_id} not found")
        return order

    async def _load_dispute(self, uow: UnitOfWork, dispute_id: str) -> DisputeRecord:
        dispute = await uow.disputes.get(dispute_id)
        if dispute is None:
            raise NotFoundError(f"dispute {dispute_id} not found")
        return DisputeRecord.from_model(dispute)

    @staticmethod
    def _party_of(order: OrderModel, caller_id: str) -> DisputeParty:
        if caller_id == order.buyer_id:
            return DisputeParty.BUYER
        if caller_id == order.seller_id:
            return DisputeParty.SELLER
        raise ForbiddenError("not a party to this order")

    @classmethod
    def _require_party(cls, order: OrderModel, caller_id: str, party: DisputeParty) -> None:
        if cls._party_of(order, caller_id) is not party:
            raise ForbiddenError(f"only the {party} may do this")

    @staticmethod
    def _require_admin(caller: Caller) -> None:
        if not caller.is_admin:
            raise ForbiddenError("admin privileges required")

    async def _notify_completed(self, record: OrderRecord) -> None:
        await self._notify(
            NotificationKind.ORDER_COMPLETED,
            record.seller_id,
            "Order completed",
            f"Order #{record.display_number} is complete. "
            f"{record.seller_net_cents / 100:.2f} {record.currency.upper()} was added to your pending balance.",
            order_id=record.id,
            amount_cents=record.seller_net_cents,
        )

    async def _notify(
        self,
        kind: NotificationKind,
        recipient_id: str,
        title: str,
        body: str,
        *,
        order_id: Optional[str] = None,
        **data: Any,
    ) -> None:
        event = NotificationEvent(kind=kind, recipient_id=recipient_id, title=title, body=body, order_id=order_id, data=data)
        try:
            await self.notifier.publish(event)
        except Exception:
            logger.warning("Notifier failed for %s to %s", kind, recipient_id, exc_info=True)
