"""Payout executor.

The wallet lock is taken before the processor is called and held across the
call, so a second request for the same seller is refused outright instead of
being interleaved. The lock is always released afterwards, whatever happened.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional

from escrow.core.config import SettlementSettings
from escrow.domain.common import UnitOfWorkFactory
from escrow.domain.exceptions import (
    ExternalLedgerError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidTransitionError,
    NotFoundError,
    ReconciliationRequiredError,
    ResourceLockedError,
)
from escrow.domain.ledger import LedgerClient, LedgerError, PayoutReceipt
from escrow.domain.notifications import NotificationEvent, NotificationKind, Notifier
from escrow.domain.reconciliation import EntityType, ReconciliationService
from escrow.domain.results import operation
from escrow.domain.wallets import WalletSnapshot

from .fees import quote_payout
from .models import PayoutMethod, PayoutQuote, PayoutRecord

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PayoutExecutor:
    unit_of_work: UnitOfWorkFactory
    ledger: LedgerClient
    settings: SettlementSettings
    notifier: Optional[Notifier] = None
    reconciliation: ReconciliationService = field(init=False)

    def __post_init__(self) -> None:
        self.reconciliation = ReconciliationService(self.unit_of_work)

    @operation("request_payout")
    async def request_payout(
        self,
        seller_id: str,
        amount_cents: Optional[int] = None,
        method: PayoutMethod | str = PayoutMethod.STANDARD,
    ) -> PayoutRecord:
        try:
            method = PayoutMethod(method)
        except ValueError as exc:
            raise InvalidAmountError(f"unknown payout method {method!r}") from exc

        wallet, quote = await self._lock_and_quote(seller_id, amount_cents, method)
        attempt = uuid.uuid4().hex
        logger.info(
            "Payout %s for seller %s: gross=%s fee=%s net=%s method=%s",
            attempt,
            seller_id,
            quote.gross_cents,
            quote.fee_cents,
            quote.net_cents,
            method,
        )

        fee_ref: Optional[str] = None
        try:
            if quote.fee_cents > 0:
                fee_receipt = await self.ledger.transfer(
                    quote.fee_cents,
                    self.settings.platform_account_ref,
                    source_ref=wallet.payout_account_ref,
                    idempotency_key=f"fee:{attempt}",
                    metadata={"seller_id": seller_id, "type": "instant_payout_fee"},
                    currency=wallet.currency,
                )
                fee_ref = fee_receipt.transfer_id
            receipt = await self.ledger.payout(
                quote.net_cents,
                wallet.payout_account_ref,
                str(method),
                currency=wallet.currency,
                idempotency_key=f"payout:{attempt}",
            )
        except LedgerError as exc:
            await self._release_lock(seller_id)
            if fee_ref is not None:
                await self.reconciliation.record(
                    entity_type=EntityType.PAYOUT,
                    entity_id=seller_id,
                    operation="instant_payout_fee",
                    external_ref=fee_ref,
                    detail=f"fee of {quote.fee_cents} collected but payout failed: {exc}",
                )
                raise ReconciliationRequiredError(
                    "payout failed after the fee was collected; flagged for review",
                    data={"fee_transfer_ref": fee_ref},
                ) from exc
            raise ExternalLedgerError(f"payout failed: {exc}") from exc
        except Exception:
            await self._release_lock(seller_id)
            raise

        record = await self._commit(seller_id, wallet, quote, method, receipt, fee_ref)
        await self._notify(record)
        return record

    async def list_payouts(self, seller_id: str, limit: int = 20, offset: int = 0) -> list[PayoutRecord]:
        async with self.unit_of_work() as uow:
            rows = await uow.payouts.list_for_seller(seller_id, limit, offset)
            return [PayoutRecord.from_model(row) for row in rows]

    async def _lock_and_quote(
        self,
        seller_id: str,
        amount_cents: Optional[int],
        method: PayoutMethod,
    ) -> tuple[WalletSnapshot, PayoutQuote]:
        # Any failure after the lock rolls the lock back with the transaction.
        async with self.unit_of_work() as uow:
            wallet = await uow.wallets.get_wallet(seller_id)
            if wallet is None:
                raise NotFoundError(f"wallet for seller {seller_id} not found")
            if wallet.payout_locked:
                raise ResourceLockedError("wallet busy: a payout is already in flight")
            await uow.wallets.lock_for_payout(seller_id)
            wallet = await uow.wallets.get_wallet(seller_id)
            quote = self._quote(wallet, amount_cents, method)
        return wallet, quote

    def _quote(self, wallet: WalletSnapshot, amount_cents: Optional[int], method: PayoutMethod) -> PayoutQuote:
        if not wallet.payout_account_ref:
            raise InvalidAmountError("no payout account on file")
        gross = wallet.available_cents if method is PayoutMethod.INSTANT else amount_cents
        if not isinstance(gross, int) or isinstance(gross, bool) or gross <= 0:
            raise InvalidAmountError("payout amount must be a positive number of cents")
        if gross > wallet.available_cents:
            raise InsufficientFundsError(
                f"requested {gross} but only {wallet.available_cents} available",
                data={"available_cents": wallet.available_cents},
            )
        quote = quote_payout(gross, method, self.settings)
        if quote.net_cents <= 0:
            raise InvalidAmountError(f"payout of {gross} does not cover the {quote.fee_cents} fee")
        if quote.fee_cents > 0 and not self.settings.platform_account_ref:
            raise InvalidTransitionError("instant payouts are not available: no platform account configured")
        return quote

    async def _commit(
        self,
        seller_id: str,
        wallet: WalletSnapshot,
        quote: PayoutQuote,
        method: PayoutMethod,
        receipt: PayoutReceipt,
        fee_ref: Optional[str],
    ) -> PayoutRecord:
        try:
            async with self.unit_of_work() as uow:
                payout = await uow.payouts.create(
                    seller_id=seller_id,
                    gross_cents=quote.gross_cents,
                    fee_cents=quote.fee_cents,
                    net_cents=quote.net_cents,
                    method=method,
                    currency=wallet.currency,
                    external_payout_ref=receipt.payout_id,
                    fee_transfer_ref=fee_ref,
                    status=receipt.status,
                )
                await uow.wallets.debit_available(
                    seller_id,
                    quote.gross_cents,
                    payout_id=payout.id,
                    description=f"{method.capitalize()} payout",
                )
                await uow.wallets.unlock(seller_id)
                record = PayoutRecord.from_model(payout)
        except Exception as exc:
            await self._release_lock(seller_id)
            await self.reconciliation.record(
                entity_type=EntityType.PAYOUT,
                entity_id=seller_id,
                operation="payout",
                external_ref=receipt.payout_id,
                detail=f"payout of {quote.net_cents} sent but not recorded: {exc}",
            )
            raise ReconciliationRequiredError(
                "payout was sent but could not be recorded; flagged for review",
                data={"external_payout_ref": receipt.payout_id},
            ) from exc

        logger.info(
            "Payout %s recorded for seller %s (external %s)",
            record.id,
            seller_id,
            receipt.payout_id,
        )
        return record

    async def _release_lock(self, seller_id: str) -> None:
        try:
            async with self.unit_of_work() as uow:
                await uow.wallets.unlock(seller_id)
        except Exception:
            logger.exception("Failed to release payout lock for seller %s", seller_id)

    async def _notify(self, record: PayoutRecord) -> None:
        if self.notifier is None:
            return
        event = NotificationEvent(
            kind=NotificationKind.PAYOUT_SENT,
            recipient_id=record.seller_id,
            title="Payout on the way",
            body=f"{record.net_cents / 100:.2f} {record.currency.upper()} is on its way to your account.",
            data={"payout_id": record.id, "method": str(record.method), "fee_cents": record.fee_cents},
        )
        try:
            await self.notifier.publish(event)
        except Exception:
            logger.warning("Notifier failed for payout %s", record.id, exc_info=True)
