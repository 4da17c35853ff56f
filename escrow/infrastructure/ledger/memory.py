"""In-process ledger used in development and tests."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from escrow.domain.ledger import LedgerError, PayoutReceipt, RefundReceipt, TransferReceipt

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LedgerCall:
    kind: str
    amount_cents: int
    reference: str
    idempotency_key: Optional[str]
    receipt: Any
    extra: dict[str, Any] = field(default_factory=dict)


class InMemoryLedgerClient:
    """Records every call and honours idempotency keys like the real processor.

    ``fail_next`` queues an exception for the next call of a given kind
    (``"refund"``, ``"transfer"``, ``"payout"``, ``"balance"``).
    """

    def __init__(self, *, platform_balance_cents: int = 10_000_000, refund_status: str = "succeeded") -> None:
        self.platform_balance_cents = platform_balance_cents
        self.refund_status = refund_status
        self.calls: list[LedgerCall] = []
        self._by_key: dict[str, Any] = {}
        self._failures: dict[str, list[Exception]] = {}
        self._lock = asyncio.Lock()

    def fail_next(self, kind: str, error: Optional[Exception] = None) -> None:
        self._failures.setdefault(kind, []).append(error or LedgerError(f"injected {kind} failure"))

    def calls_of(self, kind: str) -> list[LedgerCall]:
        return [call for call in self.calls if call.kind == kind]

    async def refund(self, charge_ref: str, amount_cents: int, *, idempotency_key: str) -> RefundReceipt:
        async with self._lock:
            self._maybe_fail("refund")
            if idempotency_key in self._by_key:
                return self._by_key[idempotency_key]
            receipt = RefundReceipt(refund_id=f"re_{uuid.uuid4().hex[:16]}", status=self.refund_status, amount_cents=amount_cents)
            self._record("refund", amount_cents, charge_ref, idempotency_key, receipt)
            return receipt

    async def transfer(
        self,
        amount_cents: int,
        destination_account_ref: str,
        *,
        source_ref: Optional[str] = None,
        idempotency_key: Optional[str] = None,
        metadata: Optional[Mapping[str, str]] = None,
        currency: str = "usd",
    ) -> TransferReceipt:
        async with self._lock:
            self._maybe_fail("transfer")
            if idempotency_key and idempotency_key in self._by_key:
                return self._by_key[idempotency_key]
            receipt = TransferReceipt(
                transfer_id=f"tr_{uuid.uuid4().hex[:16]}",
                amount_cents=amount_cents,
                destination_account_ref=destination_account_ref,
            )
            if source_ref is None:
                self.platform_balance_cents -= amount_cents
            self._record(
                "transfer",
                amount_cents,
                destination_account_ref,
                idempotency_key,
                receipt,
                source_ref=source_ref,
                metadata=dict(metadata or {}),
            )
            return receipt

    async def payout(
        self,
        amount_cents: int,
        destination_account_ref: str,
        method: str,
        *,
        currency: str = "usd",
        idempotency_key: Optional[str] = None,
    ) -> PayoutReceipt:
        async with self._lock:
            self._maybe_fail("payout")
            if idempotency_key and idempotency_key in self._by_key:
                return self._by_key[idempotency_key]
            receipt = PayoutReceipt(payout_id=f"po_{uuid.uuid4().hex[:16]}", status="paid", amount_cents=amount_cents)
            self._record("payout", amount_cents, destination_account_ref, idempotency_key, receipt, method=method)
            return receipt

    async def available_balance(self, currency: str = "usd") -> int:
        self._maybe_fail("balance")
        return self.platform_balance_cents

    def _maybe_fail(self, kind: str) -> None:
        queued = self._failures.get(kind)
        if queued:
            raise queued.pop(0)

    def _record(
        self,
        kind: str,
        amount_cents: int,
        reference: str,
        idempotency_key: Optional[str],
        receipt: Any,
        **extra: Any,
    ) -> None:
        if idempotency_key:
            self._by_key[idempotency_key] = receipt
        self.calls.append(LedgerCall(kind, amount_cents, reference, idempotency_key, receipt, extra))
        logger.debug("Ledger %s of %s to %s (%s)", kind, amount_cents, reference, idempotency_key)
