"""Contract for the external payment processor ledger.

The processor is an unreliable remote: a call may succeed, fail, or leave its
outcome unknown. Adapters raise ``LedgerError`` for definite failures and
``LedgerAmbiguousError`` when the outcome cannot be determined (timeouts,
dropped connections). Both leave local state untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Protocol


class LedgerError(Exception):
    """The processor rejected the call."""


class LedgerAmbiguousError(LedgerError):
    """The processor may or may not have applied the call."""


@dataclass(slots=True, frozen=True)
class RefundReceipt:
    refund_id: str
    status: str
    amount_cents: int


@dataclass(slots=True, frozen=True)
class TransferReceipt:
    transfer_id: str
    amount_cents: int
    destination_account_ref: str


@dataclass(slots=True, frozen=True)
class PayoutReceipt:
    payout_id: str
    status: str
    amount_cents: int


class LedgerClient(Protocol):
    async def refund(self, charge_ref: str, amount_cents: int, *, idempotency_key: str) -> RefundReceipt:
        ...

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
        ...

    async def payout(
        self,
        amount_cents: int,
        destination_account_ref: str,
        method: str,
        *,
        currency: str = "usd",
        idempotency_key: Optional[str] = None,
    ) -> PayoutReceipt:
        ...

    async def available_balance(self, currency: str = "usd") -> int:
        """Platform balance available for transfers, in cents."""
        ...
