"""Stripe Connect adapter for the payment processor ledger."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Mapping, Optional

import stripe

from escrow.core.config import LedgerSettings
from escrow.domain.ledger import (
    LedgerAmbiguousError,
    LedgerError,
    PayoutReceipt,
    RefundReceipt,
    TransferReceipt,
)

logger = logging.getLogger(__name__)


class StripeLedgerClient:
    """Runs the blocking Stripe SDK calls on a worker thread.

    Connection failures and timeouts are reported as ``LedgerAmbiguousError``:
    the request may have reached Stripe, and only the idempotency key makes a
    retry safe.
    """

    def __init__(self, settings: LedgerSettings) -> None:
        if not settings.stripe_secret_key:
            raise ValueError("ledger.stripe_secret_key is required for the stripe provider")
        self._api_key = settings.stripe_secret_key
        self._api_version = settings.stripe_api_version

    async def refund(self, charge_ref: str, amount_cents: int, *, idempotency_key: str) -> RefundReceipt:
        params: dict[str, Any] = {"amount": amount_cents, "idempotency_key": idempotency_key}
        if charge_ref.startswith("pi_"):
            params["payment_intent"] = charge_ref
        else:
            params["charge"] = charge_ref
        refund = await self._call("refund", stripe.Refund.create, **params)
        return RefundReceipt(refund_id=refund["id"], status=refund["status"], amount_cents=refund["amount"])

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
        params: dict[str, Any] = {
            "amount": amount_cents,
            "currency": currency,
            "destination": destination_account_ref,
            "metadata": dict(metadata or {}),
        }
        if source_ref:
            # Funds move out of a connected account back to the platform.
            params["stripe_account"] = source_ref
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        transfer = await self._call("transfer", stripe.Transfer.create, **params)
        return TransferReceipt(
            transfer_id=transfer["id"],
            amount_cents=transfer["amount"],
            destination_account_ref=destination_account_ref,
        )

    async def payout(
        self,
        amount_cents: int,
        destination_account_ref: str,
        method: str,
        *,
        currency: str = "usd",
        idempotency_key: Optional[str] = None,
    ) -> PayoutReceipt:
        params: dict[str, Any] = {
            "amount": amount_cents,
            "currency": currency,
            "method": method,
            "stripe_account": destination_account_ref,
        }
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        payout = await self._call("payout", stripe.Payout.create, **params)
        return PayoutReceipt(payout_id=payout["id"], status=payout["status"], amount_cents=payout["amount"])

    async def available_balance(self, currency: str = "usd") -> int:
        balance = await self._call("balance", stripe.Balance.retrieve)
        return sum(entry["amount"] for entry in balance["available"] if entry["currency"] == currency)

    async def _call(self, name: str, func: Callable[..., Any], **params: Any) -> Any:
        params["api_key"] = self._api_key
        if self._api_version:
            params["stripe_version"] = self._api_version
        try:
            return await asyncio.to_thread(func, **params)
        except stripe.APIConnectionError as exc:
            logger.warning("Stripe %s outcome unknown: %s", name, exc)
            raise LedgerAmbiguousError(f"stripe {name} outcome unknown: {exc}") from exc
        except stripe.StripeError as exc:
            logger.warning("Stripe %s failed: %s", name, exc)
            raise LedgerError(f"stripe {name} failed: {exc.user_message or exc}") from exc
