"""Payout fee policy."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from escrow.core.config import SettlementSettings

from .models import PayoutMethod, PayoutQuote


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def payout_fee(amount_cents: int, method: PayoutMethod, settings: SettlementSettings) -> int:
    """Standard payouts are free; instant ones pay ``rate`` clamped to [min, max]."""
    if method is PayoutMethod.STANDARD:
        return 0
    fee = round_half_up(Decimal(amount_cents) * settings.instant_fee_rate)
    return max(settings.instant_fee_min_cents, min(fee, settings.instant_fee_max_cents))


def quote_payout(amount_cents: int, method: PayoutMethod, settings: SettlementSettings) -> PayoutQuote:
    return PayoutQuote(gross_cents=amount_cents, fee_cents=payout_fee(amount_cents, method, settings))
