"""Payout domain exports"""

from .fees import payout_fee, quote_payout, round_half_up
from .models import PayoutMethod, PayoutQuote, PayoutRecord
from .repository import PayoutRepository
from .service import PayoutExecutor

__all__ = [
    "PayoutExecutor",
    "PayoutMethod",
    "PayoutQuote",
    "PayoutRecord",
    "PayoutRepository",
    "payout_fee",
    "quote_payout",
    "round_half_up",
]
