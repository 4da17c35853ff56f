"""Inbound payment processor events.

Signature verification happens upstream; events reaching this router are trusted.
"""

from fastapi import APIRouter, Depends

from escrow.domain.settlement import SettlementEngine
from escrow.interfaces.http.deps import get_settlement_engine
from escrow.interfaces.http.results import unwrap
from escrow.schemas import OrderActionResponse, PaymentConfirmedEvent

from .orders import order_action

router = APIRouter()


@router.post("/payment-confirmed", response_model=OrderActionResponse, summary="Payment succeeded for an order")
async def payment_confirmed(
    event: PaymentConfirmedEvent,
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    result = await engine.confirm_payment(event.order_id, event.charge_ref, event.amount_cents)
    return order_action(unwrap(result))
