"""Buyer and seller order actions."""

from fastapi import APIRouter, Depends, HTTPException

from escrow.domain.common import Caller
from escrow.domain.disputes import DisputeRecord
from escrow.domain.exceptions import ForbiddenError
from escrow.domain.orders import NewOrder, OrderRecord
from escrow.domain.results import OperationResult
from escrow.domain.settlement import SettlementEngine
from escrow.interfaces.http.deps import get_current_admin, get_current_caller, get_settlement_engine
from escrow.interfaces.http.results import unwrap
from escrow.schemas import (
    DisputeActionResponse,
    DisputeCreate,
    DisputeResponse,
    IssueCreate,
    OrderActionResponse,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    ReturnCreate,
    ReturnTrackingRequest,
    ShipRequest,
)

router = APIRouter()


def order_action(result: OperationResult) -> OrderActionResponse:
    order = OrderResponse.model_validate(result.data) if isinstance(result.data, OrderRecord) else None
    return OrderActionResponse(already_processed=result.already_processed, message=result.message, order=order)


def dispute_action(result: OperationResult) -> DisputeActionResponse:
    dispute = DisputeResponse.model_validate(result.data) if isinstance(result.data, DisputeRecord) else None
    return DisputeActionResponse(already_processed=result.already_processed, message=result.message, dispute=dispute)


@router.post("", response_model=OrderActionResponse, status_code=201, summary="Create an order at checkout")
async def create_order(
    payload: OrderCreate,
    caller: Caller = Depends(get_current_caller),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    new_order = NewOrder(buyer_id=caller.user_id, **payload.model_dump())
    return order_action(unwrap(await engine.create_order(new_order)))


@router.get("", response_model=OrderListResponse, summary="Orders the caller bought or sold")
async def list_orders(
    skip: int = 0,
    limit: int = 20,
    caller: Caller = Depends(get_current_caller),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    orders = await engine.list_orders(caller.user_id, limit=min(limit, 100), offset=skip)
    return OrderListResponse(orders=[OrderResponse.model_validate(order) for order in orders])


@router.get("/{order_id}", response_model=OrderResponse, summary="Order details")
async def get_order(
    order_id: str,
    caller: Caller = Depends(get_current_caller),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    try:
        order = await engine.get_order(order_id, caller)
    except ForbiddenError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/cancel-payment", response_model=OrderActionResponse, summary="Abandon an unpaid order")
async def cancel_unpaid_order(
    order_id: str,
    caller: Caller = Depends(get_current_caller),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    return order_action(unwrap(await engine.cancel_unpaid_order(order_id, caller.user_id)))


@router.post("/{order_id}/cancel", response_model=OrderActionResponse, summary="Cancel a paid order before it ships")
async def cancel_paid_order(
    order_id: str,
    caller: Caller = Depends(get_current_caller),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    return order_action(unwrap(await engine.cancel_paid_order(order_id, caller.user_id)))


@router.post("/{order_id}/ship", response_model=OrderActionResponse, summary="Seller marks the order shipped")
async def mark_shipped(
    order_id: str,
    payload: ShipRequest,
    caller: Caller = Depends(get_current_caller),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    return order_action(unwrap(await engine.mark_shipped(order_id, caller.user_id, payload.tracking_ref)))


@router.post("/{order_id}/deliver", response_model=OrderActionResponse, summary="Carrier reported delivery")
async def mark_delivered(
    order_id: str,
    _: Caller = Depends(get_current_admin),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    return order_action(unwrap(await engine.mark_delivered(order_id)))


@router.post("/{order_id}/complete", response_model=OrderActionResponse, summary="Buyer confirms the order")
async def confirm_completion(
    order_id: str,
    caller: Caller = Depends(get_current_caller),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    return order_action(unwrap(await engine.buyer_confirm_completion(order_id, caller.user_id)))


@router.post("/{order_id}/issues", response_model=OrderActionResponse, summary="Buyer reports a problem")
async def report_issue(
    order_id: str,
    payload: IssueCreate,
    caller: Caller = Depends(get_current_caller),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    return order_action(unwrap(await engine.report_issue(order_id, caller.user_id, payload.reason)))


@router.post("/{order_id}/disputes", response_model=DisputeActionResponse, status_code=201, summary="Open a dispute")
async def open_dispute(
    order_id: str,
    payload: DisputeCreate,
    caller: Caller = Depends(get_current_caller),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    result = await engine.open_dispute(
        order_id,
        caller.user_id,
        payload.reason,
        description=payload.description,
        evidence_urls=payload.evidence_urls,
    )
    return dispute_action(unwrap(result))


@router.post("/{order_id}/returns", response_model=OrderActionResponse, summary="Buyer starts a return")
async def start_return(
    order_id: str,
    payload: ReturnCreate,
    caller: Caller = Depends(get_current_caller),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    result = await engine.start_return(
        order_id,
        caller.user_id,
        payload.reason,
        notes=payload.notes,
        tracking_ref=payload.tracking_ref,
    )
    return order_action(unwrap(result))


@router.post("/{order_id}/returns/tracking", response_model=OrderActionResponse, summary="Buyer ships the return")
async def submit_return_tracking(
    order_id: str,
    payload: ReturnTrackingRequest,
    caller: Caller = Depends(get_current_caller),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    return order_action(unwrap(await engine.submit_return_tracking(order_id, caller.user_id, payload.tracking_ref)))


@router.post("/{order_id}/returns/received", response_model=OrderActionResponse, summary="Seller received the return")
async def confirm_return_received(
    order_id: str,
    caller: Caller = Depends(get_current_caller),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    return order_action(unwrap(await engine.confirm_return_received(order_id, caller.user_id)))
