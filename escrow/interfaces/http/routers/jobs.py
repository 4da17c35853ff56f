"""Scheduler entry points.

The scheduler calls these by order id when a timer fires; all of them tolerate
being called again after the work is done.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends

from escrow.domain.orders import OrderRecord
from escrow.domain.results import OperationResult
from escrow.domain.settlement import SettlementEngine
from escrow.interfaces.http.deps import get_current_admin, get_settlement_engine
from escrow.interfaces.http.results import unwrap
from escrow.schemas import JobRequest, JobResponse, OrderResponse

router = APIRouter(dependencies=[Depends(get_current_admin)])


def job_response(result: OperationResult) -> JobResponse:
    data = result.data
    if isinstance(data, OrderRecord):
        data = OrderResponse.model_validate(data).model_dump(mode="json")
    return JobResponse(already_processed=result.already_processed, message=result.message, data=data)


@router.post("/orders/{order_id}/auto-complete", response_model=JobResponse)
async def auto_complete(
    order_id: str,
    payload: Optional[JobRequest] = Body(None),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    now = payload.now if payload else None
    return job_response(unwrap(await engine.attempt_auto_complete(order_id, now=now)))


@router.post("/orders/{order_id}/expire-return", response_model=JobResponse)
async def expire_return(
    order_id: str,
    payload: Optional[JobRequest] = Body(None),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    now = payload.now if payload else None
    return job_response(unwrap(await engine.expire_return(order_id, now=now)))


@router.post("/orders/{order_id}/remind", response_model=JobResponse)
async def send_reminder(order_id: str, engine: SettlementEngine = Depends(get_settlement_engine)):
    return job_response(unwrap(await engine.send_completion_reminder(order_id)))


@router.post("/orders/{order_id}/release", response_model=JobResponse)
async def release_escrow(order_id: str, engine: SettlementEngine = Depends(get_settlement_engine)):
    return job_response(unwrap(await engine.release_escrow(order_id)))
