from fastapi import APIRouter, Depends, HTTPException

from escrow.domain.common import Caller
from escrow.domain.exceptions import ForbiddenError
from escrow.domain.settlement import SettlementEngine
from escrow.interfaces.http.deps import get_current_caller, get_settlement_engine
from escrow.interfaces.http.results import unwrap
from escrow.schemas import DisputeActionResponse, DisputeReply, DisputeResponse

from .orders import dispute_action

router = APIRouter()


@router.get("/{dispute_id}", response_model=DisputeResponse, summary="Dispute details")
async def get_dispute(
    dispute_id: str,
    caller: Caller = Depends(get_current_caller),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    try:
        dispute = await engine.get_dispute(dispute_id, caller)
    except ForbiddenError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    if dispute is None:
        raise HTTPException(status_code=404, detail="Dispute not found")
    return DisputeResponse.model_validate(dispute)


@router.post("/{dispute_id}/responses", response_model=DisputeActionResponse, summary="Add a party's response")
async def respond_to_dispute(
    dispute_id: str,
    payload: DisputeReply,
    caller: Caller = Depends(get_current_caller),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    result = await engine.respond_to_dispute(
        dispute_id,
        caller.user_id,
        payload.response,
        evidence_urls=payload.evidence_urls,
    )
    return dispute_action(unwrap(result))
