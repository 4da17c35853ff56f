"""Operator endpoints: dispute review and reconciliation."""

from typing import Optional

from fastapi import APIRouter, Depends

from escrow.domain.common import Caller
from escrow.domain.disputes import OPEN_DISPUTE_STATUSES, DisputeStatus
from escrow.domain.reconciliation import CaseStatus, ReconciliationService
from escrow.domain.settlement import SettlementEngine
from escrow.interfaces.http.deps import get_current_admin, get_reconciliation_service, get_settlement_engine
from escrow.interfaces.http.results import unwrap
from escrow.schemas import (
    DisputeActionResponse,
    DisputeListResponse,
    DisputeResolveRequest,
    DisputeResponse,
    ReconciliationCaseResponse,
    ReconciliationListResponse,
)

from .orders import dispute_action

router = APIRouter(dependencies=[Depends(get_current_admin)])


@router.get("/disputes", response_model=DisputeListResponse, summary="Disputes awaiting a decision")
async def list_disputes(
    status: Optional[DisputeStatus] = None,
    skip: int = 0,
    limit: int = 50,
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    statuses = [status] if status else sorted(OPEN_DISPUTE_STATUSES)
    disputes = await engine.list_disputes(statuses, limit=min(limit, 200), offset=skip)
    return DisputeListResponse(disputes=[DisputeResponse.model_validate(dispute) for dispute in disputes])


@router.post("/disputes/{dispute_id}/review", response_model=DisputeActionResponse, summary="Take a dispute under review")
async def review_dispute(
    dispute_id: str,
    admin: Caller = Depends(get_current_admin),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    return dispute_action(unwrap(await engine.mark_dispute_under_review(dispute_id, admin)))


@router.post("/disputes/{dispute_id}/resolve", response_model=DisputeActionResponse, summary="Decide a dispute")
async def resolve_dispute(
    dispute_id: str,
    payload: DisputeResolveRequest,
    admin: Caller = Depends(get_current_admin),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    result = await engine.resolve_dispute(dispute_id, payload.outcome, payload.notes, admin)
    return dispute_action(unwrap(result))


@router.get("/reconciliation", response_model=ReconciliationListResponse, summary="Reconciliation cases")
async def list_reconciliation_cases(
    status: Optional[CaseStatus] = CaseStatus.OPEN,
    skip: int = 0,
    limit: int = 50,
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    cases = await service.list_cases(status, limit=min(limit, 200), offset=skip)
    return ReconciliationListResponse(cases=[ReconciliationCaseResponse.model_validate(case) for case in cases])


@router.post(
    "/reconciliation/{case_id}/resolve",
    response_model=ReconciliationCaseResponse,
    summary="Close a reconciliation case after manual repair",
)
async def resolve_reconciliation_case(
    case_id: str,
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    result = unwrap(await service.resolve(case_id))
    return ReconciliationCaseResponse.model_validate(result.data)
