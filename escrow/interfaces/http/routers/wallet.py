"""Seller wallet and payouts."""

from fastapi import APIRouter, Depends, HTTPException, status

from escrow.domain.common import Caller
from escrow.domain.payouts import PayoutExecutor
from escrow.domain.settlement import SettlementEngine
from escrow.interfaces.http.deps import get_current_caller, get_payout_executor, get_settlement_engine
from escrow.interfaces.http.results import unwrap
from escrow.schemas import (
    PayoutCreate,
    PayoutListResponse,
    PayoutResponse,
    WalletResponse,
    WalletTransactionListResponse,
    WalletTransactionResponse,
)

router = APIRouter()


@router.get("", response_model=WalletResponse, summary="Caller's wallet balances")
async def get_wallet(
    caller: Caller = Depends(get_current_caller),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    wallet = await engine.get_wallet(caller.user_id)
    if wallet is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Wallet not found")
    return WalletResponse.model_validate(wallet)


@router.get("/transactions", response_model=WalletTransactionListResponse, summary="Wallet ledger entries")
async def list_transactions(
    skip: int = 0,
    limit: int = 20,
    caller: Caller = Depends(get_current_caller),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    rows = await engine.list_wallet_transactions(caller.user_id, limit=min(limit, 100), offset=skip)
    return WalletTransactionListResponse(
        transactions=[WalletTransactionResponse.model_validate(row) for row in rows]
    )


@router.post("/payouts", response_model=PayoutResponse, status_code=201, summary="Withdraw available balance")
async def request_payout(
    payload: PayoutCreate,
    caller: Caller = Depends(get_current_caller),
    executor: PayoutExecutor = Depends(get_payout_executor),
):
    result = unwrap(await executor.request_payout(caller.user_id, payload.amount_cents, payload.method))
    return PayoutResponse.model_validate(result.data)


@router.get("/payouts", response_model=PayoutListResponse, summary="Payout history")
async def list_payouts(
    skip: int = 0,
    limit: int = 20,
    caller: Caller = Depends(get_current_caller),
    executor: PayoutExecutor = Depends(get_payout_executor),
):
    payouts = await executor.list_payouts(caller.user_id, limit=min(limit, 100), offset=skip)
    return PayoutListResponse(payouts=[PayoutResponse.model_validate(payout) for payout in payouts])
