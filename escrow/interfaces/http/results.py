"""Translate settlement results into HTTP responses."""

from fastapi import HTTPException, status

from escrow.domain.exceptions import ErrorKind
from escrow.domain.results import OperationResult

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_PROCESSED: status.HTTP_409_CONFLICT,
    ErrorKind.RESOURCE_LOCKED: status.HTTP_423_LOCKED,
    ErrorKind.INSUFFICIENT_FUNDS: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INVALID_AMOUNT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.EXTERNAL_LEDGER_FAILURE: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.RECONCILIATION_REQUIRED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def unwrap(result: OperationResult) -> OperationResult:
    """Return successful results, raise ``HTTPException`` for failures."""
    if result.ok:
        return result
    headers = {"Retry-After": "30"} if result.retryable else None
    raise HTTPException(
        status_code=STATUS_BY_KIND.get(result.kind, status.HTTP_400_BAD_REQUEST),
        detail={"kind": str(result.kind), "message": result.message},
        headers=headers,
    )
