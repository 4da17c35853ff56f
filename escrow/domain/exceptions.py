"""Settlement error taxonomy shared by every money-moving domain."""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorKind(StrEnum):
    INVALID_TRANSITION = "invalid_transition"
    ALREADY_PROCESSED = "already_processed"
    EXTERNAL_LEDGER_FAILURE = "external_ledger_failure"
    RESOURCE_LOCKED = "resource_locked"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INVALID_AMOUNT = "invalid_amount"
    RECONCILIATION_REQUIRED = "reconciliation_required"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


class SettlementError(Exception):
    """Base class for settlement domain errors."""

    kind: ErrorKind = ErrorKind.INVALID_TRANSITION

    def __init__(self, message: str, *, data: Any = None) -> None:
        super().__init__(message)
        self.data = data


class InvalidTransitionError(SettlementError):
    """Raised when an operation is not legal from the entity's current state."""

    kind = ErrorKind.INVALID_TRANSITION


class AlreadyProcessedError(SettlementError):
    """Raised when the requested effect has already been applied."""

    kind = ErrorKind.ALREADY_PROCESSED


class ExternalLedgerError(SettlementError):
    """Raised when the payment processor call failed or was ambiguous; safe to retry."""

    kind = ErrorKind.EXTERNAL_LEDGER_FAILURE


class ResourceLockedError(SettlementError):
    """Raised when a wallet is busy with an in-flight payout."""

    kind = ErrorKind.RESOURCE_LOCKED


class InsufficientFundsError(SettlementError):
    """Raised when a debit would take a balance below zero."""

    kind = ErrorKind.INSUFFICIENT_FUNDS


class InvalidAmountError(SettlementError):
    """Raised when a computed or requested amount is not acceptable."""

    kind = ErrorKind.INVALID_AMOUNT


class ReconciliationRequiredError(SettlementError):
    """Raised when the processor accepted a call but the local commit did not happen."""

    kind = ErrorKind.RECONCILIATION_REQUIRED


class NotFoundError(SettlementError):
    """Raised when the requested order, dispute or wallet does not exist."""

    kind = ErrorKind.NOT_FOUND


class ForbiddenError(SettlementError):
    """Raised when the caller is not a party allowed to perform the operation."""

    kind = ErrorKind.FORBIDDEN
