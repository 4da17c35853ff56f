"""Typed operation results returned at the settlement boundary."""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Optional, TypeVar

from .exceptions import AlreadyProcessedError, ErrorKind, SettlementError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

_WARNING_KINDS = {
    ErrorKind.EXTERNAL_LEDGER_FAILURE,
    ErrorKind.RESOURCE_LOCKED,
}


@dataclass(slots=True)
class OperationResult:
    ok: bool
    kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    already_processed: bool = False
    data: Any = None

    @classmethod
    def success(cls, data: Any = None, *, already_processed: bool = False, message: Optional[str] = None) -> "OperationResult":
        return cls(ok=True, data=data, already_processed=already_processed, message=message)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, data: Any = None) -> "OperationResult":
        return cls(ok=False, kind=kind, message=message, data=data)

    @property
    def retryable(self) -> bool:
        return self.kind in _WARNING_KINDS


def operation(name: str, *, replay_safe: bool = False) -> Callable[[F], F]:
    """Convert settlement errors raised by ``func`` into an ``OperationResult``.

    With ``replay_safe`` an ``AlreadyProcessedError`` is reported as success with
    ``already_processed`` set; otherwise it is a rejection of kind
    ``ALREADY_PROCESSED``. Other exceptions propagate.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> OperationResult:
            try:
                data = await func(*args, **kwargs)
            except AlreadyProcessedError as exc:
                logger.info("%s already processed: %s", name, exc)
                if replay_safe:
                    return OperationResult.success(exc.data, already_processed=True, message=str(exc))
                return OperationResult.failure(exc.kind, str(exc), exc.data)
            except SettlementError as exc:
                if exc.kind is ErrorKind.RECONCILIATION_REQUIRED:
                    logger.error("%s needs reconciliation: %s", name, exc)
                elif exc.kind in _WARNING_KINDS:
                    logger.warning("%s rejected (%s): %s", name, exc.kind, exc)
                else:
                    logger.info("%s rejected (%s): %s", name, exc.kind, exc)
                return OperationResult.failure(exc.kind, str(exc), exc.data)
            return OperationResult.success(data)

        return wrapper  # type: ignore[return-value]

    return decorator
