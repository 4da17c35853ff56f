"""Durable signal for partial failures that need an operator."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from escrow.domain.common import UnitOfWorkFactory, utcnow
from escrow.domain.exceptions import AlreadyProcessedError, NotFoundError
from escrow.domain.results import operation

from .models import CaseStatus, EntityType, ReconciliationCaseRecord

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconciliationService:
    unit_of_work: UnitOfWorkFactory

    async def record(
        self,
        *,
        entity_type: EntityType,
        entity_id: str,
        operation: str,
        external_ref: Optional[str],
        detail: str,
        order_id: Optional[str] = None,
    ) -> Optional[ReconciliationCaseRecord]:
        """Write a case in its own transaction and flag the order if given.

        An open case for the same entity, operation and external reference is
        reused, so replayed events do not pile up duplicates.

        Never raises: the caller is already reporting a failure and must not
        lose it to a second one.
        """
        logger.error(
            "Reconciliation required: %s %s operation=%s external_ref=%s detail=%s",
            entity_type,
            entity_id,
            operation,
            external_ref,
            detail,
        )
        try:
            async with self.unit_of_work() as uow:
                case = await uow.reconciliation.find_open(
                    entity_id=entity_id,
                    operation=operation,
                    external_ref=external_ref,
                )
                if case is not None:
                    logger.info("Reconciliation case %s already open for %s %s", case.id, entity_type, entity_id)
                else:
                    case = await uow.reconciliation.create(
                        entity_type=entity_type,
                        entity_id=entity_id,
                        operation=operation,
                        external_ref=external_ref,
                        detail=detail,
                    )
                if order_id is not None:
                    await uow.orders.flag_reconciliation(order_id)
        except Exception:
            logger.exception("Could not persist reconciliation case for %s %s", entity_type, entity_id)
            return None
        return ReconciliationCaseRecord.from_model(case)

    async def list_cases(
        self,
        status: Optional[CaseStatus] = CaseStatus.OPEN,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ReconciliationCaseRecord]:
        async with self.unit_of_work() as uow:
            rows = await uow.reconciliation.list_cases(status, limit, offset)
            return [ReconciliationCaseRecord.from_model(row) for row in rows]

    @operation("resolve_reconciliation_case")
    async def resolve(self, case_id: str) -> ReconciliationCaseRecord:
        async with self.unit_of_work() as uow:
            case = await uow.reconciliation.mark_resolved(case_id, utcnow())
            if case is None:
                existing = await uow.reconciliation.get(case_id)
                if existing is None:
                    raise NotFoundError(f"reconciliation case {case_id} not found")
                raise AlreadyProcessedError("reconciliation case already resolved")
            logger.info("Reconciliation case %s resolved", case_id)
            return ReconciliationCaseRecord.from_model(case)
