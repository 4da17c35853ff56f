"""Reconciliation domain exports"""

from .models import CaseStatus, EntityType, ReconciliationCaseRecord
from .repository import ReconciliationRepository
from .service import ReconciliationService

__all__ = [
    "CaseStatus",
    "EntityType",
    "ReconciliationCaseRecord",
    "ReconciliationRepository",
    "ReconciliationService",
]
