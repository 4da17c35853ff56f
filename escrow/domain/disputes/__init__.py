"""Dispute domain exports"""

from .models import (
    OPEN_DISPUTE_STATUSES,
    TERMINAL_DISPUTE_STATUSES,
    DisputeParty,
    DisputeRecord,
    DisputeResolution,
    DisputeStatus,
    dump_evidence,
    load_evidence,
)
from .repository import DisputeRepository

__all__ = [
    "OPEN_DISPUTE_STATUSES",
    "TERMINAL_DISPUTE_STATUSES",
    "DisputeParty",
    "DisputeRecord",
    "DisputeResolution",
    "DisputeStatus",
    "DisputeRepository",
    "dump_evidence",
    "load_evidence",
]
