"""Settlement engine exports"""

from .engine import SettlementEngine
from .policy import dispute_refund_cents, inspection_deadline, return_deadline, return_refund_cents
from .transitions import Transition, guarded_transition

__all__ = [
    "SettlementEngine",
    "Transition",
    "dispute_refund_cents",
    "guarded_transition",
    "inspection_deadline",
    "return_deadline",
    "return_refund_cents",
]
