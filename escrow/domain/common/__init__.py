"""Shared abstractions used across domain modules."""

from .caller import Caller
from .repository import AsyncRepository
from .timeutils import ensure_aware, utcnow
from .unit_of_work import UnitOfWork, UnitOfWorkFactory

__all__ = ["AsyncRepository", "Caller", "UnitOfWork", "UnitOfWorkFactory", "ensure_aware", "utcnow"]
