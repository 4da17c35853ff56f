"""Payment processor ledger adapters."""

from escrow.core.config import LedgerSettings
from escrow.domain.ledger import LedgerClient

from .memory import InMemoryLedgerClient
from .stripe_client import StripeLedgerClient


def build_ledger_client(settings: LedgerSettings) -> LedgerClient:
    if settings.provider == "stripe":
        return StripeLedgerClient(settings)
    return InMemoryLedgerClient()


__all__ = ["InMemoryLedgerClient", "StripeLedgerClient", "build_ledger_client"]
