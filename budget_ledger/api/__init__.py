"""Tagged-action channel: dispatcher, HTTP endpoint, and remote client."""

from budget_ledger.api.client import LedgerClient, RemoteActionError
from budget_ledger.api.dispatcher import ActionDispatcher
from budget_ledger.api.server import create_app

__all__ = [
    "ActionDispatcher",
    "LedgerClient",
    "RemoteActionError",
    "create_app",
]
