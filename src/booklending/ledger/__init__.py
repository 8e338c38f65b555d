"""Value ledger: balances, escrow, reward credits and record persistence."""

from .base import LedgerAdapter, LedgerTransaction
from .models import Account, Counter, Escrow
from .sql import SqlLedger, SqlLedgerTransaction

__all__ = [
    "LedgerAdapter",
    "LedgerTransaction",
    "SqlLedger",
    "SqlLedgerTransaction",
    "Account",
    "Counter",
    "Escrow",
]
