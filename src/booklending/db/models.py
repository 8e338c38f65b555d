"""SQLAlchemy declarative base shared by every table.

Tables are defined next to the component that owns them:
- lending.models: books, loans
- ledger.models: accounts, escrows, counters
- reputation.models: profiles, settled_loans
"""

import time

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def unix_now() -> int:
    """Current time as whole unix seconds."""
    return int(time.time())
