"""Database module for local SQLite storage."""

from .models import Base
from .schemas import BookCondition, LoanStatus
from .sqlite import Database, get_db, reset_db

__all__ = [
    "Base",
    "BookCondition",
    "LoanStatus",
    "Database",
    "get_db",
    "reset_db",
]
