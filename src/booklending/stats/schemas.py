"""Pydantic schemas for lending queries."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from ..db.schemas import BookCondition, LoanStatus


class LeaderboardKind(str, Enum):
    """Which activity counter a leaderboard ranks by."""

    LENDERS = "lenders"
    BORROWERS = "borrowers"


class LeaderboardEntry(BaseModel):
    """One ranked participant."""

    rank: int
    identity: str
    username: str
    books_lent: int
    books_borrowed: int


class PlatformStats(BaseModel):
    """Platform-wide totals."""

    total_books: int
    total_loans: int
    active_loans: int
    available_books: int
    total_participants: int


class LoanSummary(BaseModel):
    """A loan with fields derived at read time."""

    id: int
    book_id: int
    book_title: str
    borrower: str
    deposit_paid: int
    start_time: int
    deadline: int
    status: LoanStatus
    returned_at: Optional[int]
    condition_after: Optional[BookCondition] = None
    refund_amount: Optional[int] = None
    penalty_amount: Optional[int] = None
    days_left: int
    is_overdue: bool
