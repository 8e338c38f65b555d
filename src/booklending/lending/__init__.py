"""Book lending engine.

Provides functionality for:
- Listing books with a deposit, duration and pickup location
- Borrowing books with the deposit held in escrow
- Returning books with late and damage penalties
- Participation rewards for lenders and punctual borrowers
"""

from .engine import LendingEngine
from .models import Book, Loan
from .policy import PenaltyPolicy, SettlementTerms, compute_settlement
from .schemas import (
    BookListing,
    BookResponse,
    LoanResponse,
    Settlement,
)

__all__ = [
    "LendingEngine",
    "Book",
    "Loan",
    "PenaltyPolicy",
    "SettlementTerms",
    "compute_settlement",
    "BookListing",
    "BookResponse",
    "LoanResponse",
    "Settlement",
]
