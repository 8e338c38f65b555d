"""SQLAlchemy models for book lending.

Tables:
- books: Listed books and their lending terms
- loans: Individual borrowing episodes

Ids are allocated by the ledger's counters, so they start at 1 and are
never reused. Amounts are integers in the ledger's base unit and times are
unix seconds.
"""

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.models import Base, unix_now
from ..db.schemas import BookCondition, LoanStatus
from ..db.types import Amount

SECONDS_PER_DAY = 86400

# Counter names in the ledger; they double as id allocators
TOTAL_BOOKS = "total_books"
TOTAL_LOANS = "total_loans"


class Book(Base):
    """Book model - a listing offered for loan by its lender."""

    __tablename__ = "books"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    lender: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Core fields
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    author: Mapped[str] = mapped_column(String(500), nullable=False)
    catalog_id: Mapped[Optional[str]] = mapped_column(String(32))  # ISBN or similar
    condition: Mapped[int] = mapped_column(Integer, nullable=False)

    # Lending terms, fixed at listing time
    deposit_amount: Mapped[int] = mapped_column(Amount, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # seconds
    pickup_location: Mapped[str] = mapped_column(Text, nullable=False)

    # State
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    times_lent: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[int] = mapped_column(Integer, default=unix_now)

    # Relationships
    loans: Mapped[list["Loan"]] = relationship("Loan", back_populates="book")

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, title='{self.title}', lender='{self.lender}')>"

    @property
    def condition_enum(self) -> BookCondition:
        return BookCondition(self.condition)


class Loan(Base):
    """Loan model - one borrowing of one book."""

    __tablename__ = "loans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    book_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("books.id"), nullable=False, index=True
    )
    borrower: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Copied from the book at borrow time
    deposit_paid: Mapped[int] = mapped_column(Amount, nullable=False)
    escrow_ref: Mapped[int] = mapped_column(Integer, nullable=False)

    start_time: Mapped[int] = mapped_column(Integer, nullable=False)
    deadline: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[int] = mapped_column(Integer, default=LoanStatus.ACTIVE.value, index=True)
    returned_at: Mapped[Optional[int]] = mapped_column(Integer)

    # Settlement, written once at return
    condition_after: Mapped[Optional[int]] = mapped_column(Integer)
    late_days: Mapped[Optional[int]] = mapped_column(Integer)
    penalty_amount: Mapped[Optional[int]] = mapped_column(Amount)
    refund_amount: Mapped[Optional[int]] = mapped_column(Amount)
    lender_reward: Mapped[Optional[int]] = mapped_column(Amount)
    borrower_reward: Mapped[Optional[int]] = mapped_column(Amount)

    # Relationships
    book: Mapped["Book"] = relationship("Book", back_populates="loans")

    def __repr__(self) -> str:
        return f"<Loan(id={self.id}, book_id={self.book_id}, status={self.status})>"

    @property
    def status_enum(self) -> LoanStatus:
        return LoanStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ACTIVE.value

    @property
    def is_settled(self) -> bool:
        """True once a return has been processed."""
        return self.penalty_amount is not None

    def days_left(self, now: int) -> int:
        """Whole days until the deadline, rounded up (0 once passed)."""
        remaining = self.deadline - now
        if remaining <= 0:
            return 0
        return -(-remaining // SECONDS_PER_DAY)

    def is_overdue(self, now: int) -> bool:
        """Check if an active loan is past its deadline."""
        return self.is_active and now > self.deadline
