"""Read-only lending queries.

Leaderboards, platform totals and listings. Every query opens its own
session and sees committed data only; results may trail the latest
settlement until the reputation ledger has processed it.
"""

from typing import Callable, Optional

from sqlalchemy import func, select

from ..db.schemas import LoanStatus
from ..db.sqlite import Database, get_db
from ..errors import ValidationError
from ..ledger.models import Counter
from ..lending.engine import system_clock
from ..lending.models import TOTAL_BOOKS, TOTAL_LOANS, Book, Loan
from ..lending.schemas import BookResponse
from ..reputation.manager import ReputationLedger
from ..reputation.models import Profile
from ..reputation.schemas import ProfileResponse
from .schemas import LeaderboardEntry, LeaderboardKind, LoanSummary, PlatformStats


class LendingQueries:
    """Answers read-only questions about books, loans and participants."""

    def __init__(self, db: Optional[Database] = None, clock: Optional[Callable[[], int]] = None):
        """Initialize queries.

        Args:
            db: Database instance
            clock: Zero-argument callable returning unix seconds, used for
                derived loan fields
        """
        self.db = db or get_db()
        self.clock = clock or system_clock

    # -------------------------------------------------------------------------
    # Leaderboards and totals
    # -------------------------------------------------------------------------

    def leaderboard(
        self,
        kind: LeaderboardKind = LeaderboardKind.LENDERS,
        limit: int = 10,
    ) -> list[LeaderboardEntry]:
        """Rank participants by books lent or borrowed.

        Ties are broken by identity ascending and ranks never repeat.

        Args:
            kind: LENDERS or BORROWERS
            limit: Maximum entries to return

        Returns:
            Up to ``limit`` entries, rank 1 first
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationError(f"Limit must be a positive integer, got {limit!r}")
        kind = LeaderboardKind(kind)
        counter = Profile.books_lent if kind == LeaderboardKind.LENDERS else Profile.books_borrowed

        with self.db.read_session() as session:
            stmt = (
                select(Profile)
                .order_by(counter.desc(), Profile.identity.asc())
                .limit(limit)
            )
            profiles = session.execute(stmt).scalars().all()

            return [
                LeaderboardEntry(
                    rank=position,
                    identity=p.identity,
                    username=p.username,
                    books_lent=p.books_lent,
                    books_borrowed=p.books_borrowed,
                )
                for position, p in enumerate(profiles, start=1)
            ]

    def top_lenders(self, limit: int = 10) -> list[LeaderboardEntry]:
        return self.leaderboard(LeaderboardKind.LENDERS, limit)

    def top_borrowers(self, limit: int = 10) -> list[LeaderboardEntry]:
        return self.leaderboard(LeaderboardKind.BORROWERS, limit)

    def _counter(self, name: str) -> int:
        with self.db.read_session() as session:
            row = session.get(Counter, name)
            return row.value if row else 0

    def total_books(self) -> int:
        """Number of books ever listed."""
        return self._counter(TOTAL_BOOKS)

    def total_loans(self) -> int:
        """Number of loans ever started."""
        return self._counter(TOTAL_LOANS)

    def statistics(self) -> PlatformStats:
        """Get platform-wide statistics."""
        with self.db.read_session() as session:
            counters = dict(session.execute(select(Counter.name, Counter.value)).all())

            active_loans = session.execute(
                select(func.count()).select_from(Loan).where(
                    Loan.status == LoanStatus.ACTIVE.value
                )
            ).scalar() or 0

            available_books = session.execute(
                select(func.count()).select_from(Book).where(Book.is_available.is_(True))
            ).scalar() or 0

            total_participants = session.execute(
                select(func.count()).select_from(Profile)
            ).scalar() or 0

        return PlatformStats(
            total_books=counters.get(TOTAL_BOOKS, 0),
            total_loans=counters.get(TOTAL_LOANS, 0),
            active_loans=active_loans,
            available_books=available_books,
            total_participants=total_participants,
        )

    # -------------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------------

    def list_books(self, available_only: bool = False) -> list[BookResponse]:
        """List all books in id order."""
        with self.db.read_session() as session:
            stmt = select(Book).order_by(Book.id)
            if available_only:
                stmt = stmt.where(Book.is_available.is_(True))
            books = session.execute(stmt).scalars().all()
            return [BookResponse.model_validate(b) for b in books]

    def list_books_by_owner(self, owner: str) -> list[BookResponse]:
        """List books listed by one lender."""
        with self.db.read_session() as session:
            stmt = select(Book).where(Book.lender == owner).order_by(Book.id)
            books = session.execute(stmt).scalars().all()
            return [BookResponse.model_validate(b) for b in books]

    def _summaries(self, stmt) -> list[LoanSummary]:
        now = self.clock()
        with self.db.read_session() as session:
            rows = session.execute(stmt).all()
            return [
                LoanSummary(
                    id=loan.id,
                    book_id=loan.book_id,
                    book_title=title,
                    borrower=loan.borrower,
                    deposit_paid=loan.deposit_paid,
                    start_time=loan.start_time,
                    deadline=loan.deadline,
                    status=loan.status,
                    returned_at=loan.returned_at,
                    condition_after=loan.condition_after,
                    refund_amount=loan.refund_amount,
                    penalty_amount=loan.penalty_amount,
                    days_left=loan.days_left(now) if loan.is_active else 0,
                    is_overdue=loan.is_overdue(now),
                )
                for loan, title in rows
            ]

    def list_loans_by_borrower(self, borrower: str) -> list[LoanSummary]:
        """List a borrower's loans, newest first."""
        stmt = (
            select(Loan, Book.title)
            .join(Book, Book.id == Loan.book_id)
            .where(Loan.borrower == borrower)
            .order_by(Loan.id.desc())
        )
        return self._summaries(stmt)

    def list_loans_for_book(self, book_id: int) -> list[LoanSummary]:
        """Loan history of one book, newest first."""
        stmt = (
            select(Loan, Book.title)
            .join(Book, Book.id == Loan.book_id)
            .where(Loan.book_id == book_id)
            .order_by(Loan.id.desc())
        )
        return self._summaries(stmt)

    def get_profile(self, identity: str) -> ProfileResponse:
        """Get a participant's profile; unknown identities get defaults."""
        return ReputationLedger(self.db).get_profile(identity)
