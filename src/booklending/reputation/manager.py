"""Reputation ledger driven by lending events."""

import logging
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.sqlite import Database, get_db
from ..errors import ValidationError
from ..events import BookListed, EventBus, LoanSettled
from ..lending.models import Book, Loan
from .models import DEFAULT_USERNAME, Profile, SettledLoan
from .schemas import DisplayNameUpdate, ProfileResponse

logger = logging.getLogger(__name__)


class ReputationLedger:
    """Maintains participant profiles.

    Counters move only when a loan settles. Each settlement is applied at
    most once, keyed by loan id, so replaying events is safe.
    """

    def __init__(self, db: Optional[Database] = None, bus: Optional[EventBus] = None):
        """Initialize the reputation ledger.

        Args:
            db: Database instance
            bus: Event bus to subscribe to, if any
        """
        self.db = db or get_db()
        if bus is not None:
            self.attach(bus)

    def attach(self, bus: EventBus) -> None:
        """Subscribe to the engine's lifecycle events."""
        bus.subscribe(BookListed, self.on_book_listed)
        bus.subscribe(LoanSettled, self.apply_settlement)

    def on_book_listed(self, event: BookListed) -> None:
        """Listing alone earns nothing."""
        logger.debug("Book %d listed by %s; no reputation change", event.book_id, event.owner)

    def _get_or_create(self, session: Session, identity: str) -> Profile:
        profile = session.get(Profile, identity)
        if profile is None:
            profile = Profile(
                identity=identity,
                username=DEFAULT_USERNAME,
                is_registered=False,
                books_lent=0,
                books_borrowed=0,
                total_earnings=0,
            )
            session.add(profile)
            session.flush()
        return profile

    # -------------------------------------------------------------------------
    # Event handling
    # -------------------------------------------------------------------------

    def apply_settlement(self, event: LoanSettled) -> bool:
        """Apply a settled loan to lender and borrower counters.

        Args:
            event: Settlement event

        Returns:
            True if applied, False if this loan was already counted
        """
        with self.db.write_lock:
            with self.db.get_session() as session:
                if session.get(SettledLoan, event.loan_id) is not None:
                    logger.debug("Settlement of loan %d already applied", event.loan_id)
                    return False

                session.add(SettledLoan(loan_id=event.loan_id))

                lender = self._get_or_create(session, event.lender)
                lender.books_lent += 1
                lender.total_earnings += event.lender_reward

                borrower = self._get_or_create(session, event.borrower)
                borrower.books_borrowed += 1
                borrower.total_earnings += event.borrower_reward

        logger.info(
            "Reputation updated for loan %d: lender %s +%d, borrower %s +%d",
            event.loan_id, event.lender, event.lender_reward,
            event.borrower, event.borrower_reward,
        )
        return True

    def rebuild_from_loans(self) -> int:
        """Replay every settled loan from storage.

        Recovers counters after a missed event. Loans already counted are
        skipped.

        Returns:
            Number of settlements newly applied
        """
        with self.db.read_session() as session:
            rows = session.execute(
                select(Loan.id, Loan.book_id, Book.lender, Loan.borrower,
                       Loan.lender_reward, Loan.borrower_reward)
                .join(Book, Book.id == Loan.book_id)
                .where(Loan.penalty_amount.isnot(None))
                .order_by(Loan.id)
            ).all()

        applied = 0
        for row in rows:
            event = LoanSettled(
                loan_id=row.id,
                book_id=row.book_id,
                lender=row.lender,
                borrower=row.borrower,
                lender_reward=row.lender_reward or 0,
                borrower_reward=row.borrower_reward or 0,
            )
            if self.apply_settlement(event):
                applied += 1

        if applied:
            logger.info("Rebuilt reputation from %d missed settlement(s)", applied)
        return applied

    # -------------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------------

    def set_display_name(self, identity: str, username: str) -> ProfileResponse:
        """Set a participant's display name.

        Args:
            identity: Participant identity
            username: 1-32 characters

        Returns:
            Updated profile

        Raises:
            ValidationError: Identity empty or name out of range
        """
        if not isinstance(identity, str) or not identity.strip():
            raise ValidationError("Identity must not be empty")
        identity = identity.strip()
        try:
            data = DisplayNameUpdate(username=username)
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e

        with self.db.write_lock:
            with self.db.get_session() as session:
                profile = self._get_or_create(session, identity)
                profile.username = data.username
                profile.is_registered = True
                session.flush()
                return ProfileResponse.model_validate(profile)

    def get_profile(self, identity: str) -> ProfileResponse:
        """Get a profile; unknown identities get an empty default."""
        with self.db.read_session() as session:
            profile = session.get(Profile, identity)
            if profile is None:
                return ProfileResponse(identity=identity)
            return ProfileResponse.model_validate(profile)
