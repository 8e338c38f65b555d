"""Lending engine: listing, borrowing and returning books.

Every mutating operation runs inside a single ledger transaction, so the
value it moves and the records it writes commit together or not at all.
Borrows are serialized per book and returns per loan; the state is re-read
under the lock, so a losing concurrent caller sees the winner's committed
result and fails with NotAvailable or LoanNotActive.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, Generator, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..db.schemas import BookCondition, LoanStatus
from ..errors import (
    DepositMismatch,
    InvalidCondition,
    LendingError,
    LoanNotActive,
    NotAvailable,
    NotFoundError,
    SelfBorrowForbidden,
    ValidationError,
)
from ..events import BookBorrowed, BookListed, EventBus, LoanSettled
from .models import TOTAL_BOOKS, TOTAL_LOANS, Book, Loan
from .policy import PenaltyPolicy, compute_settlement
from .schemas import BookListing, BookResponse, LoanResponse, Settlement

if TYPE_CHECKING:
    from ..ledger.base import LedgerAdapter

logger = logging.getLogger(__name__)

Clock = Callable[[], int]

# Ids are SQLite integer keys
MAX_ID = 2**63 - 1


def system_clock() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())


def _require_identity(identity: str, role: str) -> str:
    if not isinstance(identity, str) or not identity.strip():
        raise ValidationError(f"{role} identity must not be empty")
    return identity.strip()


def _require_id(value: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= MAX_ID:
        raise ValidationError(f"{name} must be a positive integer, got {value!r}")
    return value


class LendingEngine:
    """Owns the book and loan state machines."""

    def __init__(
        self,
        ledger: Optional["LedgerAdapter"] = None,
        bus: Optional[EventBus] = None,
        policy: Optional[PenaltyPolicy] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize the engine.

        Args:
            ledger: Ledger adapter (default: SqlLedger on the global database)
            bus: Event bus lifecycle events are published on
            policy: Penalty and reward policy (default: from configuration)
            clock: Zero-argument callable returning unix seconds
        """
        if ledger is None:
            from ..ledger.sql import SqlLedger

            ledger = SqlLedger()
        if policy is None:
            from ..config import get_config

            policy = get_config().penalty_policy()

        self.ledger = ledger
        self.bus = bus or EventBus()
        self.policy = policy
        self.clock = clock or system_clock

        # (kind, id) -> [lock, number of callers holding or waiting on it]
        self._locks: dict[tuple[str, int], list] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _entity_lock(self, kind: str, entity_id: int) -> Generator[None, None, None]:
        """Hold the lock for one book or loan.

        The lock is dropped from the registry once no caller needs it.
        """
        key = (kind, entity_id)
        with self._locks_guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    def list_book(
        self,
        owner: str,
        title: str,
        author: str,
        condition: Union[BookCondition, int],
        deposit_amount: int,
        duration: int,
        pickup_location: str,
        catalog_id: Optional[str] = None,
    ) -> BookResponse:
        """List a book for lending.

        Args:
            owner: Lender identity
            title: Book title
            author: Book author
            condition: Condition at listing (0=Mint .. 3=Damaged)
            deposit_amount: Required deposit in base units
            duration: Loan duration in seconds
            pickup_location: Where the borrower collects the book
            catalog_id: Optional ISBN or other catalog id

        Returns:
            The listed book, available and never lent

        Raises:
            ValidationError: Any field is missing or out of range
        """
        owner = _require_identity(owner, "Owner")
        try:
            listing = BookListing(
                title=title,
                author=author,
                catalog_id=catalog_id,
                condition=condition,
                deposit_amount=deposit_amount,
                duration=duration,
                pickup_location=pickup_location,
            )
        except PydanticValidationError as e:
            logger.warning("Rejected listing from %s: %s", owner, e)
            raise ValidationError(str(e)) from e

        now = self.clock()
        with self.ledger.transaction() as txn:
            book = Book(
                id=txn.next_id(TOTAL_BOOKS),
                lender=owner,
                title=listing.title,
                author=listing.author,
                catalog_id=listing.catalog_id,
                condition=listing.condition.value,
                deposit_amount=listing.deposit_amount,
                duration=listing.duration,
                pickup_location=listing.pickup_location,
                is_available=True,
                times_lent=0,
                created_at=now,
            )
            txn.persist(book)
            result = BookResponse.model_validate(book)

        logger.info("Book %d listed by %s: %s", result.id, owner, result.title)
        self.bus.publish(BookListed(book_id=result.id, owner=owner))
        return result

    # -------------------------------------------------------------------------
    # Borrowing
    # -------------------------------------------------------------------------

    def borrow_book(self, borrower: str, book_id: int, offered_deposit: int) -> LoanResponse:
        """Borrow an available book, escrowing the deposit.

        Args:
            borrower: Borrower identity
            book_id: Book to borrow
            offered_deposit: Must equal the book's deposit exactly

        Returns:
            The new active loan

        Raises:
            NotFoundError: Book does not exist
            NotAvailable: Book is already on loan
            SelfBorrowForbidden: Borrower is the lender
            DepositMismatch: Offered deposit differs from the listing
            InsufficientFunds: Borrower cannot cover the deposit
        """
        borrower = _require_identity(borrower, "Borrower")
        book_id = _require_id(book_id, "Book id")
        if isinstance(offered_deposit, bool) or not isinstance(offered_deposit, int):
            raise ValidationError(f"Deposit must be an integer amount, got {offered_deposit!r}")

        try:
            with self._entity_lock("book", book_id):
                with self.ledger.transaction() as txn:
                    book = txn.load_book(book_id)
                    if book is None:
                        raise NotFoundError(f"Book not found: {book_id}")
                    if not book.is_available:
                        raise NotAvailable(f"Book {book_id} is already on loan")
                    if borrower == book.lender:
                        raise SelfBorrowForbidden("Cannot borrow your own book")
                    if offered_deposit != book.deposit_amount:
                        raise DepositMismatch(book.deposit_amount, offered_deposit)

                    now = self.clock()
                    escrow_ref = txn.escrow_hold(borrower, offered_deposit, now=now)
                    loan = Loan(
                        id=txn.next_id(TOTAL_LOANS),
                        book_id=book.id,
                        borrower=borrower,
                        deposit_paid=offered_deposit,
                        escrow_ref=escrow_ref,
                        start_time=now,
                        deadline=now + book.duration,
                        status=LoanStatus.ACTIVE.value,
                        returned_at=None,
                    )
                    book.is_available = False
                    txn.persist(loan)
                    txn.persist(book)
                    result = LoanResponse.model_validate(loan)
        except LendingError as e:
            logger.warning("Borrow of book %s by %s rejected: %s", book_id, borrower, e)
            raise

        logger.info(
            "Loan %d: book %d borrowed by %s, deposit %d escrowed",
            result.id, book_id, borrower, result.deposit_paid,
        )
        self.bus.publish(BookBorrowed(loan_id=result.id, book_id=book_id, borrower=borrower))
        return result

    # -------------------------------------------------------------------------
    # Returning
    # -------------------------------------------------------------------------

    def return_book(self, loan_id: int, condition_after: Union[BookCondition, int]) -> Settlement:
        """Return a borrowed book and settle the deposit.

        Refund goes to the borrower and any penalty to the lender. The lender
        always earns the lender reward; the borrower earns theirs only for an
        on-time return in non-damaged condition.

        Args:
            loan_id: Active loan to close
            condition_after: Condition on return (0=Mint .. 3=Damaged)

        Returns:
            Settlement with refund, penalty and rewards

        Raises:
            NotFoundError: Loan does not exist
            LoanNotActive: Loan was already settled
            InvalidCondition: Condition is not a known value
        """
        loan_id = _require_id(loan_id, "Loan id")

        try:
            with self._entity_lock("loan", loan_id):
                with self.ledger.transaction() as txn:
                    loan = txn.load_loan(loan_id)
                    if loan is None:
                        raise NotFoundError(f"Loan not found: {loan_id}")
                    if not loan.is_active:
                        raise LoanNotActive(
                            f"Loan {loan_id} is {loan.status_enum.label.lower()}, not active"
                        )
                    condition = self._parse_condition(condition_after)

                    book = txn.load_book(loan.book_id)
                    now = self.clock()
                    terms = compute_settlement(
                        self.policy, loan.deposit_paid, loan.deadline, now, condition
                    )

                    txn.escrow_release(
                        loan.escrow_ref,
                        [
                            (loan.borrower, terms.refund_amount),
                            (book.lender, terms.penalty_amount),
                        ],
                        now=now,
                    )
                    if terms.lender_reward:
                        txn.credit_reward(book.lender, terms.lender_reward)
                    if terms.borrower_reward:
                        txn.credit_reward(loan.borrower, terms.borrower_reward)

                    status = LoanStatus.LATE if terms.late_days > 0 else LoanStatus.RETURNED
                    loan.status = status.value
                    loan.returned_at = now
                    loan.condition_after = condition.value
                    loan.late_days = terms.late_days
                    loan.penalty_amount = terms.penalty_amount
                    loan.refund_amount = terms.refund_amount
                    loan.lender_reward = terms.lender_reward
                    loan.borrower_reward = terms.borrower_reward

                    book.is_available = True
                    book.times_lent += 1
                    txn.persist(loan)
                    txn.persist(book)

                    settlement = Settlement(
                        loan_id=loan.id,
                        book_id=book.id,
                        lender=book.lender,
                        borrower=loan.borrower,
                        status=status,
                        deposit_paid=loan.deposit_paid,
                        late_days=terms.late_days,
                        penalty_rate_bp=terms.penalty_rate_bp,
                        penalty_amount=terms.penalty_amount,
                        refund_amount=terms.refund_amount,
                        lender_reward=terms.lender_reward,
                        borrower_reward=terms.borrower_reward,
                        returned_at=now,
                    )
        except LendingError as e:
            logger.warning("Return of loan %s rejected: %s", loan_id, e)
            raise

        logger.info(
            "Loan %d settled as %s: refund %d, penalty %d, late %d day(s)",
            settlement.loan_id, settlement.status.label, settlement.refund_amount,
            settlement.penalty_amount, settlement.late_days,
        )
        self.bus.publish(
            LoanSettled(
                loan_id=settlement.loan_id,
                book_id=settlement.book_id,
                lender=settlement.lender,
                borrower=settlement.borrower,
                lender_reward=settlement.lender_reward,
                borrower_reward=settlement.borrower_reward,
            )
        )
        return settlement

    @staticmethod
    def _parse_condition(value: Union[BookCondition, int]) -> BookCondition:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidCondition(f"Invalid condition: {value!r}")
        try:
            return BookCondition(value)
        except ValueError:
            raise InvalidCondition(f"Invalid condition: {value!r}") from None

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_book(self, book_id: int) -> BookResponse:
        """Get a book by ID.

        Raises:
            NotFoundError: Book does not exist
        """
        book_id = _require_id(book_id, "Book id")
        with self.ledger.transaction() as txn:
            book = txn.load_book(book_id)
            if book is None:
                raise NotFoundError(f"Book not found: {book_id}")
            return BookResponse.model_validate(book)

    def get_loan(self, loan_id: int) -> LoanResponse:
        """Get a loan by ID.

        Raises:
            NotFoundError: Loan does not exist
        """
        loan_id = _require_id(loan_id, "Loan id")
        with self.ledger.transaction() as txn:
            loan = txn.load_loan(loan_id)
            if loan is None:
                raise NotFoundError(f"Loan not found: {loan_id}")
            return LoanResponse.model_validate(loan)
