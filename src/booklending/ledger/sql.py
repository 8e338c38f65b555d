"""SQLite-backed ledger.

Balances, escrows, counters and lending records live in the same database,
so one SQLAlchemy session is one atomic commit over all of them.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.models import unix_now
from ..db.sqlite import Database, get_db
from ..db.types import MAX_AMOUNT
from ..errors import InsufficientFunds, LedgerError, LendingError
from ..lending.models import Book, Loan
from .base import LedgerAdapter, LedgerTransaction, Record, Split
from .models import Account, Counter, Escrow

logger = logging.getLogger(__name__)


def _require_positive(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise LedgerError(f"Amount must be a positive integer, got {amount!r}")
    if amount > MAX_AMOUNT:
        raise LedgerError(f"Amount exceeds the ledger maximum of {MAX_AMOUNT}")


class SqlLedgerTransaction(LedgerTransaction):
    """Ledger primitives bound to one open session."""

    def __init__(self, session: Session):
        self.session = session

    def _account(self, identity: str) -> Account:
        account = self.session.get(Account, identity)
        if account is None:
            account = Account(identity=identity, balance=0, reward_balance=0)
            self.session.add(account)
            self.session.flush()
        return account

    def credit_balance(self, identity: str, amount: int) -> None:
        """Add value to an account from outside the ledger."""
        _require_positive(amount)
        self._account(identity).balance += amount

    def _debit(self, identity: str, amount: int) -> None:
        account = self._account(identity)
        if account.balance < amount:
            raise InsufficientFunds(identity, amount, account.balance)
        account.balance -= amount

    def transfer(self, source: str, target: str, amount: int) -> None:
        _require_positive(amount)
        self._debit(source, amount)
        self._account(target).balance += amount

    def escrow_hold(self, payer: str, amount: int, now: Optional[int] = None) -> int:
        _require_positive(amount)
        self._debit(payer, amount)
        escrow = Escrow(
            payer=payer,
            amount=amount,
            released=False,
            created_at=unix_now() if now is None else now,
        )
        self.session.add(escrow)
        self.session.flush()
        return escrow.id

    def escrow_release(
        self, escrow_ref: int, splits: Sequence[Split], now: Optional[int] = None
    ) -> None:
        escrow = self.session.get(Escrow, escrow_ref)
        if escrow is None:
            raise LedgerError(f"Unknown escrow: {escrow_ref}")
        if escrow.released:
            raise LedgerError(f"Escrow {escrow_ref} already released")

        if any(amount < 0 for _, amount in splits):
            raise LedgerError("Escrow splits must not be negative")
        total = sum(amount for _, amount in splits)
        if total != escrow.amount:
            raise LedgerError(
                f"Escrow {escrow_ref} holds {escrow.amount}, splits total {total}"
            )

        for payee, amount in splits:
            if amount:
                self._account(payee).balance += amount

        escrow.released = True
        escrow.released_at = unix_now() if now is None else now

    def credit_reward(self, identity: str, amount: int) -> None:
        _require_positive(amount)
        self._account(identity).reward_balance += amount

    def persist(self, record: Record) -> None:
        self.session.add(record)
        self.session.flush()

    def load_book(self, book_id: int) -> Optional[Book]:
        return self.session.get(Book, book_id)

    def load_loan(self, loan_id: int) -> Optional[Loan]:
        return self.session.get(Loan, loan_id)

    def next_id(self, counter: str) -> int:
        row = self.session.get(Counter, counter)
        if row is None:
            row = Counter(name=counter, value=0)
            self.session.add(row)
        row.value += 1
        self.session.flush()
        return row.value


class SqlLedger(LedgerAdapter):
    """Ledger adapter over the local SQLite database."""

    def __init__(self, db: Optional[Database] = None):
        """Initialize the ledger.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    @contextmanager
    def transaction(self) -> Generator[SqlLedgerTransaction, None, None]:
        """Open a write transaction.

        Lending errors raised inside the block roll back and propagate
        unchanged. Database failures roll back and surface as a retryable
        LedgerError.
        """
        with self.db.write_lock:
            try:
                with self.db.get_session() as session:
                    yield SqlLedgerTransaction(session)
            except LendingError as e:
                logger.debug("Ledger transaction rolled back: %s", e)
                raise
            except SQLAlchemyError as e:
                logger.warning("Ledger transaction failed and was rolled back: %s", e)
                raise LedgerError(f"Ledger write failed: {e}", retryable=True) from e

    def fund(self, identity: str, amount: int) -> int:
        _require_positive(amount)
        with self.transaction() as txn:
            txn.credit_balance(identity, amount)
            balance = txn.session.get(Account, identity).balance
        logger.info("Funded %s with %d", identity, amount)
        return balance

    def transfer(self, source: str, target: str, amount: int) -> None:
        """Move value between two accounts in its own transaction."""
        with self.transaction() as txn:
            txn.transfer(source, target, amount)

    def _read_account(self, identity: str) -> Optional[Account]:
        with self.db.read_session() as session:
            account = session.get(Account, identity)
            if account:
                session.expunge(account)
            return account

    def balance_of(self, identity: str) -> int:
        account = self._read_account(identity)
        return account.balance if account else 0

    def reward_balance_of(self, identity: str) -> int:
        account = self._read_account(identity)
        return account.reward_balance if account else 0

    def escrowed_total(self) -> int:
        """Sum of all deposits currently held."""
        # Amounts are stored as text, so they are summed here rather than in SQL
        with self.db.read_session() as session:
            amounts = session.execute(
                select(Escrow.amount).where(Escrow.released.is_(False))
            ).scalars()
            return sum(amounts)

    def total_balances(self) -> int:
        """Sum of every account's currency balance."""
        with self.db.read_session() as session:
            return sum(session.execute(select(Account.balance)).scalars())

    def counter(self, name: str) -> int:
        with self.db.read_session() as session:
            row = session.get(Counter, name)
            return row.value if row else 0
