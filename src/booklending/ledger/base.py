"""Ledger adapter interface.

The lending engine never moves value or writes records itself. It opens a
ledger transaction, calls the primitives below and lets the transaction
commit everything at once or nothing at all.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Optional, Sequence, Tuple, Union

if TYPE_CHECKING:
    from ..lending.models import Book, Loan

Split = Tuple[str, int]
Record = Union["Book", "Loan"]


class LedgerTransaction(ABC):
    """Unit of work over balances, escrow and lending records."""

    @abstractmethod
    def transfer(self, source: str, target: str, amount: int) -> None:
        """Move amount from source to target.

        Raises:
            InsufficientFunds: source balance is too low
        """

    @abstractmethod
    def escrow_hold(self, payer: str, amount: int, now: Optional[int] = None) -> int:
        """Debit payer and hold the amount in escrow.

        Args:
            payer: Identity debited
            amount: Amount held
            now: Hold time in unix seconds (default: wall clock)

        Returns:
            Escrow reference
        """

    @abstractmethod
    def escrow_release(
        self, escrow_ref: int, splits: Sequence[Split], now: Optional[int] = None
    ) -> None:
        """Pay out a held escrow at ``now``. Splits must sum to the held amount."""

    @abstractmethod
    def credit_reward(self, identity: str, amount: int) -> None:
        """Credit reward tokens to an identity."""

    @abstractmethod
    def persist(self, record: Record) -> None:
        """Stage a book or loan record for commit."""

    @abstractmethod
    def load_book(self, book_id: int) -> Optional["Book"]:
        pass

    @abstractmethod
    def load_loan(self, loan_id: int) -> Optional["Loan"]:
        pass

    @abstractmethod
    def next_id(self, counter: str) -> int:
        """Increment a named counter and return its new value."""


class LedgerAdapter(ABC):
    """Source of ledger transactions plus balance lookups."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager[LedgerTransaction]:
        """Open an all-or-nothing transaction."""

    @abstractmethod
    def fund(self, identity: str, amount: int) -> int:
        """Add external value to an account. Returns the new balance."""

    @abstractmethod
    def balance_of(self, identity: str) -> int:
        pass

    @abstractmethod
    def reward_balance_of(self, identity: str) -> int:
        pass

    @abstractmethod
    def escrowed_total(self) -> int:
        """Sum of all deposits currently held."""

    @abstractmethod
    def counter(self, name: str) -> int:
        """Current value of a named counter (0 if never incremented)."""
