"""Shared enumerations for lending records.

Condition and status values are stored as small integers (Mint=0 .. Damaged=3,
Active=0 .. Disputed=3).
"""

from enum import IntEnum


class BookCondition(IntEnum):
    """Physical condition of a book."""

    MINT = 0
    GOOD = 1
    FAIR = 2
    DAMAGED = 3

    @property
    def label(self) -> str:
        return self.name.title()


class LoanStatus(IntEnum):
    """Lifecycle status of a loan."""

    ACTIVE = 0
    RETURNED = 1
    LATE = 2
    DISPUTED = 3  # Entered only through moderation

    @property
    def label(self) -> str:
        return self.name.title()

    @property
    def is_terminal(self) -> bool:
        """True once the loan has been settled or disputed."""
        return self is not LoanStatus.ACTIVE
