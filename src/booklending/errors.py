"""Exception hierarchy for lending operations.

- ValidationError: malformed input, rejected before any state is touched
- NotFoundError: unknown book or loan id
- BusinessRuleError subclasses: the request is well formed but the current
  state forbids it; the operation aborts with no partial effect
- LedgerError: the ledger failed to move value or persist a record; the
  transaction was rolled back
"""


class LendingError(Exception):
    """Base exception for all lending errors."""

    pass


class ValidationError(LendingError):
    """Malformed input."""

    pass


class NotFoundError(LendingError):
    """Referenced book or loan does not exist."""

    pass


class BusinessRuleError(LendingError):
    """Operation forbidden by the current lending state."""

    pass


class NotAvailable(BusinessRuleError):
    """Book is currently on loan."""

    pass


class SelfBorrowForbidden(BusinessRuleError):
    """Lender tried to borrow their own listing."""

    pass


class DepositMismatch(BusinessRuleError):
    """Offered deposit differs from the listed deposit."""

    def __init__(self, required: int, offered: int):
        super().__init__(f"Deposit must be exactly {required}, got {offered}")
        self.required = required
        self.offered = offered


class LoanNotActive(BusinessRuleError):
    """Loan has already been settled."""

    pass


class InvalidCondition(BusinessRuleError):
    """Condition value is outside the known conditions."""

    pass


class LedgerError(LendingError):
    """The ledger failed a transfer or persist.

    Attributes:
        retryable: True when nothing was committed and the caller may
            safely repeat the operation.
    """

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class InsufficientFunds(LedgerError):
    """Payer balance does not cover the amount."""

    def __init__(self, identity: str, required: int, available: int):
        super().__init__(
            f"Insufficient funds for {identity}: need {required}, have {available}",
            retryable=True,
        )
        self.identity = identity
        self.required = required
        self.available = available
