"""Column types shared by the lending tables."""

from typing import Optional

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator

# Largest amount the ledger accepts (an unsigned 256-bit word, 78 digits)
MAX_AMOUNT = 2**256 - 1

# Durations stay well inside 64-bit integers once added to a timestamp
MAX_DURATION = 2**62


class Amount(TypeDecorator):
    """Integer amount in base units, stored as decimal text.

    SQLite integers stop at 64 bits, which is too small for wei-denominated
    deposits. Values round-trip as Python ints; SQL-side arithmetic and
    ordering on these columns is not supported.
    """

    impl = String(78)
    cache_ok = True

    def process_bind_param(self, value: Optional[int], dialect) -> Optional[str]:
        if value is None:
            return None
        return str(int(value))

    def process_result_value(self, value: Optional[str], dialect) -> Optional[int]:
        if value is None:
            return None
        return int(value)
