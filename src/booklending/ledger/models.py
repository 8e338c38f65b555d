"""SQLAlchemy models for the value ledger.

Tables:
- accounts: Currency and reward balances per identity
- escrows: Deposits held until a loan is settled
- counters: Monotonic platform counters, also used as id allocators
"""

from typing import Optional

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ..db.models import Base, unix_now
from ..db.types import Amount


class Account(Base):
    """Balances held by one identity."""

    __tablename__ = "accounts"

    identity: Mapped[str] = mapped_column(String(100), primary_key=True)
    balance: Mapped[int] = mapped_column(Amount, default=0, nullable=False)
    reward_balance: Mapped[int] = mapped_column(Amount, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<Account(identity='{self.identity}', balance={self.balance})>"


class Escrow(Base):
    """A deposit held by the ledger on behalf of a payer."""

    __tablename__ = "escrows"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payer: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Amount, nullable=False)
    released: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[int] = mapped_column(Integer, default=unix_now)
    released_at: Mapped[Optional[int]] = mapped_column(Integer)

    def __repr__(self) -> str:
        return f"<Escrow(id={self.id}, payer='{self.payer}', amount={self.amount})>"


class Counter(Base):
    """Named monotonic counter."""

    __tablename__ = "counters"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
