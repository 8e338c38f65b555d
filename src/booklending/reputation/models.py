"""SQLAlchemy models for participant reputation.

Tables:
- profiles: Display name and activity counters per identity
- settled_loans: Loan ids whose settlement has been applied
"""

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ..db.models import Base, unix_now
from ..db.types import Amount

DEFAULT_USERNAME = "Anonymous"


class Profile(Base):
    """Participant profile - derived from settled loans."""

    __tablename__ = "profiles"

    identity: Mapped[str] = mapped_column(String(100), primary_key=True)
    username: Mapped[str] = mapped_column(String(32), default=DEFAULT_USERNAME)
    is_registered: Mapped[bool] = mapped_column(Boolean, default=False)

    # Statistics
    books_lent: Mapped[int] = mapped_column(Integer, default=0, index=True)
    books_borrowed: Mapped[int] = mapped_column(Integer, default=0, index=True)
    total_earnings: Mapped[int] = mapped_column(Amount, default=0)

    created_at: Mapped[int] = mapped_column(Integer, default=unix_now)

    def __repr__(self) -> str:
        return f"<Profile(identity='{self.identity}', username='{self.username}')>"


class SettledLoan(Base):
    """Marker that a loan's settlement was counted."""

    __tablename__ = "settled_loans"

    loan_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    applied_at: Mapped[int] = mapped_column(Integer, default=unix_now)
