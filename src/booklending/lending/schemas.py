"""Pydantic schemas for book lending."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..db.schemas import BookCondition, LoanStatus
from ..db.types import MAX_AMOUNT, MAX_DURATION


class BookListing(BaseModel):
    """Schema for listing a book."""

    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=500)
    catalog_id: Optional[str] = Field(None, max_length=32)
    condition: BookCondition
    deposit_amount: int = Field(..., gt=0, le=MAX_AMOUNT, strict=True)
    duration: int = Field(..., gt=0, le=MAX_DURATION, strict=True, description="Loan duration in seconds")
    pickup_location: str = Field(..., min_length=1)

    @field_validator("title", "author", "pickup_location")
    @classmethod
    def not_blank(cls, v: str) -> str:
        """Reject whitespace-only text."""
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("catalog_id")
    @classmethod
    def empty_catalog_id_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class BookResponse(BaseModel):
    """Schema for book responses."""

    id: int
    lender: str
    title: str
    author: str
    catalog_id: Optional[str]
    condition: BookCondition
    deposit_amount: int
    duration: int
    pickup_location: str
    is_available: bool
    times_lent: int
    created_at: int

    model_config = {"from_attributes": True}

    @property
    def duration_days(self) -> float:
        return self.duration / 86400


class LoanResponse(BaseModel):
    """Schema for loan responses."""

    id: int
    book_id: int
    borrower: str
    deposit_paid: int
    start_time: int
    deadline: int
    status: LoanStatus
    returned_at: Optional[int]
    condition_after: Optional[BookCondition] = None
    late_days: Optional[int] = None
    penalty_amount: Optional[int] = None
    refund_amount: Optional[int] = None
    lender_reward: Optional[int] = None
    borrower_reward: Optional[int] = None

    model_config = {"from_attributes": True}


class Settlement(BaseModel):
    """Result of returning a book."""

    loan_id: int
    book_id: int
    lender: str
    borrower: str
    status: LoanStatus
    deposit_paid: int
    late_days: int
    penalty_rate_bp: int
    penalty_amount: int
    refund_amount: int
    lender_reward: int
    borrower_reward: int
    returned_at: int

    @property
    def borrower_reward_withheld(self) -> bool:
        return self.borrower_reward == 0
