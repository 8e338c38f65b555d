"""Pydantic schemas for participant profiles."""

from pydantic import BaseModel, Field, field_validator

from .models import DEFAULT_USERNAME


class DisplayNameUpdate(BaseModel):
    """Schema for setting a display name."""

    username: str = Field(..., min_length=1, max_length=32)

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, v):
        return v.strip() if isinstance(v, str) else v


class ProfileResponse(BaseModel):
    """Schema for profile responses."""

    identity: str
    username: str = DEFAULT_USERNAME
    is_registered: bool = False
    books_lent: int = 0
    books_borrowed: int = 0
    total_earnings: int = 0

    model_config = {"from_attributes": True}
