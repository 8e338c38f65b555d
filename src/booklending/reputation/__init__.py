"""Participant reputation derived from settled loans."""

from .manager import ReputationLedger
from .models import DEFAULT_USERNAME, Profile, SettledLoan
from .schemas import DisplayNameUpdate, ProfileResponse

__all__ = [
    "ReputationLedger",
    "Profile",
    "SettledLoan",
    "DEFAULT_USERNAME",
    "DisplayNameUpdate",
    "ProfileResponse",
]
