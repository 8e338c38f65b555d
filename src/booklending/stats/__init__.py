"""Leaderboards, platform statistics and listings."""

from .queries import LendingQueries
from .schemas import (
    LeaderboardEntry,
    LeaderboardKind,
    LoanSummary,
    PlatformStats,
)

__all__ = [
    "LendingQueries",
    "LeaderboardEntry",
    "LeaderboardKind",
    "LoanSummary",
    "PlatformStats",
]
