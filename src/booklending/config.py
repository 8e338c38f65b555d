"""Configuration management for booklending.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .lending.policy import BASIS_POINTS, PenaltyPolicy

# Load .env file if present
load_dotenv()


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path

    # Logging
    log_level: str

    # Penalty and reward policy
    late_rate_bp: int  # per day late
    damage_rate_bp: int
    max_rate_bp: int
    lender_reward: int
    borrower_reward: int

    # CLI
    identity: Optional[str]

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "BOOKLENDING_DB_PATH",
            str(Path.home() / ".booklending" / "lending.db"),
        )
        db_path = Path(db_path_str) if db_path_str == ":memory:" else Path(db_path_str).expanduser()

        return cls(
            db_path=db_path,
            log_level=os.environ.get("BOOKLENDING_LOG_LEVEL", "WARNING").upper(),
            late_rate_bp=int(os.environ.get("BOOKLENDING_LATE_RATE_BP", "500")),
            damage_rate_bp=int(os.environ.get("BOOKLENDING_DAMAGE_RATE_BP", "5000")),
            max_rate_bp=int(os.environ.get("BOOKLENDING_MAX_RATE_BP", "10000")),
            lender_reward=int(os.environ.get("BOOKLENDING_LENDER_REWARD", "10")),
            borrower_reward=int(os.environ.get("BOOKLENDING_BORROWER_REWARD", "2")),
            identity=os.environ.get("BOOKLENDING_IDENTITY"),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        for name in ("late_rate_bp", "damage_rate_bp", "max_rate_bp", "lender_reward", "borrower_reward"):
            if getattr(self, name) < 0:
                errors.append(f"{name} must not be negative")

        if self.max_rate_bp > BASIS_POINTS:
            errors.append(f"max_rate_bp cannot exceed {BASIS_POINTS}")

        # Check database directory is writable
        if str(self.db_path) != ":memory:" and not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        return errors

    def penalty_policy(self) -> PenaltyPolicy:
        """Build the settlement policy from the configured rates."""
        return PenaltyPolicy(
            late_rate_bp_per_day=self.late_rate_bp,
            damage_rate_bp=self.damage_rate_bp,
            max_rate_bp=self.max_rate_bp,
            lender_reward=self.lender_reward,
            borrower_reward=self.borrower_reward,
        )


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
