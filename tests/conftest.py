"""Pytest configuration and shared fixtures.

This module provides fixtures for testing booklending, including
databases, a controllable clock, a wired engine and funded participants.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from booklending.config import reset_config
from booklending.db.schemas import BookCondition
from booklending.db.sqlite import Database, reset_db
from booklending.events import EventBus
from booklending.ledger import SqlLedger
from booklending.lending import LendingEngine, PenaltyPolicy
from booklending.lending.schemas import BookResponse
from booklending.reputation import ReputationLedger
from booklending.stats import LendingQueries

DAY = 86400
START_TIME = 1_700_000_000

ALICE = "0xa11ce00000000000000000000000000000000001"
BOB = "0xb0b0000000000000000000000000000000000002"
CAROL = "0xca401000000000000000000000000000000000003"

STARTING_BALANCE = 1000


class FakeClock:
    """Manually advanced clock returning unix seconds."""

    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int = 0, days: int = 0) -> None:
        self.now += seconds + days * DAY


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture(scope="function")
def file_db(temp_db_path: Path) -> Generator[Database, None, None]:
    """Create a file-backed test database."""
    reset_db()
    reset_config()

    database = Database(str(temp_db_path))
    database.create_tables()
    yield database

    database.engine.dispose()
    reset_db()


@pytest.fixture
def db() -> Database:
    """Create an in-memory database for testing."""
    database = Database(":memory:")
    database.create_tables()
    return database


# ============================================================================
# Component Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def policy() -> PenaltyPolicy:
    return PenaltyPolicy()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def ledger(db: Database) -> SqlLedger:
    return SqlLedger(db)


@pytest.fixture
def reputation(db: Database, bus: EventBus) -> ReputationLedger:
    return ReputationLedger(db, bus)


@pytest.fixture
def engine(ledger, bus, policy, clock, reputation) -> LendingEngine:
    """Lending engine with the reputation ledger subscribed."""
    return LendingEngine(ledger=ledger, bus=bus, policy=policy, clock=clock)


@pytest.fixture
def queries(db: Database, clock: FakeClock) -> LendingQueries:
    return LendingQueries(db, clock=clock)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def funded(ledger: SqlLedger) -> list[str]:
    """Give every sample participant a starting balance."""
    for identity in (ALICE, BOB, CAROL):
        ledger.fund(identity, STARTING_BALANCE)
    return [ALICE, BOB, CAROL]


def list_sample_book(engine: LendingEngine, owner: str = ALICE, **overrides) -> BookResponse:
    """List a book with sensible defaults."""
    fields = dict(
        title="The Left Hand of Darkness",
        author="Ursula K. Le Guin",
        condition=BookCondition.GOOD,
        deposit_amount=100,
        duration=7 * DAY,
        pickup_location="Main St. Library, front desk",
        catalog_id="9780441478125",
    )
    fields.update(overrides)
    return engine.list_book(owner, **fields)


@pytest.fixture
def listed_book(engine: LendingEngine, funded) -> BookResponse:
    """A book listed by Alice with a 100 unit deposit and 7 day duration."""
    return list_sample_book(engine)


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Remove BOOKLENDING_* variables for the duration of a test."""
    saved = {k: v for k, v in os.environ.items() if k.startswith("BOOKLENDING_")}
    for key in saved:
        del os.environ[key]
    reset_config()
    yield
    for key in [k for k in os.environ if k.startswith("BOOKLENDING_")]:
        del os.environ[key]
    os.environ.update(saved)
    reset_config()


# ============================================================================
# CLI Testing Fixtures
# ============================================================================


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    from typer.testing import CliRunner
    return CliRunner()


@pytest.fixture
def cli_app():
    """Get the CLI app for testing."""
    from booklending.cli import app
    return app
