"""Tests for the CLI interface."""

import os
import tempfile
from pathlib import Path

import pytest
from sqlalchemy import delete
from typer.testing import CliRunner

from booklending.cli import app
from booklending.config import reset_config
from booklending.db.sqlite import get_db, reset_db
from booklending.reputation.models import Profile, SettledLoan

LENDER = "0xlender"
BORROWER = "0xborrower"


@pytest.fixture(autouse=True)
def setup_test_db(clean_env):
    """Set up a test database for each test."""
    reset_db()

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    os.environ["BOOKLENDING_DB_PATH"] = db_path
    reset_config()

    yield

    # Cleanup
    reset_db()
    if Path(db_path).exists():
        Path(db_path).unlink()


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


def list_book(runner, deposit="100", days="7"):
    return runner.invoke(app, [
        "list-book",
        "--as", LENDER,
        "--title", "Dune",
        "--author", "Frank Herbert",
        "--deposit", deposit,
        "--days", days,
        "--pickup", "Front desk",
    ])


def fund(runner, identity=BORROWER, amount="500"):
    return runner.invoke(app, ["fund", amount, "--as", identity])


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_help(self, runner: CliRunner):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "refundable deposit" in result.stdout

    def test_version(self, runner: CliRunner):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout

    def test_identity_required(self, runner: CliRunner):
        result = runner.invoke(app, ["balance"])
        assert result.exit_code == 1
        assert "No identity given" in result.stdout

    def test_invalid_config_rejected(self, runner: CliRunner):
        os.environ["BOOKLENDING_MAX_RATE_BP"] = "20000"
        reset_config()

        result = runner.invoke(app, ["stats"])

        assert result.exit_code == 1
        assert "max_rate_bp" in result.stdout

    def test_identity_from_env(self, runner: CliRunner):
        os.environ["BOOKLENDING_IDENTITY"] = BORROWER
        reset_config()

        result = runner.invoke(app, ["fund", "42"])

        assert result.exit_code == 0
        assert "Balance is now 42" in result.stdout


class TestLendingCommands:
    """Tests for list-book, borrow and return."""

    def test_list_book(self, runner: CliRunner):
        result = list_book(runner)
        assert result.exit_code == 0
        assert "Listed book #1: Dune" in result.stdout

    def test_list_book_invalid_deposit(self, runner: CliRunner):
        result = list_book(runner, deposit="0")
        assert result.exit_code == 1
        assert "Error" in result.stdout

    def test_list_book_invalid_condition(self, runner: CliRunner):
        result = runner.invoke(app, [
            "list-book", "--as", LENDER, "--title", "Dune", "--author", "Frank Herbert",
            "--deposit", "100", "--pickup", "Front desk", "--condition", "soggy",
        ])
        assert result.exit_code == 1
        assert "Invalid condition" in result.stdout

    def test_borrow_and_return(self, runner: CliRunner):
        list_book(runner)
        fund(runner)

        result = runner.invoke(app, ["borrow", "1", "--as", BORROWER])
        assert result.exit_code == 0
        assert "Loan #1 started for book #1" in result.stdout

        result = runner.invoke(app, ["return", "1", "--condition", "good"])
        assert result.exit_code == 0
        assert "Loan #1 settled" in result.stdout
        assert "Returned" in result.stdout

        result = runner.invoke(app, ["balance", "--as", BORROWER])
        assert "Balance: 500" in result.stdout
        assert "Rewards: 2" in result.stdout

    def test_damaged_return_withholds_reward(self, runner: CliRunner):
        list_book(runner)
        fund(runner)
        runner.invoke(app, ["borrow", "1", "--as", BORROWER])

        result = runner.invoke(app, ["return", "1", "--condition", "damaged"])

        assert result.exit_code == 0
        assert "Borrower reward withheld" in result.stdout

    def test_large_deposit(self, runner: CliRunner):
        deposit = str(10**19)
        list_book(runner, deposit=deposit)
        fund(runner, amount=str(2 * 10**19))

        result = runner.invoke(app, ["borrow", "1", "--as", BORROWER])
        assert result.exit_code == 0
        assert f"Deposit {deposit} held in escrow" in result.stdout

        result = runner.invoke(app, ["return", "1"])
        assert result.exit_code == 0

        result = runner.invoke(app, ["balance", "--as", BORROWER])
        assert f"Balance: {2 * 10**19}" in result.stdout

    def test_borrow_own_book(self, runner: CliRunner):
        list_book(runner)
        fund(runner, identity=LENDER)

        result = runner.invoke(app, ["borrow", "1", "--as", LENDER])

        assert result.exit_code == 1
        assert "Cannot borrow your own book" in result.stdout

    def test_borrow_wrong_deposit(self, runner: CliRunner):
        list_book(runner)
        fund(runner)

        result = runner.invoke(app, ["borrow", "1", "--deposit", "50", "--as", BORROWER])

        assert result.exit_code == 1
        assert "Deposit must be exactly 100" in result.stdout

    def test_borrow_missing_book(self, runner: CliRunner):
        result = runner.invoke(app, ["borrow", "9", "--as", BORROWER])
        assert result.exit_code == 1
        assert "Book not found" in result.stdout

    def test_return_twice(self, runner: CliRunner):
        list_book(runner)
        fund(runner)
        runner.invoke(app, ["borrow", "1", "--as", BORROWER])
        runner.invoke(app, ["return", "1"])

        result = runner.invoke(app, ["return", "1"])

        assert result.exit_code == 1
        assert "not active" in result.stdout


class TestQueryCommands:
    """Tests for books, loans, leaderboard, stats and profile."""

    def test_books_empty(self, runner: CliRunner):
        result = runner.invoke(app, ["books"])
        assert result.exit_code == 0
        assert "No books found" in result.stdout

    def test_books(self, runner: CliRunner):
        list_book(runner)
        result = runner.invoke(app, ["books", "--available"])
        assert result.exit_code == 0
        assert "Dune" in result.stdout

    def test_loans(self, runner: CliRunner):
        list_book(runner)
        fund(runner)
        runner.invoke(app, ["borrow", "1", "--as", BORROWER])

        result = runner.invoke(app, ["loans", "--as", BORROWER])

        assert result.exit_code == 0
        assert "Dune" in result.stdout
        assert "active" in result.stdout

    def test_leaderboard_empty(self, runner: CliRunner):
        result = runner.invoke(app, ["leaderboard"])
        assert result.exit_code == 0
        assert "No lenders yet" in result.stdout

    def test_leaderboard(self, runner: CliRunner):
        list_book(runner)
        fund(runner)
        runner.invoke(app, ["borrow", "1", "--as", BORROWER])
        runner.invoke(app, ["return", "1"])
        runner.invoke(app, ["set-name", "lender", "--as", LENDER])

        result = runner.invoke(app, ["leaderboard"])

        assert result.exit_code == 0
        assert "lender" in result.stdout

    def test_leaderboard_invalid_limit(self, runner: CliRunner):
        result = runner.invoke(app, ["leaderboard", "--limit", "0"])
        assert result.exit_code == 1

    def test_stats(self, runner: CliRunner):
        list_book(runner)

        result = runner.invoke(app, ["stats"])

        assert result.exit_code == 0
        assert "Total books: 1" in result.stdout
        assert "Total loans: 0" in result.stdout

    def test_profile_defaults(self, runner: CliRunner):
        result = runner.invoke(app, ["profile", "0xstranger"])
        assert result.exit_code == 0
        assert "Anonymous" in result.stdout

    def test_set_name(self, runner: CliRunner):
        result = runner.invoke(app, ["set-name", "Reader", "--as", BORROWER])
        assert result.exit_code == 0
        assert "Display name set to Reader" in result.stdout

    def test_set_name_too_long(self, runner: CliRunner):
        result = runner.invoke(app, ["set-name", "x" * 40, "--as", BORROWER])
        assert result.exit_code == 1


class TestReputationCommands:
    """Tests for reputation maintenance."""

    def test_rebuild_up_to_date(self, runner: CliRunner):
        result = runner.invoke(app, ["reputation", "rebuild"])
        assert result.exit_code == 0
        assert "Profiles are up to date" in result.stdout

    def test_rebuild_restores_lost_profiles(self, runner: CliRunner):
        list_book(runner)
        fund(runner)
        runner.invoke(app, ["borrow", "1", "--as", BORROWER])
        runner.invoke(app, ["return", "1"])

        with get_db().get_session() as session:
            session.execute(delete(SettledLoan))
            session.execute(delete(Profile))

        result = runner.invoke(app, ["reputation", "rebuild"])
        assert result.exit_code == 0
        assert "Applied 1 missed settlement(s)" in result.stdout

        result = runner.invoke(app, ["profile", LENDER])
        assert "Books lent: 1" in result.stdout

        result = runner.invoke(app, ["reputation", "rebuild"])
        assert "Profiles are up to date" in result.stdout
