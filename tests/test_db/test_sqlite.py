"""Tests for SQLite database operations."""

from sqlalchemy import inspect

from booklending.db.sqlite import Database, get_db, reset_db
from booklending.lending.models import Book, Loan

from conftest import ALICE, BOB, START_TIME


def make_book(book_id: int = 1, **overrides) -> Book:
    fields = dict(
        id=book_id,
        lender=ALICE,
        title="Dune",
        author="Frank Herbert",
        condition=1,
        deposit_amount=100,
        duration=7 * 86400,
        pickup_location="Front desk",
        is_available=True,
        times_lent=0,
    )
    fields.update(overrides)
    return Book(**fields)


class TestDatabaseCreation:
    """Tests for database initialization."""

    def test_database_creates_tables(self, db: Database):
        """All lending, ledger and reputation tables exist."""
        tables = set(inspect(db.engine).get_table_names())

        assert {
            "books",
            "loans",
            "accounts",
            "escrows",
            "counters",
            "profiles",
            "settled_loans",
        } <= tables

    def test_database_path_created(self, file_db: Database):
        assert file_db.db_path.exists()
        assert file_db.is_memory is False

    def test_memory_database(self, db: Database):
        assert db.is_memory is True

    def test_creates_parent_directory(self, tmp_path):
        database = Database(str(tmp_path / "nested" / "dir" / "lending.db"))
        database.create_tables()

        assert (tmp_path / "nested" / "dir").is_dir()
        database.engine.dispose()

    def test_drop_tables(self, db: Database):
        db.drop_tables()
        assert inspect(db.engine).get_table_names() == []


class TestSessions:
    """Tests for session management."""

    def test_session_commits(self, db: Database):
        with db.get_session() as session:
            session.add(make_book())

        with db.read_session() as session:
            book = session.get(Book, 1)
            assert book.title == "Dune"
            assert book.created_at > 0

    def test_session_rolls_back_on_error(self, db: Database):
        try:
            with db.get_session() as session:
                session.add(make_book())
                session.flush()
                raise RuntimeError("abort")
        except RuntimeError:
            pass

        with db.read_session() as session:
            assert session.get(Book, 1) is None

    def test_file_sessions_see_committed_data(self, file_db: Database):
        with file_db.get_session() as session:
            session.add(make_book())
            session.add(
                Loan(
                    id=1,
                    book_id=1,
                    borrower=BOB,
                    deposit_paid=100,
                    escrow_ref=1,
                    start_time=START_TIME,
                    deadline=START_TIME + 7 * 86400,
                    status=0,
                )
            )

        with file_db.read_session() as session:
            loan = session.get(Loan, 1)
            assert loan.book.title == "Dune"
            assert loan.is_active
            assert loan.is_settled is False


class TestLoanHelpers:
    """Tests for derived loan fields."""

    def make_loan(self, status: int = 0) -> Loan:
        return Loan(
            id=1,
            book_id=1,
            borrower=BOB,
            deposit_paid=100,
            escrow_ref=1,
            start_time=START_TIME,
            deadline=START_TIME + 7 * 86400,
            status=status,
        )

    def test_days_left_rounds_up(self):
        loan = self.make_loan()
        assert loan.days_left(START_TIME) == 7
        assert loan.days_left(START_TIME + 1) == 7
        assert loan.days_left(START_TIME + 6 * 86400 + 1) == 1

    def test_days_left_zero_after_deadline(self):
        loan = self.make_loan()
        assert loan.days_left(START_TIME + 7 * 86400) == 0
        assert loan.days_left(START_TIME + 30 * 86400) == 0

    def test_is_overdue(self):
        loan = self.make_loan()
        assert loan.is_overdue(loan.deadline) is False
        assert loan.is_overdue(loan.deadline + 1) is True

    def test_settled_loan_is_never_overdue(self):
        loan = self.make_loan(status=1)
        assert loan.is_overdue(loan.deadline + 86400) is False


class TestGlobalDatabase:
    """Tests for the global database instance."""

    def test_get_db_is_cached(self, temp_db_path):
        reset_db()
        try:
            first = get_db(str(temp_db_path))
            assert get_db() is first
        finally:
            first.engine.dispose()
            reset_db()

    def test_get_db_uses_env(self, temp_db_path, monkeypatch):
        monkeypatch.setenv("BOOKLENDING_DB_PATH", str(temp_db_path))
        reset_db()
        try:
            database = get_db()
            assert database.db_path == temp_db_path
        finally:
            database.engine.dispose()
            reset_db()
