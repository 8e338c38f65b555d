"""Command-line interface for booklending.

Built with Typer for commands and Rich for output.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .config import get_config
from .db import BookCondition, get_db
from .errors import LendingError
from .events import EventBus
from .ledger import SqlLedger
from .lending import LendingEngine
from .reputation import ReputationLedger
from .stats import LeaderboardKind, LendingQueries

SECONDS_PER_DAY = 86400

# Create the main app
app = typer.Typer(
    name="booklending",
    help="Lend and borrow books against a refundable deposit.",
    no_args_is_help=True,
)

# Rich console for pretty output; logs go to stderr
console = Console()
err_console = Console(stderr=True)


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


@dataclass
class Services:
    """Engine, reputation ledger and queries wired to one database."""

    ledger: SqlLedger
    engine: LendingEngine
    reputation: ReputationLedger
    queries: LendingQueries


def get_services() -> Services:
    """Wire up the components against the configured database."""
    config = get_config()
    errors = config.validate()
    if errors:
        for message in errors:
            print_error(f"Invalid configuration: {message}")
        raise typer.Exit(1)

    db = get_db(str(config.db_path))
    bus = EventBus()
    ledger = SqlLedger(db)
    reputation = ReputationLedger(db, bus)
    engine = LendingEngine(ledger, bus, config.penalty_policy())
    return Services(ledger=ledger, engine=engine, reputation=reputation, queries=LendingQueries(db))


def resolve_identity(identity: Optional[str]) -> str:
    """Use --as, falling back to BOOKLENDING_IDENTITY."""
    identity = identity or get_config().identity
    if not identity:
        print_error("No identity given. Use --as or set BOOKLENDING_IDENTITY.")
        raise typer.Exit(1)
    return identity


def parse_condition(value: str) -> BookCondition:
    """Accept a condition by name (mint, good, fair, damaged) or number."""
    text = value.strip()
    try:
        if text.isdigit():
            return BookCondition(int(text))
        return BookCondition[text.upper()]
    except (KeyError, ValueError):
        print_error(f"Invalid condition: {value}")
        console.print(f"[dim]Valid: {', '.join(c.name.lower() for c in BookCondition)}[/dim]")
        raise typer.Exit(1)


def format_time(timestamp: Optional[int]) -> str:
    if not timestamp:
        return "-"
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M")


CONDITION_STYLES = {
    BookCondition.MINT: "green",
    BookCondition.GOOD: "cyan",
    BookCondition.FAIR: "yellow",
    BookCondition.DAMAGED: "red",
}

identity_option = typer.Option(None, "--as", "-u", help="Acting identity (account address)")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine activity"),
) -> None:
    """Configure logging before any command runs."""
    level = "INFO" if verbose else get_config().log_level
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


# ============================================================================
# Lending Commands
# ============================================================================


@app.command("list-book")
def list_book(
    title: str = typer.Option(..., "--title", "-t", help="Book title"),
    author: str = typer.Option(..., "--author", "-a", help="Book author"),
    deposit: int = typer.Option(..., "--deposit", "-d", help="Deposit in base units"),
    days: int = typer.Option(14, "--days", help="Loan duration in days"),
    pickup: str = typer.Option(..., "--pickup", "-p", help="Pickup location"),
    condition: str = typer.Option("good", "--condition", "-c", help="mint, good, fair or damaged"),
    isbn: Optional[str] = typer.Option(None, "--isbn", "-i", help="ISBN or catalog id"),
    identity: Optional[str] = identity_option,
) -> None:
    """List a book for lending."""
    owner = resolve_identity(identity)
    services = get_services()

    try:
        book = services.engine.list_book(
            owner=owner,
            title=title,
            author=author,
            condition=parse_condition(condition),
            deposit_amount=deposit,
            duration=days * SECONDS_PER_DAY,
            pickup_location=pickup,
            catalog_id=isbn,
        )
    except LendingError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Listed book #{book.id}: {book.title}")
    print_info(
        f"Deposit {book.deposit_amount}, {days} day loan, pickup at {book.pickup_location}"
    )


@app.command()
def borrow(
    book_id: int = typer.Argument(..., help="Book ID to borrow"),
    deposit: Optional[int] = typer.Option(
        None, "--deposit", "-d", help="Deposit to pay (default: the listed deposit)"
    ),
    identity: Optional[str] = identity_option,
) -> None:
    """Borrow a book, locking the deposit in escrow."""
    borrower = resolve_identity(identity)
    services = get_services()

    try:
        if deposit is None:
            deposit = services.engine.get_book(book_id).deposit_amount
        loan = services.engine.borrow_book(borrower, book_id, deposit)
    except LendingError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Loan #{loan.id} started for book #{book_id}")
    print_info(f"Deposit {loan.deposit_paid} held in escrow. Due {format_time(loan.deadline)}")


@app.command("return")
def return_book(
    loan_id: int = typer.Argument(..., help="Loan ID to return"),
    condition: str = typer.Option("good", "--condition", "-c", help="Condition on return"),
) -> None:
    """Return a borrowed book and settle the deposit."""
    services = get_services()

    try:
        settlement = services.engine.return_book(loan_id, parse_condition(condition))
    except LendingError as e:
        print_error(str(e))
        raise typer.Exit(1)

    lines = [
        f"Status: [bold]{settlement.status.label}[/bold]",
        f"Refund to borrower: {settlement.refund_amount}",
        f"Penalty to lender: {settlement.penalty_amount}",
        f"Lender reward: {settlement.lender_reward} BOOK",
    ]
    if settlement.borrower_reward:
        lines.append(f"Borrower reward: {settlement.borrower_reward} BOOK")
    else:
        lines.append("[yellow]Borrower reward withheld[/yellow]")
    if settlement.late_days:
        lines.append(f"[red]{settlement.late_days} day(s) late[/red]")

    console.print(Panel("\n".join(lines), title=f"Loan #{settlement.loan_id} settled"))


# ============================================================================
# Query Commands
# ============================================================================


@app.command()
def books(
    available: bool = typer.Option(False, "--available", help="Only available books"),
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Only books by this lender"),
) -> None:
    """List books."""
    queries = get_services().queries

    if owner:
        results = queries.list_books_by_owner(owner)
        if available:
            results = [b for b in results if b.is_available]
    else:
        results = queries.list_books(available_only=available)

    if not results:
        console.print("[dim]No books found[/dim]")
        return

    table = Table(title="Books", show_header=True, header_style="bold magenta")
    table.add_column("ID", justify="right")
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("Author", style="green", max_width=25)
    table.add_column("Condition")
    table.add_column("Deposit", justify="right")
    table.add_column("Days", justify="right")
    table.add_column("Status")
    table.add_column("Lent", justify="right")

    for book in results:
        style = CONDITION_STYLES[book.condition]
        table.add_row(
            str(book.id),
            book.title,
            book.author,
            f"[{style}]{book.condition.label}[/{style}]",
            str(book.deposit_amount),
            str(book.duration // SECONDS_PER_DAY),
            "[green]available[/green]" if book.is_available else "[yellow]on loan[/yellow]",
            str(book.times_lent),
        )

    console.print(table)


@app.command()
def loans(
    identity: Optional[str] = identity_option,
) -> None:
    """List your loans."""
    borrower = resolve_identity(identity)
    results = get_services().queries.list_loans_by_borrower(borrower)

    if not results:
        console.print("[dim]No loans found[/dim]")
        return

    table = Table(title="Loans", show_header=True, header_style="bold magenta")
    table.add_column("ID", justify="right")
    table.add_column("Book", style="cyan", max_width=30)
    table.add_column("Deposit", justify="right")
    table.add_column("Due")
    table.add_column("Status")

    for loan in results:
        if loan.status.is_terminal:
            status_str = f"[dim]{loan.status.label.lower()}[/dim]"
        elif loan.is_overdue:
            status_str = "[bold red]OVERDUE[/bold red]"
        else:
            status_str = f"[green]active ({loan.days_left}d left)[/green]"

        table.add_row(
            str(loan.id),
            loan.book_title,
            str(loan.deposit_paid),
            format_time(loan.deadline),
            status_str,
        )

    console.print(table)


@app.command()
def leaderboard(
    borrowers: bool = typer.Option(False, "--borrowers", "-b", help="Rank borrowers instead of lenders"),
    limit: int = typer.Option(10, "--limit", "-l", help="Number of entries"),
) -> None:
    """Show the top lenders or borrowers."""
    kind = LeaderboardKind.BORROWERS if borrowers else LeaderboardKind.LENDERS

    try:
        entries = get_services().queries.leaderboard(kind, limit)
    except LendingError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not entries:
        console.print(f"[dim]No {kind.value} yet. Be the first![/dim]")
        return

    table = Table(title=f"Top {kind.value.title()}", show_header=True, header_style="bold magenta")
    table.add_column("Rank", justify="right")
    table.add_column("Name")
    table.add_column("Identity", style="dim")
    table.add_column("Lent" if kind == LeaderboardKind.LENDERS else "Borrowed", justify="right")

    for entry in entries:
        count = entry.books_lent if kind == LeaderboardKind.LENDERS else entry.books_borrowed
        table.add_row(str(entry.rank), entry.username, entry.identity, str(count))

    console.print(table)


@app.command()
def stats() -> None:
    """Show platform statistics."""
    summary = get_services().queries.statistics()

    console.print(Panel(
        f"Total books: [bold]{summary.total_books}[/bold]\n"
        f"Total loans: [bold]{summary.total_loans}[/bold]\n"
        f"Active loans: {summary.active_loans}\n"
        f"Available books: {summary.available_books}\n"
        f"Participants: {summary.total_participants}",
        title="Platform Statistics",
    ))


@app.command()
def profile(
    identity: Optional[str] = typer.Argument(None, help="Identity to show (default: you)"),
) -> None:
    """Show a participant's reputation."""
    identity = resolve_identity(identity)
    services = get_services()
    result = services.queries.get_profile(identity)

    console.print(Panel(
        f"Name: [bold]{result.username}[/bold]"
        f"{'' if result.is_registered else ' [dim](unregistered)[/dim]'}\n"
        f"Books lent: {result.books_lent}\n"
        f"Books borrowed: {result.books_borrowed}\n"
        f"Total earnings: {result.total_earnings} BOOK\n"
        f"Balance: {services.ledger.balance_of(identity)}\n"
        f"Reward balance: {services.ledger.reward_balance_of(identity)} BOOK",
        title=identity,
    ))


@app.command("set-name")
def set_name(
    username: str = typer.Argument(..., help="Display name"),
    identity: Optional[str] = identity_option,
) -> None:
    """Set your display name."""
    identity = resolve_identity(identity)

    try:
        result = get_services().reputation.set_display_name(identity, username)
    except LendingError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Display name set to {result.username}")


# ============================================================================
# Reputation Commands
# ============================================================================

reputation_app = typer.Typer(help="Maintain participant reputation.")
app.add_typer(reputation_app, name="reputation")


@reputation_app.command("rebuild")
def reputation_rebuild() -> None:
    """Replay settled loans into profiles that missed them."""
    applied = get_services().reputation.rebuild_from_loans()

    if applied:
        print_success(f"Applied {applied} missed settlement(s)")
    else:
        print_info("Profiles are up to date")


# ============================================================================
# Account Commands
# ============================================================================


@app.command()
def fund(
    amount: int = typer.Argument(..., help="Amount in base units"),
    identity: Optional[str] = identity_option,
) -> None:
    """Add funds to your account."""
    identity = resolve_identity(identity)

    try:
        balance = get_services().ledger.fund(identity, amount)
    except LendingError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Balance is now {balance}")


@app.command()
def balance(
    identity: Optional[str] = identity_option,
) -> None:
    """Show your balances."""
    identity = resolve_identity(identity)
    ledger = get_services().ledger

    console.print(f"Balance: [bold]{ledger.balance_of(identity)}[/bold]")
    console.print(f"Rewards: [bold]{ledger.reward_balance_of(identity)}[/bold] BOOK")


# ============================================================================
# Version Command
# ============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    console.print(f"booklending version {__version__}")


# ============================================================================
# Main Entry Point
# ============================================================================


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
