"""Main CLI entry point for the trade journal.

This module provides the command-line interface for importing broker
exports and inspecting the resulting ledger.
"""

import os
import sys
from pathlib import Path

# Load .env file into environment variables
from dotenv import load_dotenv

load_dotenv()

# Disable Rich help formatting to avoid compatibility issues
os.environ["_TYPER_STANDARD_TRACEBACK"] = "1"

import typer
from rich.console import Console

from src.config.base import get_config
from src.config.logging import setup_logging
from src.data.database import init_database

app = typer.Typer(
    name="journal",
    help="Trading journal: broker fill import and trade ledger",
    add_completion=False,
    pretty_exceptions_enable=False,
)

console = Console()


@app.callback()
def _bootstrap(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    """Configure logging and the database before any command runs."""
    config = get_config()
    log_level = "DEBUG" if verbose else config.log_level
    setup_logging(log_level=log_level, log_file=config.log_file, console_level="WARNING")
    init_database()


@app.command(name="init")
def init() -> None:
    """Initialize the journal (database, directories)."""
    config = get_config()
    config.ensure_directories()
    console.print(f"✓ Database initialized at {config.database_url}")


@app.command(name="import")
def journal_import(
    file: Path = typer.Argument(..., help="Broker fill export (CSV)."),
    user: str = typer.Option(
        None, "--user", "-u",
        help="Owning user id. Defaults to JOURNAL_USER_ID.",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run",
        help="Parse and display fills without saving to database.",
    ),
) -> None:
    """Import a broker fill export and rebuild affected trades and summaries."""
    from src.cli.commands.journal_commands import run_journal_import

    run_journal_import(file=file, user=user, dry_run=dry_run)


@app.command(name="status")
def journal_status(
    user: str = typer.Option(None, "--user", "-u", help="Owning user id."),
    limit: int = typer.Option(
        10, "--limit", "-n",
        help="Number of recent batches to show.",
    ),
) -> None:
    """Show recent import batches."""
    from src.cli.commands.journal_commands import run_journal_status

    run_journal_status(user=user, limit=limit)


@app.command(name="trades")
def journal_trades(
    user: str = typer.Option(None, "--user", "-u", help="Owning user id."),
    account: str = typer.Option(
        None, "--account", "-a",
        help="Filter by broker account id.",
    ),
    limit: int = typer.Option(25, "--limit", "-n", help="Number of trades to show."),
) -> None:
    """List reconstructed trades, newest first."""
    from src.cli.commands.journal_commands import run_journal_trades

    run_journal_trades(user=user, account=account, limit=limit)


@app.command(name="summaries")
def journal_summaries(
    user: str = typer.Option(None, "--user", "-u", help="Owning user id."),
    account: str = typer.Option(
        None, "--account", "-a",
        help="Filter by broker account id.",
    ),
) -> None:
    """Show daily summaries and cumulative P&L."""
    from src.cli.commands.journal_commands import run_journal_summaries

    run_journal_summaries(user=user, account=account)


@app.command(name="recalc")
def journal_recalc(
    account: str = typer.Argument(..., help="Broker account id to rebuild."),
    user: str = typer.Option(None, "--user", "-u", help="Owning user id."),
) -> None:
    """Recompute every daily summary of an account, oldest day first."""
    from src.cli.commands.journal_commands import run_journal_recalc

    run_journal_recalc(account=account, user=user)


def main() -> None:
    """Main entry point."""
    # Add the project root to Python path
    project_root = Path(__file__).parent.parent.parent
    sys.path.insert(0, str(project_root))

    app()


if __name__ == "__main__":
    main()
