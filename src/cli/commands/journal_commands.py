"""CLI commands for the trade journal.

Provides:
- import: Import a broker fill export (CSV)
- status: Show recent import batches
- trades: List reconstructed trades
- summaries: Show daily summaries with cumulative P&L
- recalc: Rebuild an account's daily summary chain
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from src.config.base import get_config
from src.data.database import get_db_session
from src.data.models import Account, DailySummary, Trade
from src.journal.importer import ImportPreconditionError, ImportResult, run_import
from src.journal.models import ImportBatch
from src.utils.calc import fmt_money

console = Console()


def _resolve_user(user: str | None) -> str:
    """Explicit --user, else the configured default; exit if neither is set."""
    user_id = user or get_config().journal_user_id
    if not user_id:
        console.print(
            "[red]No user given.[/red] Pass --user or set JOURNAL_USER_ID in .env"
        )
        raise typer.Exit(1)
    return user_id


def run_journal_import(file: Path, user: str | None = None, dry_run: bool = False) -> None:
    """Import a broker fill export into the journal database."""
    if not file.exists():
        console.print(f"[red]File not found: {file}[/red]")
        raise typer.Exit(1)

    content = file.read_text(encoding="utf-8-sig")
    if not content.strip():
        console.print(f"[red]File is empty: {file}[/red]")
        raise typer.Exit(1)

    console.print(f"\n[bold]Journal Import — {file.name}[/bold]")
    console.print("─" * 50)

    if dry_run:
        from src.journal.csv_parser import parse_csv

        parsed = parse_csv(content)
        console.print(
            f"\n[green]Parsed {len(parsed.fills)} fills from {parsed.total_rows} rows[/green]\n"
        )
        _display_fills_table(parsed.fills)
        _display_errors(parsed.errors)
        return

    user_id = _resolve_user(user)

    with get_db_session() as session:
        try:
            result = run_import(session, content, file.name, user_id)
        except ImportPreconditionError as e:
            console.print(f"\n[red]Import refused: {e}[/red]")
            raise typer.Exit(1) from e

    _display_import_result(result)
    if result.status == "failed":
        raise typer.Exit(1)


def run_journal_status(user: str | None = None, limit: int = 10) -> None:
    """Show recent import batches and statistics."""
    user_id = _resolve_user(user)

    with get_db_session() as session:
        batches = (
            session.query(ImportBatch)
            .filter(ImportBatch.user_id == user_id)
            .order_by(ImportBatch.id.desc())
            .limit(limit)
            .all()
        )

        if not batches:
            console.print("[yellow]No import batches found[/yellow]")
            return

        table = Table(title="Recent Import Batches")
        table.add_column("ID", style="dim")
        table.add_column("File")
        table.add_column("Status")
        table.add_column("Date Range")
        table.add_column("Rows", justify="right")
        table.add_column("New", justify="right")
        table.add_column("Dupes", justify="right")
        table.add_column("Trades", justify="right")
        table.add_column("Errors", justify="right")
        table.add_column("Started")

        for b in batches:
            status_style = {
                "complete": "green",
                "processing": "yellow",
                "failed": "red",
            }.get(b.status, "white")

            date_range = ""
            if b.date_range_start and b.date_range_end:
                date_range = f"{b.date_range_start} → {b.date_range_end}"

            table.add_row(
                str(b.id),
                b.filename,
                f"[{status_style}]{b.status}[/{status_style}]",
                date_range,
                str(b.total_rows or 0),
                str(b.new_fills or 0),
                str(b.duplicate_fills or 0),
                str(b.trades_created or 0),
                str(b.error_rows or 0),
                b.started_at.strftime("%Y-%m-%d %H:%M") if b.started_at else "",
            )

        console.print(table)

        stuck = [b for b in batches if b.status == "processing"]
        if stuck:
            console.print(
                f"\n[yellow]{len(stuck)} batch(es) still processing: "
                f"{', '.join(str(b.id) for b in stuck)}. "
                f"An interrupted import never finalizes on its own.[/yellow]"
            )


def run_journal_trades(user: str | None = None, account: str | None = None, limit: int = 25) -> None:
    """List the most recent reconstructed trades."""
    user_id = _resolve_user(user)

    with get_db_session() as session:
        query = session.query(Trade).filter(Trade.user_id == user_id)
        if account:
            query = query.join(Account, Trade.account_id == Account.id).filter(
                Account.external_id == account
            )
        trades = query.order_by(Trade.entry_time.desc()).limit(limit).all()

        if not trades:
            console.print("[yellow]No trades found[/yellow]")
            return

        table = Table(title=f"Trades ({len(trades)} most recent)")
        table.add_column("Day")
        table.add_column("Symbol")
        table.add_column("Side")
        table.add_column("Qty", justify="right")
        table.add_column("Entry", justify="right")
        table.add_column("Exit", justify="right")
        table.add_column("Duration", justify="right")
        table.add_column("Net P&L", justify="right")
        table.add_column("Outcome")

        for t in trades:
            pnl_style = "green" if t.net_pnl > 0 else "red" if t.net_pnl < 0 else "white"
            table.add_row(
                str(t.trading_day),
                t.root_symbol,
                t.side,
                str(t.entry_qty),
                f"{t.avg_entry_price:.2f}",
                f"{t.avg_exit_price:.2f}" if t.avg_exit_price is not None else "",
                f"{t.duration_seconds}s" if t.duration_seconds is not None else "open",
                f"[{pnl_style}]{fmt_money(t.net_pnl)}[/{pnl_style}]",
                t.outcome or "OPEN",
            )

        console.print(table)


def run_journal_summaries(user: str | None = None, account: str | None = None) -> None:
    """Show daily summaries with the cumulative P&L chain."""
    user_id = _resolve_user(user)

    with get_db_session() as session:
        query = (
            session.query(DailySummary, Account)
            .join(Account, DailySummary.account_id == Account.id)
            .filter(DailySummary.user_id == user_id)
        )
        if account:
            query = query.filter(Account.external_id == account)
        rows = query.order_by(Account.name, DailySummary.trading_day).all()

        if not rows:
            console.print("[yellow]No daily summaries found[/yellow]")
            return

        table = Table(title="Daily Summaries")
        table.add_column("Account")
        table.add_column("Day")
        table.add_column("Trades", justify="right")
        table.add_column("W/L/BE")
        table.add_column("Win %", justify="right")
        table.add_column("PF", justify="right")
        table.add_column("Net P&L", justify="right")
        table.add_column("Cumulative", justify="right")

        for summary, acct in rows:
            table.add_row(
                acct.name,
                str(summary.trading_day),
                str(summary.trade_count),
                f"{summary.win_count}/{summary.loss_count}/{summary.breakeven_count}",
                f"{summary.win_rate:.1f}" if summary.win_rate is not None else "N/A",
                fmt_money(summary.profit_factor),
                fmt_money(summary.net_pnl),
                fmt_money(summary.cumulative_pnl),
            )

        console.print(table)


def run_journal_recalc(account: str, user: str | None = None) -> None:
    """Rebuild one account's daily summaries from its first trading day."""
    from src.services.daily_summary import recalc_account

    user_id = _resolve_user(user)

    with get_db_session() as session:
        acct = (
            session.query(Account)
            .filter(Account.user_id == user_id, Account.external_id == account)
            .one_or_none()
        )
        if acct is None:
            console.print(f"[red]Unknown account: {account}[/red]")
            raise typer.Exit(1)

        days = recalc_account(session, user_id, acct.id)

    console.print(f"[green]Recomputed {len(days)} trading days for {account}[/green]")


def _display_import_result(result: ImportResult) -> None:
    """Display import result summary."""
    headline = {
        "clean": "[bold green]Import Complete[/bold green]",
        "clean_with_skips": "[bold yellow]Import Complete (with skipped rows)[/bold yellow]",
        "failed": "[bold red]Import Failed[/bold red]",
    }[result.outcome]

    console.print(f"\n{headline}")
    console.print("─" * 40)
    console.print(f"  Batch ID:           {result.batch_id}")
    console.print(f"  Rows read:          {result.total_rows}")
    console.print(f"  New fills:          [green]{result.new_fills}[/green]")
    console.print(f"  Skipped (dupes):    [yellow]{result.duplicate_fills}[/yellow]")
    console.print(f"  Error rows:         [red]{result.error_rows}[/red]")
    console.print(f"  Trades created:     [cyan]{result.trades_created}[/cyan]")
    if result.previous_batch_id is not None:
        console.print(
            f"  [dim]Same file as completed batch {result.previous_batch_id}[/dim]"
        )

    _display_errors(result.errors)


def _display_errors(errors: list) -> None:
    if not errors:
        return
    console.print("\n[red]Errors:[/red]")
    for err in errors[:10]:
        where = f"row {err.row}: " if err.row is not None else ""
        console.print(f"  - {where}{err.message}")
    if len(errors) > 10:
        console.print(f"  ... and {len(errors) - 10} more")


def _display_fills_table(fills: list) -> None:
    """Display parsed fills in a table (for dry-run mode)."""
    table = Table(title=f"Parsed Fills ({len(fills)} records)")
    table.add_column("Row", style="dim")
    table.add_column("Day")
    table.add_column("Time (UTC)")
    table.add_column("Account")
    table.add_column("Symbol")
    table.add_column("Side")
    table.add_column("Qty", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Fill ID", style="dim")

    for f in fills[:50]:
        side_style = "green" if f.side == "BUY" else "red"
        table.add_row(
            str(f.row),
            str(f.trading_day),
            f.fill_time.strftime("%H:%M:%S"),
            f.account_external_id,
            f.root_symbol,
            f"[{side_style}]{f.side}[/{side_style}]",
            str(f.quantity),
            f"{f.price:.2f}",
            f.raw_fill_id,
        )

    console.print(table)
    if len(fills) > 50:
        console.print(f"[dim]... {len(fills) - 50} more[/dim]")
