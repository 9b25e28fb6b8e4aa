"""bin/ingest — Import a bank CSV into a book's ledger.

Runs the full pipeline (parse, map, fingerprint, duplicate checks, period
locks), prints the outcome of every row, and with --commit writes the new
rows as one import batch.
"""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from bookset_import.lib.bank_profiles import BankProfileRegistry, default_registry
from bookset_import.lib.config import ImportSettings, get_project_root
from bookset_import.lib.csv_ingest import ParseResult, preview_csv
from bookset_import.lib.errors import BooksetImportError, LockedPeriodViolationError
from bookset_import.lib.fuzzy_matcher import FuzzyMatchOptions
from bookset_import.lib.logging_setup import configure_logging
from bookset_import.lib.mapping import CsvMapping
from bookset_import.lib.normalizers import DateFormat
from bookset_import.lib.orchestrator import BatchResult, ImportOrchestrator
from bookset_import.lib.reconciler import ImportStatus
from bookset_import.lib.store import LedgerStore

console = Console()

_STATUS_STYLE = {
    ImportStatus.NEW: "green",
    ImportStatus.DUPLICATE: "dim",
    ImportStatus.FUZZY_DUPLICATE: "yellow",
    ImportStatus.ERROR: "red",
}


def format_cents(cents: int | None) -> str:
    if cents is None:
        return ""
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents) // 100:,}.{abs(cents) % 100:02d}"


def build_mapping(
    registry: BankProfileRegistry,
    profile: str | None,
    options: dict[str, object],
) -> CsvMapping:
    """Pick the mapping from --profile or from the explicit column options."""
    if profile:
        return registry.require(profile)
    if not options.get("date_column"):
        click.echo("Error: pass --profile or at least --date-column/--description-column", err=True)
        raise SystemExit(1)
    data = {k: v for k, v in options.items() if v is not None}
    if data.get("inflow_column") or data.get("outflow_column"):
        data["amount_mode"] = "separate"
    return CsvMapping.from_dict(data).validate()


def print_preview(parsed: ParseResult) -> None:
    table = Table(show_header=True, header_style="bold cyan")
    for name in parsed.fields:
        table.add_column(escape(name))
    for row in parsed.rows:
        table.add_row(*(escape(row.get(name, "")) for name in parsed.fields))
    console.print(table)


def print_result(result: BatchResult, limit: int, show_all: bool) -> None:
    stats = result.stats
    console.print(f"\n[bold]{escape(result.file_name)}[/bold]: {stats.total} row(s)")
    console.print(f"  [green]New:[/green] {stats.new}")
    console.print(f"  Duplicates: {stats.exact_duplicates}")
    console.print(f"  [yellow]Possible duplicates:[/yellow] {stats.fuzzy_duplicates}")
    console.print(f"  [red]Errors:[/red] {stats.errors}")

    rows = result.transactions if show_all else [
        t for t in result.transactions if t.status != ImportStatus.NEW
    ]
    if rows:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Row", justify="right")
        table.add_column("Date", width=12)
        table.add_column("Description", width=36)
        table.add_column("Amount", justify="right")
        table.add_column("Status")
        table.add_column("Detail")
        for t in rows[:limit]:
            if t.status == ImportStatus.ERROR:
                detail = "; ".join(t.errors)
            elif t.status == ImportStatus.DUPLICATE:
                detail = f"same as {t.duplicate_of_id}"
            elif t.status == ImportStatus.FUZZY_DUPLICATE:
                detail = "near " + ", ".join(f"{m.id} ({m.date})" for m in t.fuzzy_matches)
            else:
                detail = ""
            table.add_row(
                str(t.row_index + 1),
                t.date or "",
                escape(t.description or ""),
                format_cents(t.amount),
                t.status.value,
                escape(detail),
                style=_STATUS_STYLE[t.status],
            )
        console.print(table)
        if len(rows) > limit:
            console.print(f"  ... {len(rows) - limit} more row(s) not shown")

    for issue in result.parse_issues:
        console.print(f"[yellow]Row {issue.row + 1}:[/yellow] {escape(issue.message)}")
    for warning in result.lock_verdict.warnings:
        console.print(f"[yellow]Warning:[/yellow] {escape(warning)}")
    if not result.lock_verdict.valid:
        shown = ", ".join(sorted(set(result.lock_verdict.locked_dates)))
        console.print(f"[bold red]Locked period:[/bold red] {shown}")


@click.command()
@click.option("--file", "-f", "csv_file", type=click.Path(exists=True, dir_okay=False),
              required=True, help="CSV file to import")
@click.option("--profile", "-p", default=None, help="Bank profile name (e.g., CHASE_CHECKING)")
@click.option("--date-column", default=None)
@click.option("--description-column", default=None)
@click.option("--amount-column", default=None, help="Signed amount column")
@click.option("--inflow-column", default=None, help="Credit column (separate mode)")
@click.option("--outflow-column", default=None, help="Debit column (separate mode)")
@click.option("--date-format", type=click.Choice([f.value for f in DateFormat]),
              default=DateFormat.MDY_SLASH.value)
@click.option("--no-header", is_flag=True, help="File has no header row; columns are 0, 1, ...")
@click.option("--book", "-b", default="default", help="Book (ledger) id")
@click.option("--account", "-a", default=None, help="Account id within the book")
@click.option("--preview", is_flag=True, help="Show the first rows and exit")
@click.option("--commit", is_flag=True, help="Write new rows to the ledger")
@click.option("--window-days", type=click.IntRange(min=0), default=None,
              help="Fuzzy match date window (days)")
@click.option("--any-amount", is_flag=True, help="Fuzzy match on date only")
@click.option("--all", "show_all", is_flag=True, help="List new rows too")
@click.option("--limit", default=50, help="Maximum rows to list")
@click.option("--root", type=click.Path(exists=True, file_okay=False), default=None,
              help="Project root directory")
@click.option("--log-level", default=None, help="Logging level (e.g., INFO, DEBUG)")
def main(
    csv_file: str,
    profile: str | None,
    date_column: str | None,
    description_column: str | None,
    amount_column: str | None,
    inflow_column: str | None,
    outflow_column: str | None,
    date_format: str,
    no_header: bool,
    book: str,
    account: str | None,
    preview: bool,
    commit: bool,
    window_days: int | None,
    any_amount: bool,
    show_all: bool,
    limit: int,
    root: str | None,
    log_level: str | None,
) -> None:
    """Import bank transactions from a CSV file."""
    configure_logging(log_level)
    project_root = Path(root) if root else get_project_root()

    try:
        settings = ImportSettings.load(project_root)
        registry = default_registry(settings.profiles_dir)
        column_options = {
            "date_column": date_column,
            "description_column": description_column,
            "amount_column": amount_column,
            "inflow_column": inflow_column,
            "outflow_column": outflow_column,
            "date_format": date_format,
            "has_header_row": not no_header,
        }

        if preview:
            has_header = registry.require(profile).has_header_row if profile else not no_header
            parsed = preview_csv(
                csv_file,
                has_header,
                rows=settings.preview_rows,
                max_bytes=settings.max_file_bytes,
            )
            print_preview(parsed)
            return

        if account is None:
            click.echo("Error: --account is required to import", err=True)
            raise SystemExit(1)

        mapping = build_mapping(registry, profile, column_options)
        fuzzy = FuzzyMatchOptions(
            date_window_days=settings.date_window_days if window_days is None else window_days,
            require_exact_amount=settings.require_exact_amount and not any_amount,
        )

        with LedgerStore(settings.db_path) as store:
            orchestrator = ImportOrchestrator(
                store, store, registry=registry, settings=settings, fuzzy_options=fuzzy
            )
            result = orchestrator.run(csv_file, mapping, book_id=book, account_id=account)
            print_result(result, limit, show_all)

            if not commit:
                console.print("\nDry run. Re-run with [bold]--commit[/bold] to import new rows.")
                return

            try:
                to_import = result.committable()
            except LockedPeriodViolationError as e:
                click.echo(f"Error: {e}. Nothing imported.", err=True)
                raise SystemExit(1)

            if not to_import:
                click.echo("No new transactions (all duplicates or errors). Nothing imported.")
                return

            batch_id, ids = store.commit_batch(
                book_id=book,
                account_id=account,
                file_name=result.file_name,
                transactions=to_import,
                total_rows=result.stats.total,
                duplicate_count=result.stats.exact_duplicates,
                error_count=result.stats.errors,
                mapping_snapshot=result.mapping.to_dict(),
            )
            click.echo(f"Imported {len(ids)} transaction(s) as batch {batch_id}.")
    except BooksetImportError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
