"""bin/books — Manage bank profiles, period locks and import batches."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from bookset_import.lib.bank_profiles import default_registry
from bookset_import.lib.config import ImportSettings, get_project_root
from bookset_import.lib.errors import BooksetImportError
from bookset_import.lib.logging_setup import configure_logging
from bookset_import.lib.mapping import AmountMode
from bookset_import.lib.store import LedgerStore

console = Console()


def get_settings(root: str | None) -> ImportSettings:
    project_root = Path(root) if root else get_project_root()
    try:
        return ImportSettings.load(project_root)
    except BooksetImportError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


@click.group()
@click.option("--root", type=click.Path(exists=True, file_okay=False), default=None,
              help="Project root directory")
@click.option("--log-level", default=None)
@click.pass_context
def main(ctx: click.Context, root: str | None, log_level: str | None) -> None:
    """Manage bank profiles, tax-year locks and import batches."""
    configure_logging(log_level)
    ctx.obj = get_settings(root)


@main.command()
@click.pass_obj
def profiles(settings: ImportSettings) -> None:
    """List available bank profiles."""
    try:
        registry = default_registry(settings.profiles_dir)
    except BooksetImportError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Profile")
    table.add_column("Date")
    table.add_column("Description")
    table.add_column("Amount")
    table.add_column("Format")
    for name in registry.names():
        m = registry.require(name)
        if m.amount_mode == AmountMode.SIGNED:
            amount = m.amount_column
        else:
            amount = f"+{m.inflow_column} / -{m.outflow_column}"
        table.add_row(
            name,
            escape(m.date_column),
            escape(m.description_column),
            escape(amount),
            m.date_format.value,
        )
    console.print(table)


@main.command()
@click.option("--book", "-b", default="default")
@click.pass_obj
def locks(settings: ImportSettings, book: str) -> None:
    """Show locked tax years."""
    with LedgerStore(settings.db_path) as store:
        years = store.locked_years(book)
    if not years:
        click.echo(f"No locked years for book {book}.")
        return
    click.echo(f"Locked years for book {book}: {', '.join(str(y) for y in years)}")
    click.echo(f"Dates in {max(years)} or earlier cannot be imported.")


@main.command()
@click.argument("year", type=click.IntRange(1900, 9999))
@click.option("--book", "-b", default="default")
@click.pass_obj
def lock(settings: ImportSettings, year: int, book: str) -> None:
    """Lock a tax year (and, effectively, every year before it)."""
    with LedgerStore(settings.db_path) as store:
        store.lock_year(book, year)
    click.echo(f"Locked {year} for book {book}.")


@main.command()
@click.argument("year", type=click.IntRange(1900, 9999))
@click.option("--book", "-b", default="default")
@click.pass_obj
def unlock(settings: ImportSettings, year: int, book: str) -> None:
    """Remove a tax-year lock."""
    with LedgerStore(settings.db_path) as store:
        removed = store.unlock_year(book, year)
    if removed:
        click.echo(f"Unlocked {year} for book {book}.")
    else:
        click.echo(f"{year} was not locked for book {book}.")


@main.command()
@click.option("--book", "-b", default="default")
@click.option("--limit", default=20)
@click.pass_obj
def batches(settings: ImportSettings, book: str, limit: int) -> None:
    """List recent import batches."""
    with LedgerStore(settings.db_path) as store:
        rows = store.list_batches(book, limit=limit)
    if not rows:
        click.echo(f"No import batches for book {book}.")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Batch")
    table.add_column("Imported")
    table.add_column("Account")
    table.add_column("File")
    table.add_column("Rows", justify="right")
    table.add_column("New", justify="right")
    table.add_column("Dup", justify="right")
    table.add_column("Err", justify="right")
    for b in rows:
        table.add_row(
            b.id,
            b.imported_at[:19],
            escape(b.account_id),
            escape(b.file_name),
            str(b.total_rows),
            str(b.imported_count),
            str(b.duplicate_count),
            str(b.error_count),
            style="dim" if b.undone_at else "",
        )
    console.print(table)


@main.command()
@click.argument("batch_id")
@click.pass_obj
def undo(settings: ImportSettings, batch_id: str) -> None:
    """Remove every transaction an import batch added."""
    with LedgerStore(settings.db_path) as store:
        try:
            removed = store.undo_batch(batch_id)
        except KeyError:
            click.echo(f"Error: no batch {batch_id}", err=True)
            raise SystemExit(1)
        except BooksetImportError as e:
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(1)
    click.echo(f"Removed {removed} transaction(s) from batch {batch_id}.")


if __name__ == "__main__":
    main()
