"""
Sales report sync CLI - Main entry point.
Built with Click for a rich command-line interface.
"""

import sys
import click

from rich.console import Console
from rich.table import Table

from salesync import __version__

console = Console()


def _load_config(require_sharepoint=True):
    """Load SyncConfig, exiting with a readable message on failure."""
    from salesync.common import SyncConfig, ConfigurationError

    try:
        return SyncConfig.from_env(require_sharepoint=require_sharepoint)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(2)


def _print_result(result):
    table = Table(title="Sync Result")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Header ID", str(result.header_id))
    table.add_row("Rows Inserted", str(result.rows_inserted))
    console.print(table)


@click.group()
@click.version_option(version=__version__, prog_name='salesync')
@click.option('--log-level', default=None, help='Override LOG_LEVEL')
@click.pass_context
def cli(ctx, log_level):
    """Sales report sync - SharePoint XML export to datastore."""
    from dotenv import load_dotenv
    from decouple import config as env_config
    from salesync.common import setup_logging

    load_dotenv()
    ctx.ensure_object(dict)
    setup_logging(log_level or env_config('LOG_LEVEL', default='INFO'))


# =============================================================================
# Sync Commands
# =============================================================================

@cli.command()
@click.option('--atomic', is_flag=True, help='Write header and rows in one transaction')
def sync(atomic):
    """Fetch the report from SharePoint and insert it."""
    from salesync.common import SyncError
    from salesync.datalayer import run_sync

    config = _load_config()
    if atomic:
        config.atomic = True

    console.print(f"[yellow]Syncing {config.sharepoint.file_path}...[/yellow]")
    try:
        result = run_sync(config)
    except SyncError as e:
        console.print(f"[red]Sync failed:[/red] {e}")
        sys.exit(1)

    console.print("[green]Data synchronized successfully[/green]")
    _print_result(result)


@cli.command()
@click.argument('xml_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--atomic', is_flag=True, help='Write header and rows in one transaction')
def load(xml_file, atomic):
    """Insert a report export read from a local file."""
    from salesync.common import HTTPClient, SyncError
    from salesync.datalayer import build_store, load_report_file

    config = _load_config(require_sharepoint=False)

    with HTTPClient(default_timeout=config.http_timeout) as http_client:
        try:
            store = build_store(config, http_client)
            result = load_report_file(xml_file, store, atomic=atomic or config.atomic)
        except SyncError as e:
            console.print(f"[red]Load failed:[/red] {e}")
            sys.exit(1)

    console.print(f"[green]Loaded {xml_file}[/green]")
    _print_result(result)


@cli.command()
@click.argument('xml_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--limit', '-n', default=20, help='Number of sale rows to show')
def inspect(xml_file, limit):
    """Parse a local report export and show what would be inserted."""
    from pathlib import Path
    from salesync.common import ReportParseError
    from salesync.datalayer import extract_report, parse_report_xml

    try:
        root = parse_report_xml(Path(xml_file).read_bytes())
    except ReportParseError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    header, sales = extract_report(root)

    header_table = Table(title="Report Header")
    header_table.add_column("Field", style="cyan")
    header_table.add_column("Value", style="green")
    for key, value in header.items():
        header_table.add_row(key, str(value))
    console.print(header_table)

    sales_table = Table(title=f"Sales ({len(sales)} rows)")
    sales_table.add_column("#", style="cyan")
    sales_table.add_column("RO", style="yellow")
    sales_table.add_column("Owner")
    sales_table.add_column("Vehicle")
    sales_table.add_column("Carrier", style="blue")
    sales_table.add_column("Total", style="green", justify="right")

    for sale in sales[:limit]:
        sales_table.add_row(
            str(sale['row_index']),
            sale['repair_order_number'],
            sale['owner_name'],
            sale['vehicle_year_make_model'],
            sale['carrier_name'],
            f"{sale['total_amount']:,.2f}",
        )
    console.print(sales_table)

    if len(sales) > limit:
        console.print(f"[dim]... {len(sales) - limit} more rows[/dim]")


# =============================================================================
# Database Commands
# =============================================================================

@cli.command('init-db')
def init_db():
    """Create the report_headers and sales tables (SQL datastore)."""
    from sqlalchemy.exc import SQLAlchemyError
    from salesync.common import (
        DatastoreBackend, SessionManager, SqlReportStore, create_engine_from_config,
    )

    config = _load_config(require_sharepoint=False)
    if config.backend != DatastoreBackend.SQL:
        console.print("[red]init-db needs DATASTORE_BACKEND=sql[/red]")
        sys.exit(2)

    try:
        engine = create_engine_from_config(config.database)
        SqlReportStore(SessionManager(engine)).create_tables()
    except SQLAlchemyError as e:
        console.print(f"[red]init-db failed:[/red] {e}")
        sys.exit(1)
    console.print(f"[green]Tables ready in {config.database.database}[/green]")


# =============================================================================
# Secrets Commands
# =============================================================================

@cli.group()
def secret():
    """Manage secrets in the encrypted vault."""
    pass


@secret.command('set')
@click.argument('key')
@click.option('--value', prompt=True, hide_input=True, help='Secret value')
def secret_set(key, value):
    """Store KEY in the vault."""
    from salesync.common import get_vault

    try:
        vault = get_vault()
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(2)

    vault.set(key, value)
    console.print(f"[green]Stored {key}[/green]")


@secret.command('list')
def secret_list():
    """List keys stored in the vault."""
    from salesync.common import get_vault

    try:
        vault = get_vault()
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(2)

    for key in vault.list_keys():
        console.print(key)


# =============================================================================
# Web
# =============================================================================

@cli.command()
@click.option('--host', default='0.0.0.0', help='Bind address')
@click.option('--port', default=5000, type=int, help='Port')
@click.option('--debug', is_flag=True, help='Flask debug mode')
def web(host, port, debug):
    """Serve the sync endpoint over HTTP."""
    from salesync.web import run_app

    console.print(f"Starting sync endpoint at http://{host}:{port}/sync-sales-data")
    run_app(host=host, port=port, debug=debug)


def main():
    """Main entry point."""
    cli()


if __name__ == '__main__':
    main()
