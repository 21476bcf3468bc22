"""
Command-line interface for influxdb-schema-updater.
"""

import asyncio
import sys
from functools import wraps
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import UpdaterConfig
from .database.client import InfluxDBClient
from .exceptions import ConfigurationError, DatabaseError, InfluxSchemaError
from .logging_config import configure_logging
from .schema.loader import load_desired_snapshot
from .schema.models import Snapshot
from .schema.reconciler import ExitCode, ReconciliationResult, SchemaReconciler


console = Console()


def handle_errors(func):
    """Decorator to turn influxschema errors into exit codes in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ConfigurationError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}", highlight=False)
            sys.exit(ExitCode.CONFIG_ERROR)
        except DatabaseError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}", highlight=False)
            sys.exit(ExitCode.QUERY_FAILED)
        except InfluxSchemaError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}", highlight=False)
            sys.exit(ExitCode.CONFIG_ERROR)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(ExitCode.QUERY_FAILED)
    return wrapper


def _load_config(ctx: click.Context, **overrides) -> UpdaterConfig:
    """Build the effective configuration: CLI flags over YAML over environment."""
    config_path = ctx.obj.get("config_path")
    config = UpdaterConfig.from_yaml(config_path) if config_path else UpdaterConfig()
    config = config.with_overrides(**overrides)
    configure_logging(config.logging, debug=ctx.obj.get("debug", False))
    return config


def _notify(line: str) -> None:
    console.print(line, markup=False, highlight=False, soft_wrap=True)


@click.group()
@click.version_option(__version__)
@click.option(
    "--debug", is_flag=True, help="Enable debug logging"
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path",
)
@click.pass_context
def main(ctx, debug, config_path):
    """influxdb-schema-updater: keep InfluxDB databases, retention policies and continuous queries in sync with schema files."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = config_path


def _reconcile_options(func):
    func = click.option(
        "--force", is_flag=True, help="Allow destructive operations"
    )(func)
    func = click.option(
        "--dryrun", "dry_run", is_flag=True, help="Plan everything, apply nothing"
    )(func)
    func = click.option("--url", help="InfluxDB base URL")(func)
    func = click.option(
        "--schema-dir",
        type=click.Path(file_okay=False),
        help="Directory holding db/ and cq/ schema files",
    )(func)
    return func


async def _run(config: UpdaterConfig, diff_mode: bool) -> ReconciliationResult:
    async with InfluxDBClient.from_config(config) as client:
        reconciler = SchemaReconciler(
            client,
            config.schema_dir,
            dry_run=config.dry_run,
            force=config.force,
            notify=None if diff_mode else _notify,
        )
        if diff_mode:
            return await reconciler.diff()
        return await reconciler.apply()


def _report(result: ReconciliationResult) -> None:
    if result.plan.is_empty:
        console.print("[green]✓[/green] Schema is up to date")
        return

    console.print(
        f"\n{result.applied_count} applied, {result.skip_count} skipped "
        f"of {len(result.plan)} operations"
    )
    if result.errors:
        for error in result.errors:
            console.print(f"[red]✗[/red] {escape(error)}", highlight=False)
    elif result.skip_count:
        console.print(
            "[yellow]Some operations were skipped; rerun with --force to apply deletions[/yellow]"
        )


@main.command()
@_reconcile_options
@click.pass_context
@handle_errors
def apply(ctx, schema_dir: Optional[str], url: Optional[str], dry_run: bool, force: bool):
    """Apply the schema files to InfluxDB."""
    config = _load_config(
        ctx, schema_dir=schema_dir, url=url, dry_run=dry_run or None, force=force or None
    )

    if config.diff:
        _print_diff(asyncio.run(_run(config, diff_mode=True)))
        return

    if config.dry_run:
        console.print("[yellow]Dry run mode - no changes will be made[/yellow]")

    result = asyncio.run(_run(config, diff_mode=False))
    _report(result)
    sys.exit(result.exit_code)


@main.command()
@_reconcile_options
@click.pass_context
@handle_errors
def diff(ctx, schema_dir: Optional[str], url: Optional[str], dry_run: bool, force: bool):
    """Print the statements an apply run would submit."""
    config = _load_config(
        ctx, schema_dir=schema_dir, url=url, dry_run=dry_run or None, force=force or None
    )
    _print_diff(asyncio.run(_run(config, diff_mode=True)))


def _print_diff(result: ReconciliationResult) -> None:
    # Plain output so the plan can be piped or saved as an InfluxQL script
    click.echo(result.diff_text or "", nl=False)


@main.command()
@click.option(
    "--schema-dir",
    type=click.Path(file_okay=False),
    help="Directory holding db/ and cq/ schema files",
)
@click.pass_context
@handle_errors
def validate(ctx, schema_dir: Optional[str]):
    """Parse the schema files without contacting InfluxDB."""
    config = _load_config(ctx, schema_dir=schema_dir)
    console.print(f"Validating schema directory: {config.schema_dir}")

    snapshot = load_desired_snapshot(config.schema_dir)
    console.print("[green]✓[/green] Schema files are valid")
    _display_schema_summary(snapshot)


@main.command()
@click.option("--url", help="InfluxDB base URL")
@click.pass_context
@handle_errors
def test_connection(ctx, url: Optional[str]):
    """Check that InfluxDB is reachable."""
    config = _load_config(ctx, url=url)
    console.print(f"[blue]Testing connection to {config.url}...[/blue]")

    async def run_ping() -> str:
        async with InfluxDBClient.from_config(config) as client:
            return await client.ping()

    version = asyncio.run(run_ping())
    console.print(f"[green]✓[/green] Connected, InfluxDB version {version}")


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="influxdb-schema-updater.yaml",
    help="Output configuration file path",
)
@handle_errors
def init(output: str):
    """Write a default configuration file."""
    if Path(output).exists():
        if not click.confirm(f"Configuration file {output} already exists. Overwrite?"):
            return

    config = UpdaterConfig(username="${INFLUXDB_USER}", password="${INFLUXDB_PASSWORD}")
    config.to_yaml(output)
    console.print(f"[green]✓[/green] Configuration file created: {output}")
    console.print("\n[yellow]Next steps:[/yellow]")
    console.print("1. Edit the configuration file with your InfluxDB URL and credentials")
    console.print("2. Put database statements under <schema_dir>/db and continuous queries under <schema_dir>/cq")
    console.print(f"3. Run: influxdb-schema-updater --config {output} validate")
    console.print(f"4. Run: influxdb-schema-updater --config {output} diff")


def _display_schema_summary(snapshot: Snapshot):
    """Display a summary of the declared schema."""
    table = Table(title="Declared Schema")
    table.add_column("Database", style="cyan")
    table.add_column("Default Policy", style="magenta")
    table.add_column("Retention Policies", style="green")
    table.add_column("Continuous Queries", style="yellow")

    for name in snapshot.database_names():
        database = snapshot.databases[name]
        default = database.default_policy
        table.add_row(
            name,
            default.name if default else "-",
            str(len(database.policies)),
            str(len(snapshot.queries_of(name))),
        )

    console.print(table)


if __name__ == "__main__":
    main()
