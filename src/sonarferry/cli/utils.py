"""CLI utilities - config loading and result rendering."""

from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from sonarferry.config.loader import load_config
from sonarferry.config.models import SonarFerryConfig
from sonarferry.core.errors import SonarFerryError
from sonarferry.core.logging import configure_logging, get_log_file_path
from sonarferry.pipeline import MigrationResult
from sonarferry.transfer.models import TransferResult

console = Console(stderr=True)


def load_cli_config(ctx: click.Context, **overrides: Any) -> SonarFerryConfig:
    """Load config from the group's --config path and reconfigure logging from it.

    ``-v`` forces DEBUG regardless of the configured level.
    """
    config_path: Path | None = ctx.obj.get("config_path")
    try:
        config = load_config(config_path, **overrides)
    except SonarFerryError as e:
        raise click.ClickException(e.message) from e

    logging_config = config.logging
    if ctx.obj.get("verbose"):
        logging_config = logging_config.model_copy(update={"level": "DEBUG"})
    configure_logging(config=logging_config)
    return config


def make_transfer_table(result: TransferResult) -> Table:
    table = Table(title=f"Transfer {result.project_key} -> {result.destination_project_key}", show_header=False)
    table.add_column("field", style="cyan")
    table.add_column("value", justify="right")

    stats = result.stats
    table.add_row("Branches", ", ".join(stats.branches_transferred) or "-")
    table.add_row("Issues", str(stats.issues_transferred))
    table.add_row("Components", str(stats.components_transferred))
    table.add_row("Sources", str(stats.sources_transferred))
    table.add_row("Lines of code", str(stats.lines_of_code))
    for failure in result.failed_branches:
        table.add_row(f"[red]Failed: {failure.branch}[/red]", failure.error)
    return table


def make_steps_table(result: MigrationResult) -> Table:
    table = Table(title=f"Migration {result.project_key}")
    table.add_column("Step", style="cyan")
    table.add_column("Status")
    table.add_column("Details")

    colors = {"success": "green", "failed": "red", "skipped": "yellow"}
    for step in result.steps:
        details = step.error or ", ".join(f"{k}={v}" for k, v in step.stats.items() if not isinstance(v, list))
        table.add_row(step.name, f"[{colors[step.status]}]{step.status}[/{colors[step.status]}]", details)
    return table


def print_warnings(warnings: tuple[str, ...]) -> None:
    for warning in warnings:
        console.print(f"[yellow]![/yellow] {warning}", highlight=False)


def print_log_pointer() -> None:
    """Point at the log file after a failed run, when one is configured."""
    path = get_log_file_path()
    if path is not None:
        console.print(f"[dim]Details in {path}[/dim]", highlight=False)
