"""sonarferry transfer command - upload report bundles for every selected branch."""

import asyncio

import click

from sonarferry.cli.utils import console, load_cli_config, make_transfer_table, print_log_pointer, print_warnings
from sonarferry.core.errors import SonarFerryError
from sonarferry.pipeline import run_transfer


@click.command()
@click.option("--wait", is_flag=True, help="Block until the destination finishes processing each report")
@click.option("--full", "full", is_flag=True, help="Ignore the state file and transfer every branch")
@click.pass_context
def transfer_command(ctx: click.Context, wait: bool, full: bool) -> None:
    """Transfer analysis reports from SonarQube to SonarCloud."""
    overrides = {"transfer": {"mode": "full"}} if full else {}
    config = load_cli_config(ctx, **overrides)

    try:
        result = asyncio.run(run_transfer(config, wait=wait))
    except SonarFerryError as e:
        raise click.ClickException(e.message) from e

    if result.skipped:
        console.print(f"[yellow]Skipped[/yellow] {result.project_key}: {result.skipped_reason}")
        return

    console.print(make_transfer_table(result))
    print_warnings(result.warnings)
    if result.failed_branches:
        print_log_pointer()
        ctx.exit(1)
