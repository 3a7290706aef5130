"""sonarferry migrate command - transfer then sync metadata."""

import asyncio

import click

from sonarferry.cli.utils import (
    console,
    load_cli_config,
    make_steps_table,
    make_transfer_table,
    print_log_pointer,
    print_warnings,
)
from sonarferry.core.errors import SonarFerryError
from sonarferry.pipeline import migrate_project


@click.command()
@click.option("--wait", is_flag=True, help="Block until the destination finishes processing each report")
@click.pass_context
def migrate_command(ctx: click.Context, wait: bool) -> None:
    """Migrate one project: reports, then issue and hotspot metadata."""
    config = load_cli_config(ctx)

    try:
        result = asyncio.run(migrate_project(config, wait=wait))
    except SonarFerryError as e:
        raise click.ClickException(e.message) from e

    if result.transfer is not None and not result.transfer.skipped:
        console.print(make_transfer_table(result.transfer))
    console.print(make_steps_table(result))
    print_warnings(result.warnings)
    if not result.success:
        print_log_pointer()
        ctx.exit(1)
