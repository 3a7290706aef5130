"""sonarferry sync-metadata command - reconcile issues and hotspots only."""

import asyncio

import click

from sonarferry.cli.utils import console, load_cli_config, make_steps_table, print_log_pointer, print_warnings
from sonarferry.core.errors import SonarFerryError
from sonarferry.pipeline import sync_metadata


@click.command()
@click.option("--skip-issues", is_flag=True, help="Do not sync issue statuses, assignments, comments or tags")
@click.option("--skip-hotspots", is_flag=True, help="Do not sync hotspot statuses or comments")
@click.option("--replay-changelog", is_flag=True, help="Replay each issue's full status history")
@click.pass_context
def sync_metadata_command(ctx: click.Context, skip_issues: bool, skip_hotspots: bool, replay_changelog: bool) -> None:
    """Sync triage metadata for a project that was already transferred."""
    sync: dict[str, bool] = {}
    if skip_issues:
        sync["skip_issue_sync"] = True
    if skip_hotspots:
        sync["skip_hotspot_sync"] = True
    if replay_changelog:
        sync["replay_changelog"] = True
    config = load_cli_config(ctx, **({"sync": sync} if sync else {}))

    try:
        result = asyncio.run(sync_metadata(config))
    except SonarFerryError as e:
        raise click.ClickException(e.message) from e

    console.print(make_steps_table(result))
    print_warnings(result.warnings)
    if not result.success:
        print_log_pointer()
        ctx.exit(1)
