"""SonarFerry CLI - sonarferry command."""

from pathlib import Path

import click

from sonarferry.cli.migrate import migrate_command
from sonarferry.cli.state import state_group
from sonarferry.cli.sync import sync_metadata_command
from sonarferry.cli.transfer import transfer_command
from sonarferry.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="sonarferry")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML config file (default: ./sonarferry.yaml if present)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Path | None) -> None:
    """SonarFerry - move SonarQube projects into SonarCloud."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path
    configure_logging(level="DEBUG" if verbose else "INFO")


cli.add_command(transfer_command, name="transfer")
cli.add_command(sync_metadata_command, name="sync-metadata")
cli.add_command(migrate_command, name="migrate")
cli.add_command(state_group, name="state")


if __name__ == "__main__":
    cli()
