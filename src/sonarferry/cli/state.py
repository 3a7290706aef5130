"""sonarferry state commands - inspect or clear incremental transfer state."""

import click
import questionary

from sonarferry.cli.utils import console, load_cli_config
from sonarferry.config.loader import resolve_state_file
from sonarferry.core.errors import StateError
from sonarferry.state.tracker import StateTracker


@click.group()
def state_group() -> None:
    """Inspect or reset the transfer state file."""


@state_group.command("show")
@click.pass_context
def show_command(ctx: click.Context) -> None:
    """Show completed branches and sync history."""
    tracker = StateTracker(resolve_state_file(load_cli_config(ctx)))
    if not tracker.storage.exists():
        console.print(f"[yellow]No state file[/yellow] at {tracker.path}")
        return
    try:
        tracker.initialize()
    except StateError as e:
        raise click.ClickException(e.message) from e

    summary = tracker.summary()
    console.print(f"[bold]State file:[/bold] {tracker.path}")
    console.print(f"  Last sync: {summary.last_sync or 'never'}")
    console.print(f"  Completed branches: {', '.join(summary.completed_branches) or '-'}")
    console.print(f"  Processed findings: {summary.processed_findings}")
    console.print(f"  History entries: {summary.sync_history}")


@state_group.command("reset")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def reset_command(ctx: click.Context, yes: bool) -> None:
    """Delete the state file so the next incremental run starts over."""
    tracker = StateTracker(resolve_state_file(load_cli_config(ctx)))
    if not tracker.storage.exists():
        console.print("[yellow]Nothing to reset[/yellow] - no state file found")
        return

    if not yes:
        answer = questionary.confirm(f"Delete {tracker.path}?", default=False).ask()
        if not answer:
            console.print("[dim]Cancelled[/dim]")
            return

    try:
        tracker.reset()
    except StateError as e:
        raise click.ClickException(e.message) from e
    console.print(f"  [green]✓[/green] Removed {tracker.path}")
