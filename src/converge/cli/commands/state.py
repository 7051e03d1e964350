"""State commands - inspect recorded resources and clear stale locks."""

import json
import click
from ...state.lock import force_unlock
from ...utils.errors import ConvergeError
from ...utils.logging import get_logger
from ..utils import build_workspace, fail

logger = get_logger("cli.state")


@click.group()
def state():
    """Inspect and maintain the state store."""
    pass


@state.command(name="list")
@click.option('--state', 'state_path', type=click.Path(), help='State file path (overrides config)')
@click.pass_context
def list_records(ctx, state_path):
    """List recorded resource addresses with their ids."""
    try:
        workspace = build_workspace(ctx, state={"path": state_path})
        records = workspace.store.list()
        if not records:
            click.echo("State is empty.")
            return
        for record in records:
            click.echo(f"{record.address}\t{record.resource_id or '-'}")
    except ConvergeError as e:
        fail(str(e))


@state.command()
@click.argument('address')
@click.option('--state', 'state_path', type=click.Path(), help='State file path (overrides config)')
@click.pass_context
def show(ctx, address, state_path):
    """Show the recorded attributes and outputs of ADDRESS (kind.name)."""
    try:
        workspace = build_workspace(ctx, state={"path": state_path})
        record = workspace.store.get(address)
        if record is None:
            fail(f"No state record for {address}", "Run 'converge state list' to see recorded addresses.")
        click.echo(json.dumps(record.model_dump(), indent=2, sort_keys=True, default=str))
    except ConvergeError as e:
        fail(str(e))


@state.command()
@click.option('--state', 'state_path', type=click.Path(), help='State file path (overrides config)')
@click.pass_context
def unlock(ctx, state_path):
    """Remove a stale lock file left by an interrupted run."""
    try:
        workspace = build_workspace(ctx, state={"path": state_path})
        path = workspace.settings.state.path
        if force_unlock(path):
            click.echo(f"Removed lock on {path}.")
        else:
            click.echo(f"No lock held on {path}.")
    except ConvergeError as e:
        fail(str(e))
    except OSError as e:
        logger.error(f"Cannot remove lock: {e}", exc_info=True)
        fail(f"Unlock failed: {e}")
