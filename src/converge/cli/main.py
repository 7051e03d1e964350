"""Main CLI entry point for converge."""

import logging
import click
from .commands.plan import plan
from .commands.apply import apply, destroy
from .commands.validate import validate
from .commands.graph import graph
from .commands.state import state
from ..utils.logging import get_logger, set_level
from .. import __version__

logger = get_logger("cli.main")


@click.group()
@click.version_option(version=__version__, prog_name="converge", message="%(prog)s version %(version)s")
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False), help='Extra config file merged last')
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
@click.option('--quiet', '-q', is_flag=True, help='Only log errors')
@click.pass_context
def cli(ctx, config_path, verbose, quiet):
    """converge - Declarative infrastructure reconciliation."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["quiet"] = quiet
    if verbose:
        set_level(logging.DEBUG)
    elif quiet:
        set_level(logging.ERROR)


cli.add_command(plan)
cli.add_command(apply)
cli.add_command(destroy)
cli.add_command(validate)
cli.add_command(graph)
cli.add_command(state)

from .commands.version import version as version_command
cli.add_command(version_command)
