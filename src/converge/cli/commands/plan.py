"""Plan command - show what apply would change."""

import sys
import click
from ... import plan_changes
from ...presentation.human_formatter import format_plan
from ...utils.errors import ConvergeError
from ...utils.logging import get_logger
from ..utils import EXIT_CHANGES, EXIT_OK, build_workspace, fail, resolve_declarations_path, write_output
from .options import engine_options, engine_overrides

logger = get_logger("cli.plan")


@click.command()
@click.argument('declarations', type=click.Path(exists=False))
@engine_options
@click.option('--json', 'as_json', is_flag=True, help='Output the plan as JSON')
@click.option('--output', '-o', type=click.Path(), help='Save output to file')
@click.pass_context
def plan(ctx, declarations, state_path, parallelism, refresh, fail_fast, lock, as_json, output):
    """
    Show the actions needed to make state match DECLARATIONS.
    
    Exit codes: 0 no changes, 1 error, 2 changes pending.
    """
    try:
        try:
            decl_path = resolve_declarations_path(declarations)
        except FileNotFoundError as e:
            fail(str(e))
        
        workspace = build_workspace(ctx, **engine_overrides(state_path, parallelism, refresh, fail_fast, lock))
        result = plan_changes(str(decl_path), workspace)
        
        text = result.to_json() if as_json else format_plan(result)
        write_output(text, output, quiet=ctx.obj.get("quiet", False) if ctx.obj else False)
        
        sys.exit(EXIT_CHANGES if result.has_changes else EXIT_OK)
    
    except ConvergeError as e:
        fail(str(e))
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        fail(f"Plan failed: {e}")
