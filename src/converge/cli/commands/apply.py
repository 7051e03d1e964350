"""Apply and destroy commands - reconcile infrastructure with declarations."""

import sys
from typing import Optional
import click
from ... import apply_plan, plan_changes
from ...presentation.human_formatter import format_plan, format_report
from ...utils.errors import ConvergeError
from ...utils.logging import get_logger
from ..utils import EXIT_ERROR, EXIT_OK, build_workspace, fail, resolve_declarations_path
from .options import engine_options, engine_overrides

logger = get_logger("cli.apply")


def _run(ctx, declarations: Optional[str], destroy: bool, auto_approve: bool, overrides: dict) -> None:
    """Plan, confirm, apply and report; exits the process."""
    decl_path = None
    if declarations is not None:
        try:
            decl_path = str(resolve_declarations_path(declarations))
        except FileNotFoundError as e:
            fail(str(e))
    
    workspace = build_workspace(ctx, **overrides)
    
    with workspace.lock():
        plan = plan_changes(decl_path, workspace, destroy=destroy)
        click.echo(format_plan(plan))
        
        if not plan.has_changes:
            sys.exit(EXIT_OK)
        
        if not auto_approve:
            prompt = "Destroy all recorded resources?" if destroy else "Apply these changes?"
            if not click.confirm(prompt, default=False):
                click.echo("Apply cancelled.", err=True)
                sys.exit(EXIT_ERROR)
        
        report = apply_plan(plan, workspace, lock=False)
    
    click.echo("")
    click.echo(format_report(report))
    sys.exit(EXIT_OK if report.success else EXIT_ERROR)


@click.command()
@click.argument('declarations', type=click.Path(exists=False))
@engine_options
@click.option('--auto-approve', '-y', is_flag=True, help='Skip interactive confirmation')
@click.pass_context
def apply(ctx, declarations, state_path, parallelism, refresh, fail_fast, lock, auto_approve):
    """Create, update and delete resources so state matches DECLARATIONS."""
    try:
        _run(ctx, declarations, False, auto_approve,
             engine_overrides(state_path, parallelism, refresh, fail_fast, lock))
    except ConvergeError as e:
        fail(str(e))
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        fail(f"Apply failed: {e}")


@click.command()
@click.argument('declarations', type=click.Path(exists=False), required=False)
@engine_options
@click.option('--auto-approve', '-y', is_flag=True, help='Skip interactive confirmation')
@click.pass_context
def destroy(ctx, declarations, state_path, parallelism, refresh, fail_fast, lock, auto_approve):
    """
    Delete every resource recorded in state, dependents first.
    
    DECLARATIONS is accepted for symmetry with plan/apply; the set of
    resources destroyed is what the state records.
    """
    try:
        _run(ctx, declarations, True, auto_approve,
             engine_overrides(state_path, parallelism, refresh, fail_fast, lock))
    except ConvergeError as e:
        fail(str(e))
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        fail(f"Destroy failed: {e}")
