"""Validate command - check declarations without planning."""

import click
from ...graph.resource_graph import build_graph
from ...ingest.declaration_loader import load_declarations
from ...ingest.declaration_validator import get_declaration_summary
from ...utils.errors import ConvergeError
from ...utils.logging import get_logger
from ..utils import build_workspace, fail, resolve_declarations_path

logger = get_logger("cli.validate")


@click.command()
@click.argument('declarations', type=click.Path(exists=False))
@click.pass_context
def validate(ctx, declarations):
    """Check DECLARATIONS for structure errors, bad references and cycles."""
    try:
        try:
            decl_path = resolve_declarations_path(declarations)
        except FileNotFoundError as e:
            fail(str(e))
        
        workspace = build_workspace(ctx)
        declaration_set = load_declarations(str(decl_path))
        graph = build_graph(declaration_set, workspace.schemas())
        summary = get_declaration_summary(declaration_set.resources)
        
        click.echo(
            f"Declarations are valid: {summary['resource_count']} resources, "
            f"{graph.graph.number_of_edges()} dependencies."
        )
        for kind, count in summary["kinds"].items():
            click.echo(f"  {kind}: {count}")
    
    except ConvergeError as e:
        fail(str(e))
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        fail(f"Validation failed: {e}")
