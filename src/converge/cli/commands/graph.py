"""Graph command - print the dependency graph as Graphviz DOT."""

import click
from ...graph.resource_graph import build_graph
from ...ingest.declaration_loader import load_declarations
from ...utils.errors import ConvergeError
from ...utils.logging import get_logger
from ..utils import build_workspace, fail, resolve_declarations_path, write_output

logger = get_logger("cli.graph")


@click.command()
@click.argument('declarations', type=click.Path(exists=False))
@click.option('--output', '-o', type=click.Path(), help='Save output to file')
@click.pass_context
def graph(ctx, declarations, output):
    """
    Print the dependency graph of DECLARATIONS in DOT format.
    
    Render with: converge graph infra/ | dot -Tsvg > graph.svg
    """
    try:
        try:
            decl_path = resolve_declarations_path(declarations)
        except FileNotFoundError as e:
            fail(str(e))
        
        workspace = build_workspace(ctx)
        resource_graph = build_graph(load_declarations(str(decl_path)), workspace.schemas())
        write_output(resource_graph.to_dot(), output, quiet=(ctx.obj or {}).get("quiet", False))
    
    except ConvergeError as e:
        fail(str(e))
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        fail(f"Graph failed: {e}")
