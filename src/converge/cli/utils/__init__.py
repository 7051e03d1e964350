"""CLI utilities package."""

import sys
from pathlib import Path
from typing import Any, Dict, Optional
import click
from ... import Workspace
from ...config import load_settings
from ...utils.logging import get_logger
from .file_resolver import resolve_declarations_path

logger = get_logger("cli.utils")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CHANGES = 2


def format_error(message: str, suggestion: Optional[str] = None) -> str:
    """
    Format error message with optional suggestion.
    
    Args:
        message: Error message
        suggestion: Optional suggestion or help text
        
    Returns:
        Formatted error string
    """
    error = f"Error: {message}"
    if suggestion:
        error += f"\nTip: {suggestion}"
    return error


def fail(message: str, suggestion: Optional[str] = None) -> None:
    """Print an error to stderr and exit with EXIT_ERROR."""
    click.echo(format_error(message, suggestion), err=True)
    sys.exit(EXIT_ERROR)


def build_workspace(ctx: click.Context, **overrides: Any) -> Workspace:
    """
    Build a Workspace from global CLI options and per-command overrides.
    
    Args:
        ctx: Click context carrying the global --config path
        overrides: Nested settings values; None means "not given"
    """
    obj: Dict[str, Any] = ctx.obj or {}
    settings = load_settings(obj.get("config_path"), overrides)
    return Workspace(settings)


def write_output(text: str, output: Optional[str], quiet: bool = False) -> None:
    """Write text to a file if output is set, otherwise to stdout."""
    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(text)
        if not quiet:
            click.echo(f"Output saved to: {output_path}", err=True)
        return
    try:
        click.echo(text)
    except UnicodeEncodeError:
        click.echo(text.encode('ascii', errors='replace').decode('ascii'))


__all__ = [
    "EXIT_OK",
    "EXIT_ERROR",
    "EXIT_CHANGES",
    "format_error",
    "fail",
    "build_workspace",
    "write_output",
    "resolve_declarations_path",
]
