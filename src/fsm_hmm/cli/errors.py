"""
Error handling for CLI commands.

Maps library errors to rich-formatted messages and exit codes.
"""

import traceback
from typing import Optional
import logging

import typer
from rich.console import Console

from ..exceptions import (
    FsmHmmError,
    InvalidArgumentError,
    PreconditionViolation,
    PersistenceError,
    ModelTrainingError
)

console = Console(stderr=True)
logger = logging.getLogger(__name__)


EXIT_CODES = {
    "success": 0,
    "general_error": 1,
    "invalid_argument": 2,
    "precondition": 3,
    "persistence": 4,
    "training": 5
}


class FsmHmmCLIError(Exception):
    """Base exception for CLI-specific errors."""

    def __init__(self, message: str, exit_code: int = 1, suggestions: Optional[list] = None):
        self.message = message
        self.exit_code = exit_code
        self.suggestions = suggestions or []
        super().__init__(message)


def exit_code_for(error: Exception) -> int:
    """Exit code that reports ``error``."""
    if isinstance(error, FsmHmmCLIError):
        return error.exit_code
    if isinstance(error, InvalidArgumentError):
        return EXIT_CODES["invalid_argument"]
    if isinstance(error, PreconditionViolation):
        return EXIT_CODES["precondition"]
    if isinstance(error, PersistenceError):
        return EXIT_CODES["persistence"]
    if isinstance(error, ModelTrainingError):
        return EXIT_CODES["training"]
    return EXIT_CODES["general_error"]


def format_error_message(error: Exception, operation: str, debug: bool = False) -> str:
    """Format error message with context and suggestions."""
    error_type = type(error).__name__

    message_parts = [
        f"[red]Error during {operation}:[/red]",
        f"[red]{error_type}: {error}[/red]"
    ]

    if getattr(error, 'suggestions', None):
        message_parts.append("")
        message_parts.append("[yellow]Suggestions:[/yellow]")
        for suggestion in error.suggestions:
            message_parts.append(f"  • {suggestion}")

    if debug:
        message_parts.append("")
        message_parts.append("[dim]Debug information:[/dim]")
        message_parts.append(f"[dim]{traceback.format_exc()}[/dim]")

    return "\n".join(message_parts)


def handle_cli_error(error: Exception, operation: str, debug: bool = False) -> None:
    """Report ``error`` and exit with the matching exit code."""
    console.print(format_error_message(error, operation, debug))
    logger.error(f"CLI error in {operation}: {error}", exc_info=debug)

    if not isinstance(error, (FsmHmmError, FsmHmmCLIError)):
        console.print("\n[dim]This looks like a bug; rerun with --debug for a traceback[/dim]")

    raise typer.Exit(exit_code_for(error))


def parse_support(support: Optional[str], size: int) -> list:
    """
    Parse the ``--support`` option into a weight per graph index.

    Accepts a comma separated list of ``size`` weights, or of ``index:weight``
    pairs (unlisted indices get weight zero). ``None`` selects every index
    with equal weight.
    """
    if support is None:
        return [1.0 / size] * size if size else []

    items = [item.strip() for item in support.split(',') if item.strip()]
    try:
        if items and all(':' in item for item in items):
            weights = [0.0] * size
            for item in items:
                index, weight = item.split(':', 1)
                index = int(index)
                if not 0 <= index < size:
                    raise FsmHmmCLIError(
                        f"Support index {index} is outside [0, {size})",
                        exit_code=EXIT_CODES["invalid_argument"]
                    )
                weights[index] = float(weight)
            return weights
        weights = [float(item) for item in items]
    except ValueError:
        raise FsmHmmCLIError(
            f"Cannot parse support {support!r}",
            exit_code=EXIT_CODES["invalid_argument"],
            suggestions=["Use weights like '0,0,1,0' or pairs like '2:1,5:0.5'"]
        )

    if len(weights) != size:
        raise FsmHmmCLIError(
            f"Support lists {len(weights)} weights but the graph has {size} indices",
            exit_code=EXIT_CODES["invalid_argument"]
        )
    return weights
