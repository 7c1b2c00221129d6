"""
Command-line interface module.

Typer application with rich output for graph analysis and HMM training.
"""

from .main import app, cli_main

__all__ = ["app", "cli_main"]
