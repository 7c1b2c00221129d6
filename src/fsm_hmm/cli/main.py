"""
Main CLI application for FSM-HMM system.

Provides command-line access to graph analysis, HMM training and influence
matrices. Graphs are read from JSON files of the form
``{"next": [...], "output": [...], "name": "..."}``.
"""

import json
import sys
from pathlib import Path
from typing import List, Optional

import numpy as np
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .. import __version__
from ..config import get_all_config, load_config_file, save_config_file, update_config
from ..exceptions import FsmHmmError
from ..graph import load_graph, to_dot
from ..hmm import influence_analysis
from ..logger import disable_file_logging, enable_file_logging, set_log_level
from ..train import FsmTrainer, ModelPersistence
from .display import groups_table, indices_table, matrix_table
from .errors import FsmHmmCLIError, EXIT_CODES, handle_cli_error, parse_support

console = Console()

app = typer.Typer(
    name="fsm-hmm",
    help="Cycle analysis of finite-state machines and HMM training against them",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True
)


def _debug(ctx: typer.Context) -> bool:
    return bool(ctx.meta.get("debug", False))


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress all output except errors"),
    debug: bool = typer.Option(False, "--debug", help="Show tracebacks for errors"),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to JSON configuration file",
        exists=True,
        file_okay=True,
        dir_okay=False
    ),
    log_file: Optional[Path] = typer.Option(
        None, "--log-file", help="Also write log messages to this file"
    )
):
    """
    FSM-HMM: functional graph analysis and HMM training

    \b
    Quick Start:
    1. Inspect a graph:      fsm-hmm analyze graph.json --dot graph.dot
    2. Train a model:        fsm-hmm train graph.json --states 3 --models-dir models
    3. Inspect a cycle:      fsm-hmm influence graph.json graph --models-dir models
    """
    ctx.meta["debug"] = debug
    ctx.meta["verbose"] = verbose

    if config_file:
        try:
            load_config_file(str(config_file))
        except ValueError as e:
            handle_cli_error(e, "configuration loading", debug)

    if quiet:
        set_log_level('ERROR')
    elif verbose or debug:
        set_log_level('DEBUG')
    else:
        set_log_level('INFO')

    if log_file is not None:
        try:
            enable_file_logging(str(log_file))
        except OSError as e:
            handle_cli_error(e, "log file setup", debug)


@app.command("analyze")
def analyze(
    ctx: typer.Context,
    graph_file: Path = typer.Argument(..., help="Graph JSON file", exists=True, dir_okay=False),
    dot_file: Optional[Path] = typer.Option(None, "--dot", help="Write the graph as DOT to this file ('-' for stdout)"),
    support: Optional[str] = typer.Option(
        None, "--support", "-s", help="Initial weights, e.g. '0,0,1,0' or '2:1,5:0.5'"
    )
):
    """Show strongly connected groups, distances and periods of a graph."""
    try:
        graph = load_graph(graph_file)
        weights = parse_support(support, graph.size)
        analysis = graph.analysis

        console.print(groups_table(graph))
        console.print(indices_table(graph))
        console.print(Panel.fit(
            f"[bold]{graph.name}[/bold]\n"
            f"Indices: {graph.size}\n"
            f"Groups: {len(analysis.groups)}\n"
            f"Maximum distance: {analysis.maximum_distance}\n"
            f"Global period: {analysis.period(weights if support else None)}",
            border_style="blue"
        ))

        if dot_file is not None:
            dot = to_dot(graph)
            if str(dot_file) == '-':
                sys.stdout.write(dot)
            else:
                dot_file.write_text(dot, encoding='utf-8')
                console.print(f"[green]DOT written to {dot_file}[/green]")
    except (FsmHmmError, FsmHmmCLIError) as e:
        handle_cli_error(e, "graph analysis", _debug(ctx))


@app.command("train")
def train(
    ctx: typer.Context,
    graph_file: Path = typer.Argument(..., help="Graph JSON file", exists=True, dir_okay=False),
    n_states: Optional[int] = typer.Option(None, "--states", "-n", help="Number of hidden states"),
    support: Optional[str] = typer.Option(
        None, "--support", "-s", help="Initial weights, e.g. '0,0,1,0' or '2:1,5:0.5' (default: uniform)"
    ),
    sample_length: Optional[int] = typer.Option(
        None, "--sample-length", "-l", help="Observations per starting index (default: distance + period + 1)"
    ),
    max_iterations: Optional[int] = typer.Option(None, "--max-iter", "-i", help="Maximum EM sweeps"),
    tolerance: Optional[float] = typer.Option(None, "--tolerance", "-t", help="Convergence tolerance"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed for the initial parameters"),
    models_dir: Optional[Path] = typer.Option(None, "--models-dir", "-o", help="Save the trained model here"),
    name: Optional[str] = typer.Option(None, "--name", help="Model name (default: graph name)"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing model"),
    show: bool = typer.Option(True, "--show/--no-show", help="Print the trained matrices")
):
    """Train an explicit HMM on the outputs of a graph."""
    try:
        graph = load_graph(graph_file)
        weights = parse_support(support, graph.size)

        trainer = FsmTrainer(
            max_iterations=max_iterations,
            convergence_tolerance=tolerance,
            sample_length=sample_length,
            verbose=ctx.meta.get("verbose", False)
        )
        hmm, stats = trainer.train_new(graph, weights, n_states=n_states, random_state=seed)

        status = "[green]converged[/green]" if stats['converged'] else "[yellow]not converged[/yellow]"
        console.print(Panel.fit(
            f"[bold]Training {status}[/bold]\n"
            f"Iterations: {stats['iterations']}\n"
            f"Sample length: {stats['sample_length']}\n"
            f"Final log-likelihood: {stats['final_log_likelihood']:.6f}\n"
            f"Valid: {hmm.validate()}",
            border_style="blue"
        ))

        if show:
            console.print(matrix_table("Initial", hmm.pi))
            console.print(matrix_table("Transition", hmm.A))
            console.print(matrix_table("Emission", hmm.B))

        if models_dir is not None:
            persistence = ModelPersistence(models_dir)
            metadata = dict(stats)
            metadata.update({
                'graph': graph.to_dict(),
                'initial_distribution': weights,
                'random_state': seed
            })
            model_path, _ = persistence.save_model(name or graph.name, hmm, metadata, overwrite=force)
            console.print(f"[green]Model saved to {model_path}[/green]")
    except (FsmHmmError, FsmHmmCLIError) as e:
        handle_cli_error(e, "training", _debug(ctx))


@app.command("influence")
def influence(
    ctx: typer.Context,
    graph_file: Path = typer.Argument(..., help="Graph JSON file", exists=True, dir_okay=False),
    model_name: str = typer.Argument(..., help="Name of a saved model"),
    models_dir: Path = typer.Option(Path("models"), "--models-dir", "-m", help="Directory of saved models"),
    index: Optional[int] = typer.Option(
        None, "--index", "-x", help="Cyclic graph index (default: first member of every group)"
    )
):
    """Show the influence matrix and steady state of graph cycles under a saved model."""
    try:
        graph = load_graph(graph_file)
        hmm, _ = ModelPersistence(models_dir).load_model(model_name)

        indices = [index] if index is not None else [group[0] for group in graph.analysis.groups]
        if not indices:
            raise FsmHmmCLIError("The graph has no cycles", exit_code=EXIT_CODES["invalid_argument"])

        for start in indices:
            result = influence_analysis(hmm, graph, start)
            console.rule(f"Index {start} (period {result.period})")
            console.print(matrix_table("Influence matrix", result.matrix))

            eigen = Table(title="Eigenvalues")
            eigen.add_column("#", justify="right")
            eigen.add_column("Value", justify="right")
            eigen.add_column("Modulus", justify="right")
            for number, value in enumerate(result.eigenvalues):
                eigen.add_row(str(number), f"{complex(value):.4g}", f"{abs(value):.4g}")
            console.print(eigen)
            console.print(matrix_table("Steady state", result.steady_state))
    except (FsmHmmError, FsmHmmCLIError) as e:
        handle_cli_error(e, "influence analysis", _debug(ctx))


@app.command("models")
def list_models(
    models_dir: Path = typer.Argument(Path("models"), help="Directory of saved models")
):
    """List saved models."""
    models = ModelPersistence(models_dir).list_available_models()

    table = Table(title=f"Models in {models_dir}")
    for column in ("Name", "States", "Outputs", "Converged", "Log-likelihood", "Saved"):
        table.add_column(column)

    for info in models:
        log_likelihood = info.get('final_log_likelihood', '?')
        if isinstance(log_likelihood, float):
            log_likelihood = f"{log_likelihood:.4f}"
        table.add_row(
            info['name'],
            str(info.get('n_states', '?')),
            str(info.get('n_outputs', '?')),
            str(info.get('converged', '?')),
            str(log_likelihood),
            str(info.get('saved_at', '?'))
        )

    console.print(table)


def _parse_setting(setting: str) -> dict:
    """Turn ``section.key=value`` into ``{section: {key: value}}``; values are read as JSON when possible."""
    name, sep, raw = setting.partition('=')
    section, dot, key = name.strip().partition('.')
    if not sep or not dot or not section or not key:
        raise FsmHmmCLIError(
            f"Invalid setting '{setting}'",
            exit_code=EXIT_CODES["invalid_argument"],
            suggestions=["Use section.key=value, e.g. training.max_iterations=50"]
        )
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return {section: {key: value}}


@app.command("config")
def show_config(
    ctx: typer.Context,
    settings: Optional[List[str]] = typer.Option(
        None, "--set", help="Override a setting, e.g. training.max_iterations=50 (repeatable)"
    ),
    save_file: Optional[Path] = typer.Option(None, "--save", help="Write the effective configuration to this file")
):
    """Show the effective configuration, optionally overriding and saving it."""
    try:
        for setting in settings or []:
            update_config(_parse_setting(setting))

        table = Table(title="Configuration")
        table.add_column("Section", no_wrap=True)
        table.add_column("Key", no_wrap=True)
        table.add_column("Value", overflow="fold")
        for section, values in get_all_config().items():
            for key, value in values.items():
                table.add_row(section, key, repr(value))
        console.print(table)

        if save_file is not None:
            save_config_file(str(save_file))
            console.print(f"[green]Configuration saved to {save_file}[/green]")
    except (FsmHmmCLIError, OSError) as e:
        handle_cli_error(e, "configuration", _debug(ctx))


@app.command("version")
def show_version():
    """Show FSM-HMM version information."""
    console.print(Panel.fit(
        f"[bold]FSM-HMM Version {__version__}[/bold]\n"
        f"Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}\n"
        f"numpy {np.__version__}",
        border_style="blue"
    ))


def cli_main():
    """Main entry point for CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(EXIT_CODES["general_error"])
    finally:
        disable_file_logging()


if __name__ == "__main__":
    cli_main()
