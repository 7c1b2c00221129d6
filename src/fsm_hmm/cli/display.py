"""
Rich tables for matrices and graph structure.
"""

from typing import Optional, Sequence

import numpy as np
from rich.table import Table

from ..graph.transition import TransitionGraph


def format_value(value, precision: int = 4) -> str:
    if isinstance(value, (complex, np.complexfloating)) and value.imag != 0:
        return f"{value.real:.{precision}g}{value.imag:+.{precision}g}j"
    return f"{np.real(value):.{precision}g}"


def matrix_table(title: str,
                 matrix: np.ndarray,
                 row_labels: Optional[Sequence[str]] = None,
                 column_labels: Optional[Sequence[str]] = None,
                 precision: int = 4) -> Table:
    """
    Render a vector or matrix as a table.

    Args:
        title: Table title
        matrix: 1-D or 2-D array
        row_labels: Label per row (default: row numbers)
        column_labels: Label per column (default: column numbers)
        precision: Significant digits per value
    """
    matrix = np.atleast_2d(np.asarray(matrix))
    n_rows, n_columns = matrix.shape

    row_labels = row_labels or [str(i) for i in range(n_rows)]
    column_labels = column_labels or [str(j) for j in range(n_columns)]

    table = Table(title=title)
    table.add_column("", style="bold")
    for label in column_labels:
        table.add_column(label, justify="right")

    for label, row in zip(row_labels, matrix):
        table.add_row(label, *(format_value(value, precision) for value in row))

    return table


def groups_table(graph: TransitionGraph) -> Table:
    """One row per strongly connected group."""
    analysis = graph.analysis

    table = Table(title=f"Strongly connected groups of {graph.name or 'graph'}")
    table.add_column("Group", justify="right")
    table.add_column("Period", justify="right")
    table.add_column("Members")
    table.add_column("Outputs")

    for number, (group, period) in enumerate(zip(analysis.groups, analysis.periods)):
        table.add_row(
            str(number),
            str(period),
            " ".join(str(i) for i in group),
            " ".join(str(graph.output(i)) for i in group)
        )

    return table


def indices_table(graph: TransitionGraph) -> Table:
    """One row per graph index with its cycle facts."""
    analysis = graph.analysis

    table = Table(title="Indices")
    for column in ("Index", "Next", "Output", "Group", "Distance", "Tour target"):
        table.add_column(column, justify="right")

    for index in range(graph.size):
        table.add_row(
            str(index),
            str(graph.next(index)),
            str(graph.output(index)),
            str(int(analysis.group_index[index])),
            str(int(analysis.distance[index])),
            str(int(analysis.tour_target[index]))
        )

    return table
