"""
Graphviz DOT rendering of a transition graph.
"""

from typing import Callable, Optional

from .transition import TransitionGraph


def default_node_label(graph: TransitionGraph, index: int) -> str:
    return f"n{index}/{graph.output(index)}"


def to_dot(graph: TransitionGraph,
           node_label: Optional[Callable[[TransitionGraph, int], str]] = None,
           highlight_groups: bool = True) -> str:
    """
    Render ``graph`` as a DOT digraph.

    Args:
        graph: Transition graph to render
        node_label: Label function, defaults to ``n<index>/<output>``
        highlight_groups: Draw indices that lie on a cycle with a double border

    Returns:
        DOT source text
    """
    node_label = node_label or default_node_label
    analysis = graph.analysis if highlight_groups else None
    title = (graph.name or 'transition').replace('"', '\\"')

    lines = [f'digraph "{title}" {{']
    for index in range(graph.size):
        label = node_label(graph, index).replace('"', '\\"')
        attributes = [f'label="{label}"']
        if analysis is not None and analysis.is_cyclic(index):
            attributes.append('peripheries=2')
        lines.append(f"\tn{index} [{', '.join(attributes)}];")
    for index in range(graph.size):
        lines.append(f"\tn{index} -> n{graph.next(index)};")
    lines.append('}')
    return '\n'.join(lines) + '\n'
