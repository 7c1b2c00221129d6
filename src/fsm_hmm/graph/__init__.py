"""
Transition graph module.

Deterministic functional graphs and the analysis of their cycle structure.
"""

from .transition import TransitionGraph, load_graph
from .analysis import (
    GroupAnalysis,
    analyze_graph,
    strongly_connected_groups,
    maximum_group_distance,
    global_period,
    distance_and_tour
)
from .dot import to_dot

__all__ = [
    "TransitionGraph",
    "load_graph",
    "GroupAnalysis",
    "analyze_graph",
    "strongly_connected_groups",
    "maximum_group_distance",
    "global_period",
    "distance_and_tour",
    "to_dot"
]
