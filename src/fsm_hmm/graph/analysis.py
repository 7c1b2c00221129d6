"""
Cycle structure of functional transition graphs.

Every weakly connected component of a functional graph is a single cycle with
trees hanging off it. A single sweep over the indices therefore classifies
every index: walking ``next`` from an unseen index either closes a new cycle
or runs into an index that was classified by an earlier walk.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from .transition import TransitionGraph, check_index
from ..exceptions import InvalidArgumentError
from ..logger import get_logger

logger = get_logger(__name__)

NO_GROUP = -1


@dataclass(frozen=True, eq=False)
class GroupAnalysis:
    """
    Structural facts derived from a transition graph.

    Attributes:
        groups: Strongly connected groups in discovery order
        periods: Cycle length of each group
        group_index: Group each index eventually enters [n]
        distance: Steps needed to enter that group [n]
        tour_target: Index at which the group is entered [n]
    """
    groups: Tuple[Tuple[int, ...], ...]
    periods: Tuple[int, ...]
    group_index: np.ndarray
    distance: np.ndarray
    tour_target: np.ndarray

    @property
    def size(self) -> int:
        return int(self.distance.shape[0])

    @property
    def maximum_distance(self) -> int:
        if self.size == 0:
            return 0
        return int(self.distance.max())

    def is_cyclic(self, index: int) -> bool:
        """Whether ``index`` lies on a cycle."""
        return bool(self.distance[check_index(index, self.size)] == 0)

    def group_of(self, index: int) -> Tuple[int, ...]:
        """The group that ``index`` eventually enters."""
        return self.groups[self.group_index[check_index(index, self.size)]]

    def period_of(self, index: int) -> int:
        """Period of the group that ``index`` eventually enters."""
        return self.periods[self.group_index[check_index(index, self.size)]]

    def reachable_groups(self, support: Optional[Sequence[float]] = None) -> Tuple[int, ...]:
        """
        Groups reachable from the indices with positive weight in ``support``.

        Args:
            support: Weight per index; ``None`` selects every index

        Returns:
            Sorted group numbers
        """
        if support is None:
            return tuple(range(len(self.groups)))

        weights = np.asarray(support, dtype=float)
        if weights.shape != (self.size,):
            raise InvalidArgumentError(
                f"Support has shape {weights.shape}, expected ({self.size},)"
            )
        active = np.flatnonzero(weights > 0)
        return tuple(sorted(set(int(g) for g in self.group_index[active])))

    def period(self, support: Optional[Sequence[float]] = None) -> int:
        """Least common multiple of the periods reachable from ``support``."""
        return math.lcm(*(self.periods[g] for g in self.reachable_groups(support)))


def analyze_graph(graph: TransitionGraph) -> GroupAnalysis:
    """
    Classify every index of ``graph`` in one sweep.

    Start indices are scanned in ascending order. A walk stops at the first
    index that was already seen. If that index was seen during the current
    walk, the walk has closed a new group, listed from the successor of the
    re-entry index up to the re-entry index itself. Every walk visits each
    index at most once, so the sweep terminates after ``n`` steps in total.

    Args:
        graph: Transition graph to analyze

    Returns:
        GroupAnalysis for the graph
    """
    n = graph.size
    successors = graph.next_indices

    group_index = np.full(n, NO_GROUP, dtype=np.int64)
    distance = np.zeros(n, dtype=np.int64)
    tour_target = np.arange(n, dtype=np.int64)
    seen = np.zeros(n, dtype=bool)

    groups = []

    for low in range(n):
        if seen[low]:
            continue

        path = []
        position = {}
        index = low
        while not seen[index]:
            seen[index] = True
            position[index] = len(path)
            path.append(index)
            index = int(successors[index])

        if index in position:
            # The walk closed on itself: a new group
            entry = position[index]
            group = tuple(path[entry + 1:]) + (index,)
            number = len(groups)
            groups.append(group)
            for member in group:
                group_index[member] = number
            tail = path[:entry]
            base_distance = 0
            target = index
        else:
            tail = path
            base_distance = int(distance[index])
            target = int(tour_target[index])
            number = int(group_index[index])

        for steps, member in enumerate(reversed(tail), start=1):
            distance[member] = base_distance + steps
            tour_target[member] = target
            group_index[member] = number

    for array in (group_index, distance, tour_target):
        array.setflags(write=False)

    analysis = GroupAnalysis(
        groups=tuple(groups),
        periods=tuple(len(group) for group in groups),
        group_index=group_index,
        distance=distance,
        tour_target=tour_target
    )

    logger.debug(
        f"Analyzed {graph!r}: {len(groups)} groups, periods={analysis.periods}, "
        f"maximum distance={analysis.maximum_distance}"
    )

    return analysis


def strongly_connected_groups(graph: TransitionGraph) -> Tuple[Tuple[int, ...], ...]:
    """
    Enumerate the strongly connected groups of ``graph``.

    Only groups containing a cycle are listed, self-loops included. Groups are
    ordered by discovery while scanning start indices in ascending order.

    Examples:
        >>> g = TransitionGraph([4, 0, 6, 2, 1, 6, 5, 7], [0] * 8)
        >>> strongly_connected_groups(g)
        ((4, 1, 0), (5, 6), (7,))
    """
    return graph.analysis.groups


def maximum_group_distance(graph: TransitionGraph) -> int:
    """Longest tail before any index enters a cycle."""
    return graph.analysis.maximum_distance


def global_period(graph: TransitionGraph, support: Optional[Sequence[float]] = None) -> int:
    """
    Least common multiple of the group periods.

    Args:
        graph: Transition graph
        support: Optional weight per index; only groups reachable from indices
            with positive weight are taken into account

    Returns:
        The global period (1 when no group is selected)
    """
    return graph.analysis.period(support)


def distance_and_tour(graph: TransitionGraph) -> Tuple[np.ndarray, np.ndarray]:
    """
    Distance to the entered group and entry index, for every index.

    Returns:
        Tuple of (distance, tour_target) read-only integer arrays [n]
    """
    analysis = graph.analysis
    return analysis.distance, analysis.tour_target
