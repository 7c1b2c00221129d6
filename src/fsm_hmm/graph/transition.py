"""
Functional transition graph.

A deterministic finite-state machine over the index domain [0, n): every
index has exactly one successor and carries one output label.
"""

import json
from functools import cached_property
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np

from ..exceptions import IndexOutOfRangeError, InvalidArgumentError, InvalidGraphError
from ..logger import get_logger

logger = get_logger(__name__)


def _as_index_array(values: Sequence[int], what: str) -> np.ndarray:
    array = np.asarray(values)
    if array.size == 0:
        return np.zeros(0, dtype=np.int64)
    if array.ndim != 1:
        raise InvalidGraphError(f"{what} must be 1-dimensional, got shape {array.shape}")
    if not np.issubdtype(array.dtype, np.integer):
        raise InvalidGraphError(f"{what} must contain integers, got dtype {array.dtype}")
    return array.astype(np.int64)


def check_index(index, size: int) -> int:
    """
    Validate a graph index.

    Returns:
        ``index`` as int

    Raises:
        InvalidArgumentError: If ``index`` is not an integer
        IndexOutOfRangeError: If ``index`` is outside [0, size)
    """
    if not isinstance(index, (int, np.integer)):
        raise InvalidArgumentError(f"Index must be an integer, got {index!r}")
    if not 0 <= index < size:
        raise IndexOutOfRangeError(f"Index {index} is outside [0, {size})")
    return int(index)


class TransitionGraph:
    """
    Immutable functional graph with a label attached to every index.

    Attributes:
        name: Optional label used for diagnostics only
    """

    def __init__(self, next_indices: Sequence[int], outputs: Sequence[int],
                 name: Optional[str] = None):
        """
        Build a transition graph.

        Args:
            next_indices: Successor of each index, values in [0, n)
            outputs: Output label of each index (non-negative integers)
            name: Optional diagnostic name

        Raises:
            InvalidGraphError: If the arrays are malformed or a successor is out of range
        """
        successors = _as_index_array(next_indices, "next indices")
        labels = _as_index_array(outputs, "outputs")

        if successors.shape != labels.shape:
            raise InvalidGraphError(
                f"next indices ({successors.shape[0]}) and outputs ({labels.shape[0]}) "
                f"have different lengths"
            )

        n = successors.shape[0]
        out_of_range = np.flatnonzero((successors < 0) | (successors >= n))
        if out_of_range.size:
            i = int(out_of_range[0])
            raise InvalidGraphError(
                f"next({i}) = {int(successors[i])} is outside [0, {n})"
            )

        if np.any(labels < 0):
            raise InvalidGraphError("Output labels must be non-negative")

        successors.setflags(write=False)
        labels.setflags(write=False)
        self._next = successors
        self._outputs = labels
        self.name = name

        logger.debug(f"Built transition graph {self.name or ''} with {n} indices")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransitionGraph':
        """Build a graph from a ``{"next": [...], "output": [...]}`` mapping."""
        try:
            return cls(data['next'], data['output'], name=data.get('name'))
        except KeyError as e:
            raise InvalidGraphError(f"Graph description is missing key {e}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'next': self._next.tolist(),
            'output': self._outputs.tolist()
        }

    @property
    def size(self) -> int:
        """Number of indices in the graph."""
        return int(self._next.shape[0])

    def __len__(self) -> int:
        return self.size

    @property
    def next_indices(self) -> np.ndarray:
        """Read-only successor array."""
        return self._next

    @property
    def outputs(self) -> np.ndarray:
        """Read-only output label array."""
        return self._outputs

    @property
    def n_outputs(self) -> int:
        """Smallest alphabet size that covers every output label."""
        if self.size == 0:
            return 0
        return int(self._outputs.max()) + 1

    def check_index(self, index: int) -> int:
        """Return ``index`` as int, raising IndexOutOfRangeError outside [0, n)."""
        return check_index(index, self.size)

    def next(self, index: int) -> int:
        """Successor of ``index``."""
        return int(self._next[self.check_index(index)])

    def output(self, index: int) -> int:
        """Output label of ``index``."""
        return int(self._outputs[self.check_index(index)])

    def walk(self, start: int, length: int) -> np.ndarray:
        """
        Indices visited by walking ``length`` steps from ``start``.

        The first element is ``start`` itself.
        """
        index = self.check_index(start)
        visited = np.empty(max(length, 0), dtype=np.int64)
        for t in range(visited.shape[0]):
            visited[t] = index
            index = self._next[index]
        return visited

    def observe(self, start: int, length: int) -> np.ndarray:
        """Output labels emitted along :meth:`walk`."""
        return self._outputs[self.walk(start, length)]

    @cached_property
    def analysis(self):
        """Cycle structure of this graph, computed once."""
        from .analysis import analyze_graph
        return analyze_graph(self)

    def __repr__(self) -> str:
        label = f"name={self.name!r}, " if self.name else ""
        return f"TransitionGraph({label}size={self.size})"


def load_graph(path: Union[str, Path]) -> TransitionGraph:
    """
    Load a transition graph from a JSON file.

    Args:
        path: File holding ``{"next": [...], "output": [...], "name": ...}``

    Returns:
        The parsed graph

    Raises:
        InvalidGraphError: If the file cannot be parsed or describes a malformed graph
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise InvalidGraphError(f"Failed to read graph from {path}: {e}")

    if not isinstance(data, dict):
        raise InvalidGraphError(f"Graph file {path} must contain a JSON object")

    data.setdefault('name', path.stem)
    return TransitionGraph.from_dict(data)
