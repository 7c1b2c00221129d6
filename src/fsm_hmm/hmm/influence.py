"""
Influence matrices of cyclic output sequences.

For an index on a cycle of a transition graph, the influence matrix is the
linear operator that one full traversal of the cycle applies to a hidden
state distribution while the HMM emits exactly the outputs of that cycle.
Its dominant left eigenvector approximates the steady-state hidden state
distribution conditioned on reproducing the cyclic output sequence.
"""

from dataclasses import dataclass

import numpy as np
from scipy import linalg

from .model import ExplicitHMM
from ..exceptions import InvalidArgumentError, PreconditionViolation
from ..graph.transition import TransitionGraph
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class InfluenceResult:
    """
    Influence matrix of one cycle and its eigenstructure.

    Attributes:
        index: Graph index the traversal started and ended at
        period: Number of steps in one traversal
        matrix: Influence matrix M[from, to] [n_states, n_states]
        eigenvalues: Eigenvalues of M, sorted by decreasing modulus [n_states]
        eigenvectors: Left eigenvectors of M as columns, same order [n_states, n_states]
        dominant_eigenvalue: Eigenvalue with the largest modulus
        steady_state: Dominant left eigenvector normalised to sum to one [n_states]
    """
    index: int
    period: int
    matrix: np.ndarray
    eigenvalues: np.ndarray
    eigenvectors: np.ndarray
    dominant_eigenvalue: complex
    steady_state: np.ndarray


def generate_influence_matrix(hmm: ExplicitHMM, graph: TransitionGraph, index: int) -> np.ndarray:
    """
    Build the influence matrix of the cycle through ``index``.

    Every row starts as a unit vector at its hidden state. Each step applies
    ``v <- (v . A) * B[:, output]`` with the output of the current graph
    index and then advances the graph index by ``next``, until the graph
    index is back at ``index``. The first factor therefore uses
    ``output(index)``.

    Args:
        hmm: Model providing transition and emission probabilities
        graph: Transition graph
        index: Graph index lying on a cycle

    Returns:
        Influence matrix [n_states, n_states]

    Raises:
        PreconditionViolation: If ``index`` does not lie on a cycle
        InvalidArgumentError: If an output on the cycle is not an HMM output symbol
    """
    if not graph.analysis.is_cyclic(graph.check_index(index)):
        raise PreconditionViolation(
            f"Index {index} is not part of a cycle "
            f"(distance {int(graph.analysis.distance[index])})"
        )

    matrix = np.eye(hmm.n_states)
    current = index
    for _ in range(graph.size):
        output = graph.output(current)
        if output >= hmm.n_outputs:
            raise InvalidArgumentError(
                f"Output {output} of index {current} exceeds the {hmm.n_outputs} HMM outputs"
            )
        matrix = (matrix @ hmm.A) * hmm.B[:, output][None, :]
        current = graph.next(current)
        if current == index:
            return matrix

    raise PreconditionViolation(f"Walk from index {index} did not return within {graph.size} steps")


def dominant_eigenstructure(matrix: np.ndarray):
    """
    Eigen-decomposition of ``matrix`` acting on row vectors.

    Returns:
        Tuple of (eigenvalues, left eigenvectors, steady state), eigenvalues
        sorted by decreasing modulus
    """
    # Left eigenvectors of M are the right eigenvectors of M^T
    eigenvalues, eigenvectors = linalg.eig(matrix.T)
    order = np.argsort(-np.abs(eigenvalues), kind='stable')
    eigenvalues = eigenvalues[order]
    eigenvectors = eigenvectors[:, order]

    dominant = np.real(eigenvectors[:, 0])
    total = dominant.sum()
    if total != 0:
        steady_state = dominant / total
    else:
        steady_state = dominant
    return eigenvalues, eigenvectors, steady_state


def influence_analysis(hmm: ExplicitHMM, graph: TransitionGraph, index: int) -> InfluenceResult:
    """Influence matrix of the cycle through ``index`` with its dominant eigenstructure."""
    matrix = generate_influence_matrix(hmm, graph, index)
    eigenvalues, eigenvectors, steady_state = dominant_eigenstructure(matrix)

    result = InfluenceResult(
        index=int(index),
        period=graph.analysis.period_of(index),
        matrix=matrix,
        eigenvalues=eigenvalues,
        eigenvectors=eigenvectors,
        dominant_eigenvalue=complex(eigenvalues[0]),
        steady_state=steady_state
    )

    logger.debug(
        f"Influence of index {index}: period={result.period}, "
        f"dominant eigenvalue={result.dominant_eigenvalue:.6g}"
    )

    return result
