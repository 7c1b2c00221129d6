"""
Baum-Welch training of an ExplicitHMM against a deterministic transition graph.

A transition graph produces one infinite, eventually periodic output sequence
per starting index. Training therefore cuts every sequence at a fixed sample
length and weights it by the initial weight of its starting index.
"""

import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Any

import numpy as np

from ..config import get_config
from ..exceptions import InvalidArgumentError, ModelTrainingError, PreconditionViolation
from ..graph.analysis import global_period, maximum_group_distance
from ..graph.transition import TransitionGraph
from ..hmm.model import ExplicitHMM
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SweepResult:
    """
    Outcome of one EM sweep.

    Attributes:
        change: Frobenius norm of the combined transition and emission update
        log_likelihood: Weighted log-likelihood under the parameters before the update
        n_sequences: Distinct observation sequences that contributed
        n_skipped: Sequences skipped because the model cannot produce them
    """
    change: float
    log_likelihood: float
    n_sequences: int
    n_skipped: int


def check_initial_distribution(graph: TransitionGraph, initial_distribution: Sequence[float]) -> np.ndarray:
    """
    Convert ``initial_distribution`` to a weight array over the graph indices.

    Raises:
        InvalidArgumentError: If the length doesn't match or a weight is negative
    """
    weights = np.asarray(initial_distribution, dtype=float)
    if weights.shape != (graph.size,):
        raise InvalidArgumentError(
            f"Initial distribution has shape {weights.shape}, expected ({graph.size},)"
        )
    if not np.all(np.isfinite(weights)):
        raise InvalidArgumentError("Initial distribution contains non-finite values")
    if np.any(weights < 0):
        raise InvalidArgumentError("Initial distribution contains negative weights")
    return weights


def recommended_sample_length(graph: TransitionGraph,
                              initial_distribution: Optional[Sequence[float]] = None) -> int:
    """
    Sample length that covers the longest transient and one full period.

    The extra step makes every sample contain the transition that closes the
    period.
    """
    return maximum_group_distance(graph) + global_period(graph, initial_distribution) + 1


def observation_sequences(graph: TransitionGraph,
                          initial_distribution: Sequence[float],
                          sample_length: int) -> List[Tuple[np.ndarray, float]]:
    """
    Weighted observation sequences generated by walking ``graph``.

    Starting indices that emit the same sample are merged and their weights
    summed. Indices with zero weight are left out.

    Returns:
        List of (observations [sample_length], weight) in order of first occurrence
    """
    weights = check_initial_distribution(graph, initial_distribution)

    merged: Dict[Tuple[int, ...], float] = {}
    for start in np.flatnonzero(weights > 0):
        key = tuple(graph.observe(int(start), sample_length).tolist())
        merged[key] = merged.get(key, 0.0) + float(weights[start])

    return [(np.array(key, dtype=np.int64), weight) for key, weight in merged.items()]


def baum_welch_sweep(hmm: ExplicitHMM,
                     graph: TransitionGraph,
                     initial_distribution: Sequence[float],
                     sample_length: int) -> SweepResult:
    """
    Perform one EM sweep and update ``hmm`` in place.

    Transition and emission rows are re-estimated from posteriors aggregated
    over all weighted starting indices. A row whose posterior mass is zero
    keeps its previous value. The initial distribution is not re-estimated.

    Args:
        hmm: Model to update
        graph: Transition graph providing the observations
        initial_distribution: Non-negative weight per graph index
        sample_length: Number of observations per starting index

    Returns:
        SweepResult of the update

    Raises:
        PreconditionViolation: If ``sample_length`` is not positive
        InvalidArgumentError: If the weights are malformed or an output label
            is not an HMM output symbol
    """
    if sample_length <= 0:
        raise PreconditionViolation(f"sample_length must be positive, got {sample_length}")

    sequences = observation_sequences(graph, initial_distribution, sample_length)
    if not sequences:
        logger.debug("All initial weights are zero; parameters left unchanged")
        return SweepResult(change=0.0, log_likelihood=0.0, n_sequences=0, n_skipped=0)

    A_numerator = np.zeros((hmm.n_states, hmm.n_states))
    B_numerator = np.zeros((hmm.n_states, hmm.n_outputs))
    total_log_likelihood = 0.0
    n_skipped = 0

    for observations, weight in sequences:
        try:
            gamma, xi, log_likelihood = hmm.posteriors(observations)
        except ModelTrainingError as e:
            logger.warning(f"Skipping sequence the model cannot produce: {e}")
            n_skipped += 1
            continue

        total_log_likelihood += weight * log_likelihood
        A_numerator += weight * xi.sum(axis=0)
        # Scatter gamma rows onto the observed symbol columns
        np.add.at(B_numerator.T, observations, weight * gamma)

    # Row sums of the numerators equal the gamma denominators
    A_denominator = A_numerator.sum(axis=1)
    B_denominator = B_numerator.sum(axis=1)

    A_new = hmm.A.copy()
    rows = A_denominator > 0
    A_new[rows] = A_numerator[rows] / A_denominator[rows, None]

    B_new = hmm.B.copy()
    rows = B_denominator > 0
    B_new[rows] = B_numerator[rows] / B_denominator[rows, None]

    change = float(np.sqrt(np.sum((A_new - hmm.A) ** 2) + np.sum((B_new - hmm.B) ** 2)))

    hmm.A[...] = A_new
    hmm.B[...] = B_new

    logger.debug(
        f"EM sweep: {len(sequences)} sequences, {n_skipped} skipped, "
        f"log_likelihood={total_log_likelihood:.6f}, change={change:.3e}"
    )

    return SweepResult(
        change=change,
        log_likelihood=float(total_log_likelihood),
        n_sequences=len(sequences) - n_skipped,
        n_skipped=n_skipped
    )


def train_step(hmm: ExplicitHMM,
               graph: TransitionGraph,
               initial_distribution: Sequence[float],
               sample_length: int) -> float:
    """
    One EM sweep; returns the magnitude of the parameter change.

    See :func:`baum_welch_sweep`.
    """
    return baum_welch_sweep(hmm, graph, initial_distribution, sample_length).change


def log_likelihood(hmm: ExplicitHMM,
                   graph: TransitionGraph,
                   initial_distribution: Sequence[float],
                   sample_length: int) -> float:
    """
    Weighted log-likelihood of the samples generated by walking ``graph``.

    Returns:
        Sum of weight * log P(sample), ``-inf`` if some weighted sample
        cannot be produced by the model
    """
    if sample_length <= 0:
        raise PreconditionViolation(f"sample_length must be positive, got {sample_length}")

    total = 0.0
    for observations, weight in observation_sequences(graph, initial_distribution, sample_length):
        total += weight * hmm.score(observations)
    return float(total)


class FsmTrainer:
    """
    Iterates EM sweeps until the parameters stop changing.

    The sample length is fixed for the whole run so that successive sweeps
    increase the same log-likelihood.
    """

    def __init__(self,
                 max_iterations: Optional[int] = None,
                 convergence_tolerance: Optional[float] = None,
                 sample_length: Optional[int] = None,
                 verbose: bool = False):
        """
        Initialize FsmTrainer.

        Args:
            max_iterations: Maximum number of EM sweeps (default: ``training.max_iterations``)
            convergence_tolerance: Stop once the parameter change is below this value
                (default: ``training.convergence_tolerance``)
            sample_length: Observations per starting index (default: ``training.sample_length``,
                or :func:`recommended_sample_length` when unset)
            verbose: Log progress at INFO level
        """
        if max_iterations is None:
            max_iterations = get_config('training', 'max_iterations')
        if convergence_tolerance is None:
            convergence_tolerance = get_config('training', 'convergence_tolerance')
        if sample_length is None:
            sample_length = get_config('training', 'sample_length')

        if max_iterations < 1:
            raise InvalidArgumentError(f"max_iterations must be positive, got {max_iterations}")

        self.max_iterations = int(max_iterations)
        self.convergence_tolerance = float(convergence_tolerance)
        self.sample_length = sample_length
        self.verbose = verbose

        logger.debug(
            f"FsmTrainer initialized: max_iterations={self.max_iterations}, "
            f"tolerance={self.convergence_tolerance}, sample_length={self.sample_length}"
        )

    def resolve_sample_length(self, graph: TransitionGraph, initial_distribution: Sequence[float]) -> int:
        if self.sample_length is not None:
            return int(self.sample_length)
        return recommended_sample_length(graph, initial_distribution)

    def fit(self,
            hmm: ExplicitHMM,
            graph: TransitionGraph,
            initial_distribution: Sequence[float]) -> Dict[str, Any]:
        """
        Train ``hmm`` in place.

        Returns:
            Dictionary with training statistics:
            - 'converged': Whether the change fell below the tolerance
            - 'iterations': Number of sweeps performed
            - 'sample_length': Sample length used for every sweep
            - 'change_history': Parameter change per sweep
            - 'log_likelihood_history': Log-likelihood before each sweep and after the last
            - 'final_log_likelihood': Log-likelihood of the trained model
            - 'training_time': Wall-clock seconds
        """
        sample_length = self.resolve_sample_length(graph, initial_distribution)
        log = logger.info if self.verbose else logger.debug

        log(f"Training {hmm!r} on {graph!r} with sample_length={sample_length}")
        start_time = time.time()

        change_history = []
        log_likelihood_history = []
        converged = False

        for iteration in range(self.max_iterations):
            result = baum_welch_sweep(hmm, graph, initial_distribution, sample_length)
            change_history.append(result.change)
            log_likelihood_history.append(result.log_likelihood)

            log(f"Iteration {iteration + 1}: log_likelihood={result.log_likelihood:.6f}, "
                f"change={result.change:.3e}")

            if len(log_likelihood_history) > 1 and \
                    log_likelihood_history[-1] < log_likelihood_history[-2] - 1e-6:
                logger.warning(
                    f"Log-likelihood decreased by "
                    f"{log_likelihood_history[-2] - log_likelihood_history[-1]:.6f} "
                    f"at iteration {iteration + 1}"
                )

            if result.change < self.convergence_tolerance:
                converged = True
                log(f"Converged after {iteration + 1} iterations "
                    f"(change {result.change:.3e} < tolerance {self.convergence_tolerance})")
                break

        if not converged:
            log(f"Training stopped after {self.max_iterations} iterations without convergence")

        final_log_likelihood = log_likelihood(hmm, graph, initial_distribution, sample_length)
        log_likelihood_history.append(final_log_likelihood)

        return {
            'converged': converged,
            'iterations': len(change_history),
            'sample_length': sample_length,
            'change_history': change_history,
            'log_likelihood_history': log_likelihood_history,
            'final_log_likelihood': final_log_likelihood,
            'training_time': time.time() - start_time
        }

    def train_new(self,
                  graph: TransitionGraph,
                  initial_distribution: Sequence[float],
                  n_states: Optional[int] = None,
                  random_state: Optional[int] = None) -> Tuple[ExplicitHMM, Dict[str, Any]]:
        """
        Create a randomly initialised model sized for ``graph`` and train it.

        Args:
            graph: Transition graph to learn
            initial_distribution: Weight per graph index
            n_states: Hidden states (default: ``hmm.n_states``)
            random_state: Seed for the initial parameters (default: ``hmm.random_seed``)

        Returns:
            Tuple of (trained model, training statistics)
        """
        if n_states is None:
            n_states = get_config('hmm', 'n_states')
        if random_state is None:
            random_state = get_config('hmm', 'random_seed')

        hmm = ExplicitHMM(n_states, max(graph.n_outputs, 1), random_state=random_state)
        stats = self.fit(hmm, graph, initial_distribution)
        return hmm, stats
