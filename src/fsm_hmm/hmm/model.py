"""
Explicit Hidden Markov Model implementation.

This module implements a discrete HMM whose initial distribution, transition
matrix and emission matrix are stored as dense arrays.
"""

import numpy as np
from typing import Tuple, Optional

from ..config import get_config
from ..exceptions import (
    IndexOutOfRangeError,
    InvalidArgumentError,
    ModelTrainingError,
    ModelValidationError
)
from ..logger import get_logger

logger = get_logger(__name__)


class ExplicitHMM:
    """
    Discrete Hidden Markov Model with dense parameter matrices.

    The model holds:
    - pi: initial state distribution [n_states]
    - A: transition matrix [n_states, n_states], A[i,j] = P(q_t+1=j | q_t=i)
    - B: emission matrix [n_states, n_outputs], B[i,k] = P(o_t=k | q_t=i)

    All three are row-stochastic. Only the training driver mutates them.
    """

    def __init__(self, n_states: int, n_outputs: int, random_state: Optional[int] = None):
        """
        Initialize ExplicitHMM with randomly scaled distributions.

        Args:
            n_states: Number of hidden states
            n_outputs: Number of output symbols
            random_state: Random seed for reproducible initialization
        """
        if n_states < 1 or n_outputs < 1:
            raise InvalidArgumentError(
                f"An HMM needs at least one state and one output, got "
                f"n_states={n_states}, n_outputs={n_outputs}"
            )

        self.n_states = int(n_states)
        self.n_outputs = int(n_outputs)

        rng = np.random.RandomState(random_state)
        self.pi = self._scaled_distribution(rng, (self.n_states,))
        self.A = self._scaled_distribution(rng, (self.n_states, self.n_states))
        self.B = self._scaled_distribution(rng, (self.n_states, self.n_outputs))

        logger.debug(f"Initialized ExplicitHMM with {n_states} states and {n_outputs} outputs")

    @staticmethod
    def _scaled_distribution(rng: np.random.RandomState, shape: Tuple[int, ...]) -> np.ndarray:
        """Random array whose last axis sums to one."""
        # Shift away from zero so that no row starts out degenerate
        values = rng.rand(*shape) + 1e-3
        return values / values.sum(axis=-1, keepdims=True)

    @classmethod
    def from_parameters(cls, pi, A, B) -> 'ExplicitHMM':
        """
        Create a model from explicit parameters.

        Args:
            pi: Initial state probabilities [n_states]
            A: Transition matrix [n_states, n_states]
            B: Emission matrix [n_states, n_outputs]

        Raises:
            ModelValidationError: If the parameters are not valid distributions
        """
        pi = np.asarray(pi, dtype=float)
        B = np.asarray(B, dtype=float)
        if pi.ndim != 1 or B.ndim != 2:
            raise ModelValidationError(
                f"Expected a vector and matrices, got pi{pi.shape} and B{B.shape}"
            )

        model = cls.__new__(cls)
        model.n_states = pi.shape[0]
        model.n_outputs = B.shape[1]
        model.set_parameters(pi, A, B)
        return model

    def _check_state(self, state: int) -> None:
        if not 0 <= state < self.n_states:
            raise IndexOutOfRangeError(f"State {state} is outside [0, {self.n_states})")

    def _check_output(self, output: int) -> None:
        if not 0 <= output < self.n_outputs:
            raise IndexOutOfRangeError(f"Output {output} is outside [0, {self.n_outputs})")

    def get_initial(self, state: int) -> float:
        """Probability of starting in ``state``."""
        self._check_state(state)
        return float(self.pi[state])

    def get_transition(self, from_state: int, to_state: int) -> float:
        """Probability of moving from ``from_state`` to ``to_state``."""
        self._check_state(from_state)
        self._check_state(to_state)
        return float(self.A[from_state, to_state])

    def get_emission(self, state: int, output: int) -> float:
        """Probability of emitting ``output`` while in ``state``."""
        self._check_state(state)
        self._check_output(output)
        return float(self.B[state, output])

    def validate_stochastic_matrices(self, tolerance: Optional[float] = None) -> bool:
        """
        Validate that all probability matrices satisfy stochastic properties.

        Args:
            tolerance: Allowed deviation of every row sum from one
                (default: ``hmm.validation_tolerance`` from the configuration)

        Returns:
            bool: True if all matrices are valid stochastic matrices

        Raises:
            ModelValidationError: If any matrix violates stochastic properties
        """
        if tolerance is None:
            tolerance = get_config('hmm', 'validation_tolerance') or 1e-9

        for label, matrix in (("Initial probabilities", self.pi),
                              ("Transition matrix", self.A),
                              ("Emission matrix", self.B)):
            if not np.all(np.isfinite(matrix)):
                raise ModelValidationError(f"{label} contain non-finite values")
            if np.any(matrix < 0):
                raise ModelValidationError(f"{label} contain negative values")
            row_sums = matrix.sum(axis=-1)
            if np.any(np.abs(row_sums - 1.0) >= tolerance):
                raise ModelValidationError(f"{label} rows don't sum to 1.0: {row_sums}")

        logger.debug("All stochastic matrix properties validated successfully")
        return True

    def validate(self, tolerance: Optional[float] = None) -> bool:
        """
        Check whether all three distributions are row-stochastic.

        Unlike :meth:`validate_stochastic_matrices` this never raises; callers
        run it after training to detect numerical drift.
        """
        try:
            return self.validate_stochastic_matrices(tolerance)
        except ModelValidationError as e:
            logger.debug(f"Model validation failed: {e}")
            return False

    def get_parameters(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Get current model parameters.

        Returns:
            Tuple of (pi, A, B) parameters
        """
        return self.pi.copy(), self.A.copy(), self.B.copy()

    def set_parameters(self, pi: np.ndarray, A: np.ndarray, B: np.ndarray) -> None:
        """
        Set model parameters and validate them.

        Args:
            pi: Initial state probabilities [n_states]
            A: Transition matrix [n_states, n_states]
            B: Emission matrix [n_states, n_outputs]

        Raises:
            ModelValidationError: If shapes don't match or a row is not a distribution
        """
        pi = np.array(pi, dtype=float)
        A = np.array(A, dtype=float)
        B = np.array(B, dtype=float)

        if pi.shape != (self.n_states,):
            raise ModelValidationError(f"pi shape {pi.shape} doesn't match expected ({self.n_states},)")

        if A.shape != (self.n_states, self.n_states):
            raise ModelValidationError(
                f"A shape {A.shape} doesn't match expected ({self.n_states}, {self.n_states})"
            )

        if B.shape != (self.n_states, self.n_outputs):
            raise ModelValidationError(
                f"B shape {B.shape} doesn't match expected ({self.n_states}, {self.n_outputs})"
            )

        previous = getattr(self, 'pi', None), getattr(self, 'A', None), getattr(self, 'B', None)
        self.pi, self.A, self.B = pi, A, B
        try:
            self.validate_stochastic_matrices()
        except ModelValidationError:
            self.pi, self.A, self.B = previous
            raise

        logger.debug("Model parameters updated and validated")

    def copy(self) -> 'ExplicitHMM':
        """Independent copy of this model."""
        return ExplicitHMM.from_parameters(self.pi, self.A, self.B)

    def check_observations(self, observations) -> np.ndarray:
        """
        Convert ``observations`` to an integer array and check its symbols.

        Raises:
            InvalidArgumentError: If a symbol is outside [0, n_outputs)
        """
        observations = np.asarray(observations, dtype=np.int64)
        if observations.ndim != 1:
            raise InvalidArgumentError("Observations must be a 1-dimensional sequence")
        if np.any(observations < 0) or np.any(observations >= self.n_outputs):
            raise InvalidArgumentError(f"Observations must be in range [0, {self.n_outputs - 1}]")
        return observations

    def forward_backward_scaled(self, observations) -> Tuple[np.ndarray, np.ndarray, np.ndarray, float]:
        """
        Compute forward-backward algorithm with scaling to prevent numerical underflow.

        Each forward vector is divided by its sum c_t, and each backward vector
        by the scale of the following step, so that alpha[t] * beta[t] is the
        state posterior at time t.

        Args:
            observations: Sequence of observation indices [T]

        Returns:
            Tuple of:
            - alpha: Scaled forward probabilities [T, n_states]
            - beta: Scaled backward probabilities [T, n_states]
            - c_scale: Scaling coefficients [T]
            - log_likelihood: Log-likelihood of the observation sequence

        Raises:
            InvalidArgumentError: If observations contain invalid indices
            ModelTrainingError: If the sequence has zero probability under the model
        """
        observations = self.check_observations(observations)
        T = len(observations)
        if T == 0:
            raise InvalidArgumentError("Observation sequence is empty")

        alpha = np.zeros((T, self.n_states))
        beta = np.zeros((T, self.n_states))
        c_scale = np.zeros(T)

        # Forward pass
        alpha[0] = self.pi * self.B[:, observations[0]]
        for t in range(T):
            if t > 0:
                alpha[t] = (alpha[t - 1] @ self.A) * self.B[:, observations[t]]

            c_scale[t] = alpha[t].sum()
            if not c_scale[t] > 0:
                raise ModelTrainingError(f"Forward probabilities sum to zero at time {t}")

            alpha[t] /= c_scale[t]

        # Backward pass
        beta[T - 1] = 1.0
        for t in range(T - 2, -1, -1):
            beta[t] = self.A @ (self.B[:, observations[t + 1]] * beta[t + 1])
            beta[t] /= c_scale[t + 1]

        # log P(O|lambda) = sum(log(c_t))
        log_likelihood = float(np.sum(np.log(c_scale)))

        logger.debug(f"Forward-backward completed: T={T}, log_likelihood={log_likelihood:.6f}")

        return alpha, beta, c_scale, log_likelihood

    def posteriors(self, observations) -> Tuple[np.ndarray, np.ndarray, float]:
        """
        State and transition posteriors of an observation sequence.

        Returns:
            Tuple of:
            - gamma: State occupancy posteriors [T, n_states]
            - xi: Transition posteriors [T-1, n_states, n_states]
            - log_likelihood: Log-likelihood of the observation sequence
        """
        observations = self.check_observations(observations)
        alpha, beta, c_scale, log_likelihood = self.forward_backward_scaled(observations)

        gamma = alpha * beta
        gamma_sums = gamma.sum(axis=1, keepdims=True)
        np.divide(gamma, gamma_sums, out=gamma, where=gamma_sums > 0)

        # xi[t, i, j] = alpha[t, i] * A[i, j] * B[j, o_t+1] * beta[t+1, j] / c_t+1
        emitted = self.B[:, observations[1:]].T * beta[1:]
        xi = alpha[:-1, :, None] * self.A[None, :, :] * emitted[:, None, :]
        xi_sums = xi.sum(axis=(1, 2), keepdims=True)
        np.divide(xi, xi_sums, out=xi, where=xi_sums > 0)

        return gamma, xi, log_likelihood

    def score(self, observations) -> float:
        """
        Compute log-likelihood of observation sequence using forward algorithm.

        Returns:
            Log-likelihood, ``-inf`` if the sequence cannot be produced
        """
        try:
            _, _, _, log_likelihood = self.forward_backward_scaled(observations)
        except ModelTrainingError:
            return float('-inf')
        return log_likelihood

    def __repr__(self) -> str:
        """String representation of the HMM."""
        return f"ExplicitHMM(n_states={self.n_states}, n_outputs={self.n_outputs})"
