"""
Unit tests for influence matrices of graph cycles.
"""

import numpy as np
import pytest

from fsm_hmm.exceptions import IndexOutOfRangeError, InvalidArgumentError, PreconditionViolation
from fsm_hmm.graph import TransitionGraph
from fsm_hmm.hmm import (
    ExplicitHMM,
    dominant_eigenstructure,
    generate_influence_matrix,
    influence_analysis
)


def emission_diagonal(hmm, output):
    return np.diag(hmm.B[:, output])


class TestGenerateInfluenceMatrix:
    """Products of transition and emission steps around a cycle."""

    def test_three_cycle(self, example_graph, example_hmm):
        """0 -> 4 -> 1 -> 0 emits the outputs of 0, 4 and 1: 1, 0, 1."""
        A = example_hmm.A
        expected = (A @ emission_diagonal(example_hmm, 1)
                    @ A @ emission_diagonal(example_hmm, 0)
                    @ A @ emission_diagonal(example_hmm, 1))
        np.testing.assert_allclose(generate_influence_matrix(example_hmm, example_graph, 0), expected)

    def test_first_step_emits_start_output(self, example_graph, example_hmm):
        """Row vectors stepped by hand, starting with the output of the start index."""
        vector = np.array([1.0, 0.0])
        index = 0
        for _ in range(3):
            vector = (vector @ example_hmm.A) * example_hmm.B[:, example_graph.output(index)]
            index = example_graph.next(index)
        assert index == 0
        matrix = generate_influence_matrix(example_hmm, example_graph, 0)
        np.testing.assert_allclose(matrix[0], vector)
        np.testing.assert_allclose(matrix, [[0.02512, 0.02128], [0.02472, 0.03368]])

    def test_two_cycle(self, example_graph, example_hmm):
        """5 -> 6 -> 5 emits outputs 2, 2."""
        A = example_hmm.A
        D = emission_diagonal(example_hmm, 2)
        np.testing.assert_allclose(generate_influence_matrix(example_hmm, example_graph, 5), A @ D @ A @ D)

    def test_self_loop(self, example_graph):
        """A one state model on a self-loop gives the emission probability."""
        hmm = ExplicitHMM.from_parameters([1.0], [[1.0]], [[0.3, 0.7]])
        np.testing.assert_allclose(generate_influence_matrix(hmm, example_graph, 7), [[0.7]])

    def test_rotation_changes_start(self, example_graph, example_hmm):
        """Starting elsewhere on the cycle rotates the product."""
        A = example_hmm.A
        expected = (A @ emission_diagonal(example_hmm, 1)
                    @ A @ emission_diagonal(example_hmm, 1)
                    @ A @ emission_diagonal(example_hmm, 0))
        np.testing.assert_allclose(generate_influence_matrix(example_hmm, example_graph, 1), expected)

    def test_tail_index_rejected(self, example_graph, example_hmm):
        """Indices off the cycles are a precondition violation."""
        with pytest.raises(PreconditionViolation, match="not part of a cycle"):
            generate_influence_matrix(example_hmm, example_graph, 2)
        with pytest.raises(PreconditionViolation):
            generate_influence_matrix(example_hmm, example_graph, 3)

    def test_index_out_of_range(self, example_graph, example_hmm):
        """Indices outside the graph are rejected."""
        with pytest.raises(IndexOutOfRangeError):
            generate_influence_matrix(example_hmm, example_graph, 8)

    def test_output_outside_alphabet(self, example_graph):
        """Cycle outputs must be HMM output symbols."""
        hmm = ExplicitHMM(2, 2, random_state=0)
        with pytest.raises(InvalidArgumentError):
            generate_influence_matrix(hmm, example_graph, 5)

    def test_does_not_modify_model(self, example_graph, example_hmm):
        """The model parameters are only read."""
        _, A, B = example_hmm.get_parameters()
        generate_influence_matrix(example_hmm, example_graph, 0)
        np.testing.assert_array_equal(example_hmm.A, A)
        np.testing.assert_array_equal(example_hmm.B, B)


class TestEigenstructure:
    """Dominant eigenvalue and steady state."""

    def test_sorted_by_modulus(self):
        """Eigenvalues come in order of decreasing modulus."""
        eigenvalues, _, _ = dominant_eigenstructure(np.diag([0.1, -0.5, 0.3]))
        np.testing.assert_allclose(np.abs(eigenvalues), [0.5, 0.3, 0.1])

    def test_steady_state_is_left_eigenvector(self, example_graph, example_hmm):
        """steady_state @ M equals the dominant eigenvalue times steady_state."""
        result = influence_analysis(example_hmm, example_graph, 0)
        np.testing.assert_allclose(
            result.steady_state @ result.matrix,
            result.dominant_eigenvalue.real * result.steady_state
        )
        assert result.steady_state.sum() == pytest.approx(1.0)
        assert np.all(result.steady_state > 0)

    def test_dominant_eigenvalue_is_real_and_positive(self, example_graph, example_hmm):
        """Positive influence matrices have a positive dominant eigenvalue."""
        result = influence_analysis(example_hmm, example_graph, 5)
        assert result.dominant_eigenvalue.real > 0
        assert result.dominant_eigenvalue.imag == pytest.approx(0.0)
        assert abs(result.dominant_eigenvalue) == pytest.approx(np.max(np.abs(result.eigenvalues)))

    def test_result_fields(self, example_graph, example_hmm):
        """The result records the start index and its period."""
        result = influence_analysis(example_hmm, example_graph, 0)
        assert result.index == 0
        assert result.period == 3
        assert result.matrix.shape == (2, 2)
        assert result.eigenvectors.shape == (2, 2)

    def test_self_loop_analysis(self):
        """A one index graph with a one state model."""
        graph = TransitionGraph([0], [1])
        hmm = ExplicitHMM.from_parameters([1.0], [[1.0]], [[0.3, 0.7]])
        result = influence_analysis(hmm, graph, 0)
        assert result.period == 1
        assert result.dominant_eigenvalue.real == pytest.approx(0.7)
        np.testing.assert_allclose(result.steady_state, [1.0])
