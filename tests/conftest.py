"""
Test configuration and fixtures for FSM-HMM.

This file contains pytest configuration and shared fixtures
for testing the FSM-HMM system.
"""

import json

import numpy as np
import pytest

from fsm_hmm.config import reset_config
from fsm_hmm.graph import TransitionGraph
from fsm_hmm.hmm import ExplicitHMM


# 0 -> 4 -> 1 -> 0 is a cycle of period 3, 5 <-> 6 of period 2, 7 a self-loop;
# 2 enters at 6 after one step and 3 after two steps (3 -> 2 -> 6).
EXAMPLE_NEXT = [4, 0, 6, 2, 1, 6, 5, 7]
EXAMPLE_OUTPUT = [1, 1, 2, 0, 0, 2, 2, 1]


@pytest.fixture
def example_graph():
    """The eight index example graph."""
    return TransitionGraph(EXAMPLE_NEXT, EXAMPLE_OUTPUT, name="example")


@pytest.fixture
def example_hmm():
    """Two state, three output HMM with fixed parameters."""
    return ExplicitHMM.from_parameters(
        [0.8, 0.2],
        [[0.8, 0.2],
         [0.3, 0.7]],
        [[0.2, 0.4, 0.4],
         [0.5, 0.4, 0.1]]
    )


@pytest.fixture
def graph_file(tmp_path):
    """The example graph written to a JSON file."""
    path = tmp_path / "example.json"
    path.write_text(json.dumps({"next": EXAMPLE_NEXT, "output": EXAMPLE_OUTPUT}))
    return path


@pytest.fixture
def single_index_weights():
    """Initial weight on index 2 only."""
    weights = np.zeros(len(EXAMPLE_NEXT))
    weights[2] = 1.0
    return weights


@pytest.fixture(autouse=True)
def restore_config():
    """Undo configuration changes made by a test."""
    yield
    reset_config()


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
