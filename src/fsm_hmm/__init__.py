"""
FSM-HMM: cycle analysis of functional graphs and HMM training against them

A Python library that classifies the cyclic structure of deterministic
finite-state machines and fits explicit Hidden Markov Models to the output
sequences they produce.
"""

__version__ = "0.1.0"
__author__ = "FSM-HMM Development Team"

from .config import get_config, set_config
from .logger import get_logger
from .graph import TransitionGraph, load_graph
from .hmm import ExplicitHMM
from .train import FsmTrainer, train_step

__all__ = [
    "get_config",
    "set_config",
    "get_logger",
    "TransitionGraph",
    "load_graph",
    "ExplicitHMM",
    "FsmTrainer",
    "train_step",
    "__version__"
]
