"""
Hidden Markov Model module.

Explicit HMM with scaled forward-backward recursions and influence matrices
of cyclic output sequences.
"""

from .model import ExplicitHMM
from .influence import (
    InfluenceResult,
    generate_influence_matrix,
    dominant_eigenstructure,
    influence_analysis
)

__all__ = [
    "ExplicitHMM",
    "InfluenceResult",
    "generate_influence_matrix",
    "dominant_eigenstructure",
    "influence_analysis"
]
