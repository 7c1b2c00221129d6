"""
Training module.

Baum-Welch training of explicit HMMs against transition graphs.
"""

from .trainer import (
    FsmTrainer,
    SweepResult,
    baum_welch_sweep,
    train_step,
    log_likelihood,
    observation_sequences,
    recommended_sample_length
)
from .persistence import ModelPersistence

__all__ = [
    "FsmTrainer",
    "SweepResult",
    "baum_welch_sweep",
    "train_step",
    "log_likelihood",
    "observation_sequences",
    "recommended_sample_length",
    "ModelPersistence"
]
