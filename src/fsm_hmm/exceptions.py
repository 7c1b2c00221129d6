"""
Exception hierarchy for FSM-HMM system.
"""


class FsmHmmError(Exception):
    """Base exception for FSM-HMM system."""
    pass


class InvalidArgumentError(FsmHmmError, ValueError):
    """Malformed argument passed to an operation."""
    pass


class InvalidGraphError(InvalidArgumentError):
    """Transition graph construction failures."""
    pass


class PreconditionViolation(FsmHmmError):
    """Operation called in a state it does not accept."""
    pass


class IndexOutOfRangeError(FsmHmmError, IndexError):
    """Lookup outside the valid index domain."""
    pass


class ModelValidationError(FsmHmmError, ValueError):
    """HMM parameters that are not valid probability distributions."""
    pass


class ModelTrainingError(FsmHmmError):
    """HMM training convergence or numerical issues."""
    pass


class PersistenceError(FsmHmmError):
    """Model saving and loading failures."""
    pass
