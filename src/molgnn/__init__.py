"""Molecular graph featurization, GNN embedding inference and similarity."""

__version__ = "0.1.0"

from .exceptions import (
    BackendError,
    FeaturizationError,
    GNNError,
    InvalidSMILESError,
    ModelLifecycleError,
    NumericError,
    ValidationError,
)

__all__ = [
    "__version__",
    "GNNError",
    "ValidationError",
    "FeaturizationError",
    "InvalidSMILESError",
    "NumericError",
    "BackendError",
    "ModelLifecycleError",
]
