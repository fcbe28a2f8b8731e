"""Exception hierarchy for the molecular embedding pipeline."""


class GNNError(Exception):
    """Base exception for the molgnn package."""


# ---------------------------------------------------------------------------
# Validation: bad input, never retried
# ---------------------------------------------------------------------------


class ValidationError(GNNError):
    """Raised when caller-supplied input is rejected."""


class DimensionMismatchError(ValidationError):
    """Raised when vector or fingerprint lengths do not line up."""


class FeaturizationError(ValidationError):
    """Raised when molecular featurization fails."""


class InvalidSMILESError(FeaturizationError):
    """Raised when SMILES string cannot be parsed."""


class EmptyInputError(InvalidSMILESError):
    """Raised for an empty or whitespace-only SMILES string."""


class InputTooLongError(InvalidSMILESError):
    """Raised when a SMILES string exceeds the configured maximum length."""


class InvalidCharacterError(InvalidSMILESError):
    """Raised for characters or atom symbols outside the supported alphabet."""


class ReactionSMILESNotSupportedError(InvalidSMILESError):
    """Raised for reaction SMILES (``reactants>>products``)."""


class StructuralParseError(InvalidSMILESError):
    """Raised when the SMILES structure (branches, rings, brackets) is malformed."""


class UnbalancedBracketsError(StructuralParseError):
    """Raised when branch parentheses or bracket atoms do not pair up."""


class UnclosedBracketError(StructuralParseError):
    """Raised when a bracket atom ``[`` is never closed."""


class UnmatchedRingClosureError(StructuralParseError):
    """Raised when a ring-bond label is left open or cannot be closed."""


class InvalidMolBlockError(FeaturizationError):
    """Raised when a MOL block cannot be parsed."""


class NoAtomsFoundError(FeaturizationError):
    """Raised when parsing produced no atoms."""


class MoleculeTooLargeError(FeaturizationError):
    """Raised when a molecule has more atoms than the configured limit."""


class BatchItemError(FeaturizationError):
    """Raised when one item of a sequential batch fails.

    Attributes:
        index: Position of the failing item in the input batch.
    """

    def __init__(self, index: int, cause: Exception) -> None:
        super().__init__(f"Batch item {index} failed: {cause}")
        self.index = index
        self.cause = cause


# ---------------------------------------------------------------------------
# Numeric failures: never silently defaulted
# ---------------------------------------------------------------------------


class NumericError(GNNError):
    """Raised when a numeric operation has no meaningful result."""


class ZeroVectorError(NumericError):
    """Raised when a vector with (near) zero norm is normalized or compared."""


class NoMatchingWeightsError(NumericError):
    """Raised when score fusion finds no score with a configured weight."""


# ---------------------------------------------------------------------------
# Model backend
# ---------------------------------------------------------------------------


class BackendError(GNNError):
    """Base exception for predictor failures."""


class TransientBackendError(BackendError):
    """A backend failure that may succeed when retried."""


class ServingUnavailableError(TransientBackendError):
    """Raised when the serving backend cannot be reached."""


class InferenceTimeoutError(TransientBackendError):
    """Raised on backend timeouts and on cooperative cancellation."""


class FatalBackendError(BackendError):
    """A backend failure that retrying will not fix."""


class InvalidModelOutputError(FatalBackendError):
    """Raised when the predictor response lacks a usable embedding."""


class ModelBackendUnavailableError(BackendError):
    """Raised when all retry attempts against the backend are exhausted.

    Attributes:
        last_error: The error from the final attempt.
        attempts: Number of backend invocations made.
    """

    def __init__(self, last_error: Exception, attempts: int) -> None:
        super().__init__(f"Model backend unavailable after {attempts} attempts: {last_error}")
        self.last_error = last_error
        self.attempts = attempts


# ---------------------------------------------------------------------------
# Lifecycle and collaborators
# ---------------------------------------------------------------------------


class ModelLifecycleError(GNNError):
    """Raised on an invalid model state transition."""


class ModelNotReadyError(ModelLifecycleError):
    """Raised when inference is requested before the model is READY."""


class ModelLoadError(ModelLifecycleError):
    """Raised when the backend fails its health check during load."""


class SearchNotConfiguredError(GNNError):
    """Raised when similarity search is requested without a vector searcher."""


class ModelRegistrationError(GNNError):
    """Raised when a model version cannot be registered."""
