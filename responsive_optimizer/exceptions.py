"""Error taxonomy for the responsive scaling optimizer."""


class OptimizerError(Exception):
    """Base class for every error raised by the optimizer."""


class ValidationError(OptimizerError):
    """Malformed or missing configuration, usage or training data."""


class NotInitializedError(OptimizerError):
    """A public operation was called before ``initialize()``."""


class InferenceError(OptimizerError):
    """The underlying model failed while producing predictions."""


class ExplanationError(OptimizerError):
    """The model lacks a capability required to explain a prediction."""


class PersistenceError(OptimizerError):
    """A saved model could not be serialized or restored."""


class PostProcessingError(OptimizerError):
    """Raw model output could not be read during post-processing."""


class PredictionValidationError(OptimizerError):
    """A prediction could not be read while checking expected ranges."""
