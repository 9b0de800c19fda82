"""Responsive scaling optimizer.

Learns how design tokens (font size, spacing, radius, ...) should scale across
breakpoints from observed component usage, and suggests improved scaling
rules together with their expected performance and accessibility impact.
"""

from .config import Config
from .exceptions import (
    ExplanationError,
    InferenceError,
    NotInitializedError,
    OptimizerError,
    PersistenceError,
    PostProcessingError,
    PredictionValidationError,
    ValidationError,
)
from .optimizer import ScalingOptimizer, create_optimizer, optimize_configuration

__all__ = [
    "Config",
    "ScalingOptimizer",
    "create_optimizer",
    "optimize_configuration",
    "OptimizerError",
    "ValidationError",
    "NotInitializedError",
    "InferenceError",
    "ExplanationError",
    "PersistenceError",
    "PostProcessingError",
    "PredictionValidationError",
]
