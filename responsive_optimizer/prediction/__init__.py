"""Inference and suggestion generation for trained scaling models."""

from .engine import PredictionEngine
from .suggestions import SuggestionGenerator

__all__ = ["PredictionEngine", "SuggestionGenerator"]
