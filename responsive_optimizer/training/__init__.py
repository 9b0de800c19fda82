"""Training and hyperparameter search for the scaling models."""

from .hyperparameter import OptunaOptimizer
from .trainer import ModelTrainer

__all__ = ["ModelTrainer", "OptunaOptimizer"]
