"""Base model interface for all scaling predictors."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

import numpy as np


class BasePredictor(ABC):
    """
    Base interface for all multi-output regressors used by the optimizer.

    Every predictor maps a (n_samples, 128) feature matrix to a
    (n_samples, 32) output matrix. Training is incremental: ``partial_fit``
    continues from the current state instead of starting over, so repeated
    training calls accumulate.
    """

    @abstractmethod
    def fit(self, X: np.ndarray, y: np.ndarray, **fit_params) -> None:
        """
        Fit the model to training data, discarding any previous state.

        Args:
            X: Feature matrix
            y: Target matrix
            **fit_params: Additional fitting parameters
        """

    @abstractmethod
    def partial_fit(self, X: np.ndarray, y: np.ndarray, epochs: int = 1, batch_size: int = 32) -> None:
        """
        Continue training from the current model state.

        Args:
            X: Feature matrix
            y: Target matrix
            epochs: Passes over the data (iterative models only)
            batch_size: Mini-batch size (iterative models only)
        """

    @abstractmethod
    def predict(self, X: np.ndarray) -> np.ndarray:
        """
        Make predictions on new data.

        Args:
            X: Feature matrix

        Returns:
            Predicted values, shape (n_samples, n_outputs)
        """
        pass

    @property
    def is_fitted(self) -> bool:
        return getattr(self, "_fitted", False)

    def get_params(self) -> Dict[str, Any]:
        """
        Get model parameters.

        Returns:
            Dictionary of model parameters
        """
        return {}

    def count_parameters(self) -> int:
        """Number of learned parameters (weights, tree nodes)."""
        return 0

    def describe_layers(self) -> List[str]:
        """Human-readable description of the model structure."""
        return []

    @staticmethod
    def _as_2d(y: np.ndarray) -> np.ndarray:
        """Keep targets and predictions two-dimensional, even for a single output."""
        y = np.asarray(y, dtype=float)
        if y.ndim == 1:
            y = y.reshape(-1, 1)
        return y
