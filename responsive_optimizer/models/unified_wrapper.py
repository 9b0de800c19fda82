"""Deployable Model Wrapper for model serialization together with feature scaling."""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import joblib
import numpy as np

from ..exceptions import PersistenceError
from ..preprocessing import FeatureScaler
from .base import BasePredictor


class DeployableModel(BasePredictor):
    """
    A production-ready model wrapper that encapsulates a trained estimator with its scaler.

    This wrapper encapsulates:
    - The estimator (any BasePredictor)
    - The feature scaler fitted alongside it
    - Model metadata (architecture, dimensions, update counters)

    Provides a single ``predict(raw_feature_matrix)`` interface for all architectures.
    """

    def __init__(
        self,
        model: BasePredictor,
        architecture: str,
        scaler: Optional[FeatureScaler] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the deployable model wrapper.

        Args:
            model: The estimator object
            architecture: Architecture name ('neural-network', 'random-forest', ...)
            scaler: Feature scaler; a standard scaler when omitted
            metadata: Additional model metadata
        """
        self.model = model
        self.architecture = architecture
        self.scaler = scaler if scaler is not None else FeatureScaler()
        self.metadata = metadata or {}
        self.training_updates = 0
        self.samples_seen = 0

    @property
    def is_fitted(self) -> bool:
        return self.scaler.is_fitted_ and self.model.is_fitted

    def fit(self, X: np.ndarray, y: np.ndarray, provisional_scaling: bool = False, **fit_params) -> "DeployableModel":
        """
        Fit the scaler and the estimator from scratch.

        Args:
            X: Training features
            y: Training targets
            provisional_scaling: Replace the scaling statistics with those of
                the next ``partial_fit`` batch (for placeholder data)
            **fit_params: Additional fitting parameters

        Returns:
            Self for method chaining
        """
        X_scaled = self.scaler.fit_transform(X, provisional=provisional_scaling)
        self.model.fit(X_scaled, y, **fit_params)
        self.training_updates = 1
        self.samples_seen = len(X_scaled)
        return self

    def partial_fit(self, X: np.ndarray, y: np.ndarray, epochs: int = 1, batch_size: int = 32) -> "DeployableModel":
        """
        Continue training from the current state.

        Args:
            X: Training features
            y: Training targets
            epochs: Passes over the data for iterative estimators
            batch_size: Mini-batch size for iterative estimators

        Returns:
            Self for method chaining
        """
        self.scaler.partial_fit(X)
        X_scaled = self.scaler.transform(X)
        self.model.partial_fit(X_scaled, y, epochs=epochs, batch_size=batch_size)
        self.training_updates += 1
        self.samples_seen += len(X_scaled)
        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        """
        Predict the output matrix for raw (unscaled) feature vectors.

        Args:
            X: Raw feature matrix or a single feature vector

        Returns:
            np.ndarray of shape (n_samples, n_outputs)
        """
        X_scaled = self.scaler.transform(X)
        return self.model.predict(X_scaled)

    def count_parameters(self) -> int:
        return self.model.count_parameters()

    def describe_layers(self) -> list:
        return self.model.describe_layers()

    def get_model_info(self) -> Dict[str, Any]:
        """
        Get information about the wrapped model.

        Returns:
            Dictionary containing model metadata
        """
        info = {
            "architecture": self.architecture,
            "normalization": self.scaler.method,
            "parameters": self.count_parameters(),
            "layers": self.describe_layers(),
            "training_updates": self.training_updates,
            "samples_seen": self.samples_seen,
            **self.metadata,
        }

        if self.scaler.is_fitted_:
            info["num_features"] = self.scaler.n_features_

        return info

    def save(self, filepath: Union[str, Path]) -> None:
        """
        Save the deployable model wrapper to disk.

        Args:
            filepath: Path to save the model
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(self, filepath)

    @classmethod
    def load(cls, filepath: Union[str, Path]) -> "DeployableModel":
        """
        Load a deployable model wrapper from disk.

        Args:
            filepath: Path to the saved model

        Returns:
            Loaded DeployableModel instance
        """
        return load_model(filepath)


def load_model(filepath: Union[str, Path]) -> DeployableModel:
    """
    Load a DeployableModel from disk.

    Args:
        filepath: Path to the deployable model file

    Returns:
        DeployableModel instance

    Raises:
        OSError: If the file cannot be read (propagated unchanged)
        PersistenceError: If the file doesn't contain a DeployableModel
    """
    filepath = Path(filepath)

    try:
        model = joblib.load(filepath)
    except OSError:
        raise
    except Exception as e:
        raise PersistenceError(f"Failed to load deployable model from {filepath}: {e}") from e

    if not isinstance(model, DeployableModel):
        raise PersistenceError(f"File contains {type(model)}, expected DeployableModel")
    return model
