"""Ensemble combining the neural network, random forest and XGBoost regressors."""

import numpy as np
from typing import Dict, Any, List, Optional, Tuple

from ..base import BasePredictor
from .sklearn_models import NeuralNetworkRegressor, RandomForestRegressor
from .xgboost_models import XGBoostRegressor


class EnsembleRegressor(BasePredictor):
    """
    An ensemble regressor averaging a neural network, a random forest and
    an XGBoost model.

    Each member is trained incrementally on every update; predictions are the
    (optionally weighted) mean of the member outputs.
    """

    def __init__(
        self,
        weights: Optional[Tuple[float, float, float]] = None,
        random_state: int = 42,
        # Individual parameters, prefixed by member
        nn_hidden_layer_sizes: Optional[Tuple[int, ...]] = None,
        nn_learning_rate_init: Optional[float] = None,
        rf_n_estimators: Optional[int] = None,
        rf_max_depth: Optional[int] = None,
        xgb_n_estimators: Optional[int] = None,
        xgb_max_depth: Optional[int] = None,
        xgb_learning_rate: Optional[float] = None,
    ):
        """
        Initialize the ensemble.

        Args:
            weights: Relative weights of (network, forest, boosting); equal by default
            random_state: Random state for reproducibility
            nn_hidden_layer_sizes: Hidden layers of the network
            nn_learning_rate_init: Learning rate of the network
            rf_n_estimators: Trees added per update by the forest
            rf_max_depth: Max depth of the forest trees
            xgb_n_estimators: Boosting rounds added per update
            xgb_max_depth: Max depth of the boosted trees
            xgb_learning_rate: Learning rate of the boosted trees
        """
        self.weights = tuple(weights) if weights is not None else (1.0, 1.0, 1.0)
        self.random_state = random_state

        nn_params = {"random_state": random_state}
        if nn_hidden_layer_sizes is not None:
            nn_params["hidden_layer_sizes"] = nn_hidden_layer_sizes
        if nn_learning_rate_init is not None:
            nn_params["learning_rate_init"] = nn_learning_rate_init
        self.nn = NeuralNetworkRegressor(**nn_params)

        rf_params = {"random_state": random_state}
        if rf_n_estimators is not None:
            rf_params["n_estimators"] = rf_n_estimators
        if rf_max_depth is not None:
            rf_params["max_depth"] = rf_max_depth
        self.rf = RandomForestRegressor(**rf_params)

        xgb_params = {"random_state": random_state}
        if xgb_n_estimators is not None:
            xgb_params["n_estimators"] = xgb_n_estimators
        if xgb_max_depth is not None:
            xgb_params["max_depth"] = xgb_max_depth
        if xgb_learning_rate is not None:
            xgb_params["learning_rate"] = xgb_learning_rate
        self.xgb = XGBoostRegressor(**xgb_params)

    @property
    def members(self) -> List[BasePredictor]:
        return [self.nn, self.rf, self.xgb]

    @property
    def is_fitted(self) -> bool:
        return all(member.is_fitted for member in self.members)

    def fit(self, X: np.ndarray, y: np.ndarray, epochs: int = 1, batch_size: int = 32, **fit_params) -> None:
        """Fit every member from scratch."""
        self.nn.fit(X, y, epochs=epochs, batch_size=batch_size)
        self.rf.fit(X, y)
        self.xgb.fit(X, y)

    def partial_fit(self, X: np.ndarray, y: np.ndarray, epochs: int = 1, batch_size: int = 32) -> None:
        """Continue training every member from its current state."""
        for member in self.members:
            member.partial_fit(X, y, epochs=epochs, batch_size=batch_size)

    def predict(self, X: np.ndarray) -> np.ndarray:
        """Weighted mean of the member predictions."""
        predictions = np.stack([member.predict(X) for member in self.members])
        weights = np.asarray(self.weights, dtype=float)
        return np.tensordot(weights / weights.sum(), predictions, axes=1)

    def get_params(self) -> Dict[str, Any]:
        return {
            "weights": self.weights,
            "nn": self.nn.get_params(),
            "rf": self.rf.get_params(),
            "xgb": self.xgb.get_params(),
        }

    def count_parameters(self) -> int:
        return sum(member.count_parameters() for member in self.members)

    def describe_layers(self) -> List[str]:
        return [layer for member in self.members for layer in member.describe_layers()]
