"""XGBoost model wrappers implementing BasePredictor interface."""

import numpy as np
import xgboost as xgb
from typing import Dict, Any, List

from ..base import BasePredictor


class XGBoostRegressor(BasePredictor):
    """Multi-output gradient boosting regressor that keeps boosting across training calls."""

    def __init__(
        self,
        n_estimators: int = 50,
        max_depth: int = 4,
        learning_rate: float = 0.1,
        random_state: int = 42,
        **kwargs
    ):
        """
        Initialize the XGBoost regressor.

        Args:
            n_estimators: Boosting rounds added per training call
            max_depth: Maximum tree depth
            learning_rate: Learning rate
            random_state: Random state for reproducibility
            **kwargs: Additional XGBoost parameters
        """
        self.n_estimators = n_estimators
        self.max_depth = max_depth
        self.learning_rate = learning_rate
        self.random_state = random_state

        # Squared error over a 2-D target trains one tree per output per round
        xgb_params = {
            'objective': 'reg:squarederror',
            'tree_method': 'hist',
            'n_estimators': n_estimators,
            'max_depth': max_depth,
            'learning_rate': learning_rate,
            'random_state': random_state,
            'n_jobs': 1
        }
        xgb_params.update(kwargs)

        self.model = xgb.XGBRegressor(**xgb_params)
        self._fitted = False

    def fit(self, X: np.ndarray, y: np.ndarray, **fit_params) -> None:
        """Fit the XGBoost model from scratch."""
        fit_params.setdefault('verbose', False)
        self.model.fit(np.asarray(X, dtype=float), self._as_2d(y), **fit_params)
        self._fitted = True

    def partial_fit(self, X: np.ndarray, y: np.ndarray, epochs: int = 1, batch_size: int = 32) -> None:
        """Add ``n_estimators`` boosting rounds on top of the existing booster."""
        if not self._fitted:
            self.fit(X, y)
            return
        self.model.fit(
            np.asarray(X, dtype=float),
            self._as_2d(y),
            xgb_model=self.model.get_booster(),
            verbose=False,
        )

    def predict(self, X: np.ndarray) -> np.ndarray:
        """Make predictions."""
        if not self._fitted:
            raise ValueError("Model must be fitted before prediction")
        X = np.asarray(X, dtype=float)
        return np.asarray(self.model.predict(X)).reshape(len(X), -1)

    def get_params(self) -> Dict[str, Any]:
        """Get model parameters."""
        return self.model.get_params()

    def count_parameters(self) -> int:
        if not self._fitted:
            return 0
        return len(self.model.get_booster().get_dump())

    def describe_layers(self) -> List[str]:
        rounds = self.model.get_booster().num_boosted_rounds() if self._fitted else 0
        return [f"gradient_boosting({rounds} rounds, max_depth={self.max_depth})"]
