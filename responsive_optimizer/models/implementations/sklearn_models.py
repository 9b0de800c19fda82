"""Sklearn model wrappers implementing BasePredictor interface."""

import numpy as np
from sklearn.ensemble import RandomForestRegressor as SKRandomForestRegressor
from sklearn.neural_network import MLPRegressor
from typing import Dict, Any, List, Tuple

from ..base import BasePredictor


class NeuralNetworkRegressor(BasePredictor):
    """Dense feed-forward network predicting all token/performance outputs at once."""

    def __init__(
        self,
        hidden_layer_sizes: Tuple[int, ...] = (256, 128, 64),
        activation: str = 'relu',
        learning_rate_init: float = 0.001,
        alpha: float = 1e-4,
        random_state: int = 42,
        **kwargs
    ):
        """
        Initialize the network.

        Args:
            hidden_layer_sizes: Units per hidden layer
            activation: Hidden layer activation
            learning_rate_init: Adam learning rate
            alpha: L2 regularization strength
            random_state: Random state for reproducibility
            **kwargs: Additional MLPRegressor parameters
        """
        self.hidden_layer_sizes = tuple(hidden_layer_sizes)
        self.activation = activation
        self.learning_rate_init = learning_rate_init
        self.alpha = alpha
        self.random_state = random_state
        self.kwargs = kwargs

        self.model = self._build()
        self._rng = np.random.default_rng(random_state)
        self._fitted = False
        self.n_updates_ = 0

    def _build(self) -> MLPRegressor:
        mlp_params = {
            'hidden_layer_sizes': self.hidden_layer_sizes,
            'activation': self.activation,
            'solver': 'adam',
            'learning_rate_init': self.learning_rate_init,
            'alpha': self.alpha,
            'random_state': self.random_state,
        }
        mlp_params.update(self.kwargs)
        return MLPRegressor(**mlp_params)

    def fit(self, X: np.ndarray, y: np.ndarray, epochs: int = 1, batch_size: int = 32, **fit_params) -> None:
        """Train a fresh network, discarding previous weights."""
        self.model = self._build()
        self._fitted = False
        self.n_updates_ = 0
        self.partial_fit(X, y, epochs=epochs, batch_size=batch_size)

    def partial_fit(self, X: np.ndarray, y: np.ndarray, epochs: int = 1, batch_size: int = 32) -> None:
        """Run ``epochs`` shuffled mini-batch passes starting from the current weights."""
        X = np.asarray(X, dtype=float)
        y = self._as_2d(y)
        self.model.set_params(batch_size=max(1, min(batch_size, len(X))))

        for _ in range(max(1, epochs)):
            order = self._rng.permutation(len(X))
            self.model.partial_fit(X[order], y[order])
            self.n_updates_ += 1

        self._fitted = True

    def predict(self, X: np.ndarray) -> np.ndarray:
        if not self._fitted:
            raise ValueError("Model must be fitted before prediction")
        X = np.asarray(X, dtype=float)
        return self.model.predict(X).reshape(len(X), -1)

    def get_params(self) -> Dict[str, Any]:
        """Get model parameters."""
        params = {
            'hidden_layer_sizes': self.hidden_layer_sizes,
            'activation': self.activation,
            'learning_rate_init': self.learning_rate_init,
            'alpha': self.alpha,
            'random_state': self.random_state,
        }
        params.update(self.kwargs)
        return params

    def count_parameters(self) -> int:
        if not self._fitted:
            return 0
        weights = sum(w.size for w in self.model.coefs_)
        biases = sum(b.size for b in self.model.intercepts_)
        return int(weights + biases)

    def describe_layers(self) -> List[str]:
        if not self._fitted:
            return [f"dense({units}, {self.activation})" for units in self.hidden_layer_sizes]
        layers = []
        for i, weights in enumerate(self.model.coefs_):
            is_output = i == len(self.model.coefs_) - 1
            activation = self.model.out_activation_ if is_output else self.activation
            layers.append(f"dense({weights.shape[0]}->{weights.shape[1]}, {activation})")
        return layers


class RandomForestRegressor(BasePredictor):
    """Random forest that grows new trees on every incremental update."""

    def __init__(
        self,
        n_estimators: int = 50,
        max_depth: int = 12,
        min_samples_leaf: int = 1,
        random_state: int = 42,
        **kwargs
    ):
        """
        Initialize the forest.

        Args:
            n_estimators: Trees added per training call
            max_depth: Maximum depth of the trees
            min_samples_leaf: Minimum samples per leaf
            random_state: Random state for reproducibility
            **kwargs: Additional Random Forest parameters
        """
        self.n_estimators = n_estimators
        self.max_depth = max_depth
        self.min_samples_leaf = min_samples_leaf
        self.random_state = random_state
        self.kwargs = kwargs

        self.model = self._build()
        self._fitted = False

    def _build(self) -> SKRandomForestRegressor:
        rf_params = {
            'n_estimators': self.n_estimators,
            'max_depth': self.max_depth,
            'min_samples_leaf': self.min_samples_leaf,
            'random_state': self.random_state,
            'warm_start': True,
            'n_jobs': 1
        }
        rf_params.update(self.kwargs)
        return SKRandomForestRegressor(**rf_params)

    def fit(self, X: np.ndarray, y: np.ndarray, **fit_params) -> None:
        """Fit a fresh forest."""
        self.model = self._build()
        self.model.fit(np.asarray(X, dtype=float), self._as_2d(y))
        self._fitted = True

    def partial_fit(self, X: np.ndarray, y: np.ndarray, epochs: int = 1, batch_size: int = 32) -> None:
        """Add ``n_estimators`` new trees trained on this batch; existing trees are kept."""
        if not self._fitted:
            self.fit(X, y)
            return
        self.model.set_params(n_estimators=len(self.model.estimators_) + self.n_estimators)
        self.model.fit(np.asarray(X, dtype=float), self._as_2d(y))

    def predict(self, X: np.ndarray) -> np.ndarray:
        if not self._fitted:
            raise ValueError("Model must be fitted before prediction")
        X = np.asarray(X, dtype=float)
        return self.model.predict(X).reshape(len(X), -1)

    def get_params(self) -> Dict[str, Any]:
        """Get model parameters."""
        params = self.model.get_params()
        params.update({'trees_per_update': self.n_estimators})
        return params

    def count_parameters(self) -> int:
        if not self._fitted:
            return 0
        return int(sum(tree.tree_.node_count for tree in self.model.estimators_))

    def describe_layers(self) -> List[str]:
        n_trees = len(self.model.estimators_) if self._fitted else 0
        return [f"random_forest({n_trees} trees, max_depth={self.max_depth})"]
