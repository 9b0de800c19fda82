"""Feature normalization shared by training and inference."""

import numpy as np
from typing import Optional
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.preprocessing import MinMaxScaler, RobustScaler, StandardScaler


NORMALIZATION_METHODS = ("standard", "minmax", "robust")


class FeatureScaler(BaseEstimator, TransformerMixin):
    """
    Normalizes fixed-length feature vectors before they reach an estimator.

    The scaler is part of the deployed model so that training and inference
    always see identically scaled inputs. It supports incremental updates:
    - ``standard`` and ``minmax`` statistics are refined with every batch
      through ``partial_fit``
    - ``robust`` statistics (median / IQR) are learned from the first batch
      and then kept fixed, since they cannot be updated incrementally

    A provisional fit (e.g. on a placeholder example) is replaced by the
    next ``partial_fit`` batch instead of being refined or frozen.
    """

    def __init__(self, method: str = "standard"):
        """
        Initialize the scaler.

        Args:
            method: Normalization method ('standard', 'minmax', 'robust')
        """
        self.method = method

        # Will be populated during fit
        self.scaler_ = None
        self.n_features_ = None
        self.n_samples_seen_ = 0
        self.is_fitted_ = False
        self.is_provisional_ = False

    def _make_scaler(self):
        if self.method == "standard":
            return StandardScaler()
        if self.method == "minmax":
            return MinMaxScaler()
        if self.method == "robust":
            return RobustScaler()
        raise ValueError(
            f"Unknown normalization method '{self.method}'. Expected one of {NORMALIZATION_METHODS}"
        )

    def fit(self, X: np.ndarray, y: Optional[np.ndarray] = None, provisional: bool = False):
        """
        Fit the scaler from scratch.

        Args:
            X: Training features, shape (n_samples, n_features)
            y: Unused, for sklearn compatibility
            provisional: Let the next ``partial_fit`` batch refit from scratch

        Returns:
            self
        """
        X = self._check_input(X)
        self.scaler_ = self._make_scaler().fit(X)
        self.n_features_ = X.shape[1]
        self.n_samples_seen_ = X.shape[0]
        self.is_fitted_ = True
        self.is_provisional_ = provisional
        return self

    def partial_fit(self, X: np.ndarray, y: Optional[np.ndarray] = None):
        """Update the scaling statistics with a new batch."""
        if not self.is_fitted_ or self.is_provisional_:
            return self.fit(X)

        X = self._check_input(X)
        if hasattr(self.scaler_, "partial_fit"):
            self.scaler_.partial_fit(X)
        self.n_samples_seen_ += X.shape[0]
        return self

    def transform(self, X: np.ndarray) -> np.ndarray:
        """
        Scale features with the fitted statistics.

        Args:
            X: Features to transform

        Returns:
            Scaled features as float64, with non-finite values replaced by 0
        """
        if not self.is_fitted_:
            raise ValueError("FeatureScaler must be fitted before transform")

        X = self._check_input(X)
        if X.shape[1] != self.n_features_:
            raise ValueError(
                f"Expected {self.n_features_} features, got {X.shape[1]}"
            )
        return np.nan_to_num(self.scaler_.transform(X), nan=0.0, posinf=0.0, neginf=0.0)

    def fit_transform(self, X: np.ndarray, y: Optional[np.ndarray] = None, provisional: bool = False) -> np.ndarray:
        """Fit and transform in one step."""
        return self.fit(X, y, provisional=provisional).transform(X)

    @staticmethod
    def _check_input(X) -> np.ndarray:
        X = np.asarray(X, dtype=float)
        if X.ndim == 1:
            X = X.reshape(1, -1)
        return np.nan_to_num(X, nan=0.0, posinf=0.0, neginf=0.0)
