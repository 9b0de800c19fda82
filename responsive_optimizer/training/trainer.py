"""Incremental training, evaluation and cross-validation of scaling models."""

import logging
from typing import Callable, Dict, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold
from tqdm import tqdm

from responsive_optimizer.config import Config
from responsive_optimizer.data_processing import FeatureExtractor, TrainingDataPreprocessor
from responsive_optimizer.exceptions import ValidationError
from responsive_optimizer.models import BasePredictor
from responsive_optimizer.types import CrossValidationResult, TrainingData, TrainingMetrics

METRIC_NAMES = ["accuracy", "precision", "recall", "f1_score", "mse"]


def _finite(value: float, default: float = 0.0) -> float:
    value = float(value)
    return value if np.isfinite(value) else default


class ModelTrainer:
    """
    Trains a model on labelled examples and reports regression-quality metrics.

    Training always continues from the model's current state: calling
    ``train`` twice performs two rounds of updates rather than refitting.
    """

    def __init__(
        self,
        settings: Config | None = None,
        logger: logging.Logger | None = None,
        feature_extractor: FeatureExtractor | None = None,
    ):
        self.settings = settings or Config()
        self.logger = logger or logging.getLogger(__name__)
        self.preprocessor = TrainingDataPreprocessor(
            self.settings, feature_extractor=feature_extractor, logger=self.logger
        )

    def _split(self, X: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """Hold out the tail of the set, or evaluate on the training set when too small to split."""
        n_holdout = int(len(X) * self.settings.VALIDATION_SPLIT)
        if n_holdout < 1 or len(X) - n_holdout < 1:
            return X, y, X, y
        cut = len(X) - n_holdout
        return X[:cut], y[:cut], X[cut:], y[cut:]

    def train(self, model: BasePredictor, training_data: Sequence[TrainingData]) -> TrainingMetrics:
        """
        Update a model with a batch of labelled examples.

        Args:
            model: The model to update in place
            training_data: Labelled examples, at least one

        Returns:
            TrainingMetrics measured on the held-out tail (or the training
            set when it is too small to split)

        Raises:
            ValidationError: If the model is missing or the data is malformed
        """
        if model is None:
            raise ValidationError("Model is required for training")
        X, y = self.preprocessor.prepare(training_data)
        X_train, y_train, X_val, y_val = self._split(X, y)

        self.logger.info(
            "Training on %s examples (%s held out for validation)",
            len(X_train), len(X_val) if X_val is not X else 0,
        )
        model.partial_fit(
            X_train, y_train, epochs=self.settings.EPOCHS, batch_size=self.settings.BATCH_SIZE
        )

        metrics = self.compute_metrics(model.predict(X_val), y_val)
        self.logger.info("Training finished: mse=%.4f accuracy=%.3f", metrics.mse, metrics.accuracy)
        return metrics

    def evaluate(self, model: BasePredictor, test_data: Sequence[TrainingData]) -> TrainingMetrics:
        """Score a model on labelled examples without updating it."""
        if model is None:
            raise ValidationError("Model is required for evaluation")
        X, y = self.preprocessor.prepare(test_data)
        return self.compute_metrics(model.predict(X), y)

    def compute_metrics(self, predictions: np.ndarray, labels: np.ndarray) -> TrainingMetrics:
        """
        Regression-quality metrics for a prediction matrix against its labels.

        ``accuracy`` is the share of outputs within ``ACCURACY_TOLERANCE`` of
        the label, ``precision`` is one minus the MAE relative to the largest
        label magnitude, ``recall`` is the absolute Pearson correlation and
        ``f1_score`` their harmonic mean. Every value is finite; the first
        four lie in [0, 1].
        """
        y = np.asarray(labels, dtype=float)
        p = np.asarray(predictions, dtype=float)
        if p.size != y.size:
            raise ValidationError(
                f"Prediction shape {p.shape} does not match label shape {y.shape}"
            )
        p = np.nan_to_num(p.reshape(y.shape), nan=0.0, posinf=1e12, neginf=-1e12)

        residuals = p - y
        abs_err = np.abs(residuals)
        mae = float(np.mean(abs_err))
        mse = _finite(np.mean(residuals ** 2), default=float(np.finfo(float).max))
        accuracy = float(np.mean(abs_err <= self.settings.ACCURACY_TOLERANCE))

        scale = float(np.max(np.abs(y)))
        if scale > 0:
            precision = float(np.clip(1.0 - mae / scale, 0.0, 1.0))
        else:
            precision = 1.0 if mae == 0 else 0.0

        p_flat, y_flat = p.ravel(), y.ravel()
        if np.std(p_flat) == 0 or np.std(y_flat) == 0:
            recall = 1.0 if np.allclose(p_flat, y_flat) else 0.0
        else:
            recall = float(np.clip(abs(_finite(np.corrcoef(p_flat, y_flat)[0, 1])), 0.0, 1.0))

        f1 = 2 * precision * recall / (precision + recall) if precision + recall > 0 else 0.0

        return TrainingMetrics(
            accuracy=accuracy,
            precision=precision,
            recall=recall,
            f1_score=float(f1),
            mse=mse,
            confidence_intervals=self._confidence_intervals(residuals),
            sample_count=int(y.shape[0]),
        )

    def _confidence_intervals(self, residuals: np.ndarray) -> Dict[str, Tuple[float, float]]:
        """Symmetric intervals from the residual RMS; narrower for the performance and accessibility outputs."""
        rms = _finite(np.sqrt(np.mean(residuals ** 2)), default=float(np.finfo(float).max))
        half_width = self.settings.CONFIDENCE_Z_SCORE * rms
        return {
            "prediction": (-half_width, half_width),
            "performance": (-half_width * 0.5, half_width * 0.5),
            "accessibility": (-half_width * 0.3, half_width * 0.3),
        }

    def cross_validate(
        self,
        model_factory: Callable[[], BasePredictor],
        training_data: Sequence[TrainingData],
        k: int | None = None,
    ) -> CrossValidationResult:
        """
        K-fold cross-validation with a fresh model per fold.

        Args:
            model_factory: Callable returning a new, untrained model
            training_data: Labelled examples, at least ``k``
            k: Number of folds; ``CV_SPLITS`` by default

        Returns:
            CrossValidationResult with per-metric mean and standard deviation
            and the per-fold table
        """
        k = k or self.settings.CV_SPLITS
        if not training_data or len(training_data) < k:
            raise ValidationError(
                f"Insufficient data for {k}-fold cross validation. Need at least {k} samples."
            )
        X, y = self.preprocessor.prepare(training_data)

        rows = []
        splits = KFold(n_splits=k).split(X)
        for fold, (tr_idx, te_idx) in enumerate(
            tqdm(splits, total=k, desc="Cross-validation", disable=not self.settings.SHOW_PROGRESS)
        ):
            model = model_factory()
            model.partial_fit(
                X[tr_idx], y[tr_idx], epochs=self.settings.EPOCHS, batch_size=self.settings.BATCH_SIZE
            )
            metrics = self.compute_metrics(model.predict(X[te_idx]), y[te_idx])
            rows.append({"fold": fold, **{name: getattr(metrics, name) for name in METRIC_NAMES}})
            self.logger.debug("Fold %s/%s: mse=%.4f", fold + 1, k, metrics.mse)

        folds = pd.DataFrame(rows)
        means = folds[METRIC_NAMES].mean()
        stds = folds[METRIC_NAMES].std(ddof=0)
        return CrossValidationResult(
            **{f"mean_{name}": float(means[name]) for name in METRIC_NAMES},
            **{f"std_{name}": float(stds[name]) for name in METRIC_NAMES},
            folds=folds,
        )

    def suggest_hyperparameters(self, training_data: Sequence[TrainingData]) -> Dict[str, object]:
        """
        Training settings suited to the size of a data set.

        Small sets get a lower learning rate, smaller batches and more epochs;
        large sets the opposite. The architecture advice favours trees for
        small sets and the ensemble for very large ones.
        """
        n = len(training_data or [])
        s = self.settings
        learning_rate = s.get_defaults("neural-network")["learning_rate_init"]
        batch_size = s.BATCH_SIZE
        epochs = s.EPOCHS

        if n < 100:
            learning_rate = min(learning_rate * 0.5, 0.001)
            epochs = min(epochs * 2, 500)
        elif n > 10000:
            learning_rate = min(learning_rate * 1.5, 0.01)
            epochs = max(epochs // 2, 50)

        if n < 50:
            batch_size = max(batch_size // 2, 8)
        elif n > 5000:
            batch_size = min(batch_size * 2, 128)

        if n < 200:
            architecture = "random-forest"
        elif n > 10000:
            architecture = "ensemble"
        else:
            architecture = s.ARCHITECTURE

        return {
            "learning_rate_init": learning_rate,
            "batch_size": batch_size,
            "epochs": epochs,
            "architecture": architecture,
        }
